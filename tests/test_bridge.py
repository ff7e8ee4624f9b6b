import asyncio
import json

import pytest

from corebridge.bridge import CoreBridge
from corebridge.rpc.serialization import encode_message


async def _next(session, timeout: float = 2.0) -> dict:
    item = await session.outbound.get(timeout=timeout)
    assert item is not None
    return json.loads(encode_message(item))


@pytest.mark.asyncio
async def test_engine_event_reaches_every_session(engine, config):
    bridge = CoreBridge(engine, config)
    caller = bridge.open_session("test")
    other = bridge.open_session("test")
    assert bridge.broadcaster.running

    await bridge.dispatch(caller, json.dumps({
        "jsonrpc": "2.0", "id": 1, "method": "emit_event",
        "params": {"kind": "MsgsChanged", "payload": {"chatId": 10}, "contextId": 1},
    }))
    frames = [await _next(caller), await _next(caller)]
    notification = next(f for f in frames if f.get("method") == "event")
    response = next(f for f in frames if "id" in f)
    assert response == {"jsonrpc": "2.0", "id": 1, "result": None}
    assert notification["params"] == {"contextId": 1, "event": {"kind": "MsgsChanged", "chatId": 10}}
    assert notification["seq"] == 0

    other_frame = await _next(other)
    assert other_frame["method"] == "event"
    assert other_frame["seq"] == 0
    await bridge.aclose()


@pytest.mark.asyncio
async def test_close_session_unregisters_it(engine, config):
    bridge = CoreBridge(engine, config)
    session = bridge.open_session("test")
    assert len(bridge.sessions) == 1
    await bridge.close_session(session)
    assert len(bridge.sessions) == 0
    assert session.closed
    await bridge.aclose()


@pytest.mark.asyncio
async def test_fault_tears_down_only_that_session(engine, config):
    config.session.outbound_capacity = 1
    bridge = CoreBridge(engine, config)
    stuck = bridge.open_session("test")
    healthy = bridge.open_session("test")
    ping = json.dumps({"jsonrpc": "2.0", "id": 1, "method": "ping"})
    await bridge.dispatch(stuck, ping)
    await bridge.dispatch(stuck, ping.replace('"id": 1', '"id": 2'))
    for _ in range(50):
        if stuck.closed and bridge.sessions.get(stuck.id) is None:
            break
        await asyncio.sleep(0.05)
    assert stuck.closed
    assert bridge.sessions.get(stuck.id) is None

    await bridge.dispatch(healthy, ping)
    assert (await _next(healthy))["result"] == "pong"
    await bridge.aclose()


@pytest.mark.asyncio
async def test_aclose_tears_down_and_closes_engine(engine, config):
    bridge = CoreBridge(engine, config)
    session = bridge.open_session("test")
    await bridge.dispatch(session, json.dumps({"jsonrpc": "2.0", "id": 1, "method": "sleep", "params": [5]}))
    await bridge.aclose()
    assert session.closed
    assert len(session.pending) == 0
    assert not bridge.broadcaster.running
    with pytest.raises(RuntimeError):
        bridge.open_session("test")
    await bridge.aclose()


def test_registry_lists_engine_and_bridge_methods(engine, config):
    bridge = CoreBridge(engine, config)
    names = bridge.registry.names()
    assert {"ping", "echo", "sleep", "cancel_request", "bridge_stats"} <= set(names)
    assert bridge.stats()["methods"] == len(names)
