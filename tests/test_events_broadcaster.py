import asyncio

import pytest

from corebridge.engine.handle import CoreEvent, CoreHandle
from corebridge.events.broadcaster import EventBroadcaster
from corebridge.session.manager import SessionManager
from corebridge.session.session import Session


def _sessions(config, count: int) -> tuple[SessionManager, list[Session]]:
    manager = SessionManager()
    sessions = [Session("test", config.session) for _ in range(count)]
    for session in sessions:
        manager.add(session)
    return manager, sessions


@pytest.mark.asyncio
async def test_each_session_gets_its_own_seq(engine, config):
    manager, (first, second) = _sessions(config, 2)
    first.notify("event", {"warmup": True})
    assert (await first.outbound.get(timeout=0.1)).seq == 0

    broadcaster = EventBroadcaster(CoreHandle(engine), manager)
    broadcaster.start()
    engine.emit(CoreEvent(kind="Info", payload={"msg": "hi"}, context_id=3))

    got_first = await first.outbound.get(timeout=1)
    got_second = await second.outbound.get(timeout=1)
    assert got_first.seq == 1
    assert got_second.seq == 0
    expected = {"contextId": 3, "event": {"kind": "Info", "msg": "hi"}}
    assert got_first.params == expected
    assert got_second.params == expected
    assert got_first.method == "event"
    assert await first.outbound.get(timeout=0.05) is None
    await broadcaster.stop()


def test_publish_skips_closed_sessions(config):
    manager, (open_session, closed_session) = _sessions(config, 2)
    closed_session.closed = True
    broadcaster = EventBroadcaster(CoreHandle(object()), manager)
    assert broadcaster.publish(CoreEvent(kind="Info")) == 1
    assert len(open_session.outbound) == 1
    assert len(closed_session.outbound) == 0
    assert broadcaster.events_seen == 1


def test_slow_session_loses_oldest_notifications(config):
    config.session.outbound_capacity = 2
    manager, (slow,) = _sessions(config, 1)
    broadcaster = EventBroadcaster(CoreHandle(object()), manager)
    for n in range(5):
        broadcaster.publish(CoreEvent(kind="Tick", payload={"n": n}))
    assert broadcaster.lost_notifications == 3
    assert [item.params["event"]["n"] for item in slow.outbound._items] == [3, 4]
    assert slow.next_seq == 5


@pytest.mark.asyncio
async def test_stream_end_stops_broadcaster(engine, config):
    manager, _ = _sessions(config, 1)
    broadcaster = EventBroadcaster(CoreHandle(engine), manager)
    broadcaster.start()
    assert broadcaster.running
    await engine.aclose()
    for _ in range(20):
        if not broadcaster.running:
            break
        await asyncio.sleep(0.01)
    assert not broadcaster.running


@pytest.mark.asyncio
async def test_stop_is_safe_to_repeat(engine, config):
    manager, _ = _sessions(config, 1)
    broadcaster = EventBroadcaster(CoreHandle(engine), manager)
    broadcaster.start()
    await asyncio.sleep(0)
    await broadcaster.stop()
    await broadcaster.stop()
    assert not broadcaster.running
