import json
import threading

import pytest

from corebridge.transport.queue_adapter import QueueAdapter
from corebridge.utils.exceptions import TransportClosed


def _req(request_id, method, params=None) -> bytes:
    frame = {"jsonrpc": "2.0", "id": request_id, "method": method}
    if params is not None:
        frame["params"] = params
    return json.dumps(frame).encode()


@pytest.fixture
def adapter(engine, config):
    queue_adapter = QueueAdapter(lambda: engine, config)
    yield queue_adapter
    queue_adapter.close()


def test_submit_and_poll(adapter):
    handle = adapter.init()
    adapter.submit(handle, _req(1, "ping", {}))
    raw = adapter.poll_next(handle, timeout=2)
    assert isinstance(raw, bytes)
    assert json.loads(raw) == {"jsonrpc": "2.0", "id": 1, "result": "pong"}
    assert adapter.poll_next(handle, timeout=0.05) is None


def test_submit_does_not_wait_for_the_call(adapter):
    handle = adapter.init()
    adapter.submit(handle, _req("slow", "sleep", {"seconds": 0.3}))
    adapter.submit(handle, _req("fast", "ping"))
    assert json.loads(adapter.poll_next(handle, timeout=2))["id"] == "fast"
    assert json.loads(adapter.poll_next(handle, timeout=2))["id"] == "slow"


def test_malformed_payload_answers_with_parse_error(adapter):
    handle = adapter.init()
    adapter.submit(handle, b"{oops")
    frame = json.loads(adapter.poll_next(handle, timeout=2))
    assert frame["id"] is None
    assert frame["error"]["code"] == -32700


def test_events_fan_out_to_every_handle(adapter):
    first = adapter.init()
    second = adapter.init()
    assert first != second
    adapter.submit(first, _req(1, "emit_event", {"kind": "Info", "payload": {"msg": "x"}}))
    frames = [json.loads(adapter.poll_next(first, timeout=2)) for _ in range(2)]
    assert {"event", None} == {f.get("method") for f in frames}
    other = json.loads(adapter.poll_next(second, timeout=2))
    assert other["method"] == "event"
    assert other["seq"] == 0
    assert other["params"]["event"] == {"kind": "Info", "msg": "x"}


def test_teardown_invalidates_handle(adapter):
    handle = adapter.init()
    adapter.submit(handle, _req(1, "sleep", {"seconds": 5}))
    adapter.teardown(handle)
    with pytest.raises(TransportClosed):
        adapter.submit(handle, _req(2, "ping"))
    with pytest.raises(TransportClosed):
        adapter.poll_next(handle, timeout=0.1)
    with pytest.raises(TransportClosed):
        adapter.teardown(handle)


def test_unknown_handle(adapter):
    adapter.start()
    with pytest.raises(TransportClosed):
        adapter.poll_next(12345, timeout=0.1)


def test_threads_with_their_own_handles(adapter):
    errors: list[BaseException] = []

    def worker(index: int) -> None:
        try:
            handle = adapter.init()
            for n in range(10):
                adapter.submit(handle, _req(n, "echo", {"worker": index, "n": n}))
            seen = set()
            for _ in range(10):
                frame = json.loads(adapter.poll_next(handle, timeout=5))
                assert frame["result"]["worker"] == index
                seen.add(frame["id"])
            assert seen == set(range(10))
            adapter.teardown(handle)
        except BaseException as exc:
            errors.append(exc)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(10)
    assert errors == []


def test_close_rejects_new_sessions(engine, config):
    adapter = QueueAdapter(lambda: engine, config)
    handle = adapter.init()
    adapter.close()
    assert not adapter.running
    with pytest.raises(TransportClosed):
        adapter.init()
    with pytest.raises(TransportClosed):
        adapter.poll_next(handle, timeout=0.1)
    adapter.close()


def test_methods_include_builtins(adapter):
    names = adapter.methods()
    assert "ping" in names
    assert "cancel_request" in names
