"""Synchronous call/poll surface for embedding the bridge behind a foreign boundary.

Every public method is safe to call from any thread. The bridge itself runs
on a private event loop thread; callers only ever exchange byte buffers and
integer handles with it.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import itertools
import threading
from typing import Any, Callable, Coroutine, TypeVar

from loguru import logger

from corebridge.bridge import CoreBridge
from corebridge.config.schema import Config
from corebridge.engine.handle import CoreEngine
from corebridge.engine.loader import load_engine
from corebridge.rpc.serialization import encode_message_bytes
from corebridge.session.session import Session
from corebridge.utils.exceptions import TransportClosed, TransportFault

T = TypeVar("T")

SessionHandle = int


class QueueAdapter:
    """init / submit / poll_next / teardown over opaque integer handles."""

    def __init__(self, engine_factory: Callable[[], CoreEngine] | None = None, config: Config | None = None):
        self.config = config or Config()
        self._engine_factory = engine_factory or (lambda: load_engine(self.config.engine))
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._bridge: CoreBridge | None = None
        self._handles: dict[SessionHandle, Session] = {}
        self._ids = itertools.count(1)
        self._lock = threading.RLock()
        self._closed = False

    def __enter__(self) -> "QueueAdapter":
        self.start()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the worker loop and build the bridge on it (idempotent)."""
        with self._lock:
            if self._closed:
                raise TransportClosed("queue adapter is closed")
            if self._thread is not None:
                return
            ready = threading.Event()
            loop = asyncio.new_event_loop()
            self._loop = loop
            self._thread = threading.Thread(
                target=self._run_loop, args=(loop, ready), name="corebridge-queue", daemon=True
            )
            self._thread.start()
            if not ready.wait(self.config.queue.startup_timeout_seconds):
                raise TransportFault("queue adapter worker loop did not start")
            self._bridge = self._call(self._create_bridge(), self.config.queue.startup_timeout_seconds)
            logger.debug("Queue adapter started")

    @staticmethod
    def _run_loop(loop: asyncio.AbstractEventLoop, ready: threading.Event) -> None:
        asyncio.set_event_loop(loop)
        loop.call_soon(ready.set)
        try:
            loop.run_forever()
        finally:
            loop.close()

    async def _create_bridge(self) -> CoreBridge:
        return CoreBridge(self._engine_factory(), self.config)

    def _call(self, coro: Coroutine[Any, Any, T], timeout: float | None) -> T:
        if self._loop is None:
            coro.close()
            raise TransportClosed("queue adapter is not running")
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        try:
            return future.result(timeout)
        except concurrent.futures.TimeoutError as exc:
            future.cancel()
            raise TransportFault("queue adapter worker did not answer in time", {"timeout": timeout}) from exc

    def _session(self, handle: SessionHandle) -> Session:
        with self._lock:
            session = self._handles.get(handle)
        if session is None:
            raise TransportClosed(f"unknown or released session handle {handle}")
        if session.closed:
            raise TransportClosed(f"session behind handle {handle} is closed")
        return session

    def init(self) -> SessionHandle:
        """Create one session and return its handle."""
        self.start()
        session = self._call(self._open_session(), self.config.queue.call_timeout_seconds)
        with self._lock:
            handle = next(self._ids)
            self._handles[handle] = session
        logger.debug("Queue handle {} -> session {}", handle, session.id)
        return handle

    async def _open_session(self) -> Session:
        assert self._bridge is not None
        return self._bridge.open_session("queue")

    def methods(self) -> list[str]:
        """Names a client may call, engine methods and bridge built-ins alike."""
        self.start()
        assert self._bridge is not None
        return self._bridge.registry.names()

    def submit(self, handle: SessionHandle, raw: bytes | bytearray | str) -> None:
        """Hand one raw payload to the worker; never waits for dispatch."""
        session = self._session(handle)
        assert self._bridge is not None and self._loop is not None
        payload = raw if isinstance(raw, str) else bytes(raw)
        future = asyncio.run_coroutine_threadsafe(self._bridge.dispatch(session, payload), self._loop)
        future.add_done_callback(lambda f: self._log_submit_failure(handle, f))

    @staticmethod
    def _log_submit_failure(handle: SessionHandle, future: concurrent.futures.Future[Any]) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if isinstance(exc, TransportClosed):
            logger.debug("Submit on handle {} dropped: {}", handle, exc.message)
        elif exc is not None:
            logger.opt(exception=exc).error("Submit on handle {} failed", handle)

    def poll_next(self, handle: SessionHandle, timeout: float | None = None) -> bytes | None:
        """Block up to ``timeout`` seconds for the next outbound frame; None on timeout."""
        session = self._session(handle)
        wait = None if timeout is None else timeout + self.config.queue.call_timeout_seconds
        item = self._call(session.outbound.get(timeout), wait)
        if item is None:
            return None
        return encode_message_bytes(item)

    def teardown(self, handle: SessionHandle) -> None:
        """Tear the session down, then invalidate the handle."""
        with self._lock:
            session = self._handles.pop(handle, None)
        if session is None:
            raise TransportClosed(f"unknown or released session handle {handle}")
        assert self._bridge is not None
        self._call(
            self._bridge.close_session(session),
            self.config.session.teardown_grace_seconds + self.config.queue.call_timeout_seconds,
        )

    def close(self) -> None:
        """Release every handle, close the bridge and stop the worker thread."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._handles.clear()
            loop, thread, bridge = self._loop, self._thread, self._bridge
        if loop is None or thread is None:
            return
        try:
            if bridge is not None:
                self._call(
                    bridge.aclose(),
                    self.config.session.teardown_grace_seconds + self.config.queue.call_timeout_seconds,
                )
        finally:
            loop.call_soon_threadsafe(loop.stop)
            thread.join(self.config.queue.startup_timeout_seconds)
            self._loop = None
            self._thread = None
            self._bridge = None
            logger.debug("Queue adapter stopped")
