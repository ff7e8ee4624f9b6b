"""Bridge runtime: one engine handle shared by many isolated sessions."""

from __future__ import annotations

import asyncio
from typing import Any

from loguru import logger

from corebridge.config.schema import Config
from corebridge.engine.handle import CoreEngine, CoreHandle
from corebridge.events.broadcaster import EventBroadcaster
from corebridge.rpc.dispatcher import RequestDispatcher
from corebridge.rpc.registry import build_handler_registry
from corebridge.session.manager import SessionManager
from corebridge.session.session import Session


class CoreBridge:
    """Wires the engine handle, dispatcher, session registry and broadcaster.

    Must be driven from a single event loop; transports only ever call
    ``open_session``, ``dispatch`` and ``close_session``.
    """

    def __init__(self, engine: CoreEngine, config: Config | None = None):
        self.config = config or Config()
        self.core = CoreHandle(engine)
        self.registry = build_handler_registry(self.core)
        self.dispatcher = RequestDispatcher(self.core, self.registry)
        self.sessions = SessionManager()
        self.broadcaster = EventBroadcaster(self.core, self.sessions)
        self._closing: set[asyncio.Task[None]] = set()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def open_session(self, transport: str) -> Session:
        if self._closed:
            raise RuntimeError("bridge is closed")
        session = Session(transport, self.config.session, on_fault=self._on_session_fault)
        self.sessions.add(session)
        self.broadcaster.start()
        logger.info("Session {} opened ({})", session.id, transport)
        return session

    async def dispatch(self, session: Session, raw: bytes | bytearray | str) -> None:
        await self.dispatcher.dispatch(session, raw)

    async def close_session(self, session: Session) -> None:
        self.sessions.remove(session.id)
        await session.teardown(self.config.session.teardown_grace_seconds)

    def _on_session_fault(self, session: Session, exc: Exception) -> None:
        logger.error("Session {} faulted, tearing down: {}", session.id, exc)
        # The faulting task may be one of the session's own; teardown must not await it inline.
        task = asyncio.get_running_loop().create_task(
            self.close_session(session), name=f"session-fault:{session.id}"
        )
        self._closing.add(task)
        task.add_done_callback(self._closing.discard)

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        sessions = self.sessions.list_active()
        for session in sessions:
            self.sessions.remove(session.id)
        if sessions:
            await asyncio.gather(
                *(s.teardown(self.config.session.teardown_grace_seconds) for s in sessions)
            )
        if self._closing:
            await asyncio.gather(*self._closing, return_exceptions=True)
        await self.broadcaster.stop()
        await self.core.aclose()
        logger.info("Bridge closed ({} sessions torn down)", len(sessions))

    def stats(self) -> dict[str, Any]:
        return {
            "sessions": len(self.sessions),
            "methods": len(self.registry),
            "eventsSeen": self.broadcaster.events_seen,
            "lostNotifications": self.broadcaster.lost_notifications,
        }
