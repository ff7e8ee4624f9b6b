"""Fan engine events out to every active session as notifications."""

from __future__ import annotations

import asyncio
from typing import AsyncIterator

from loguru import logger

from corebridge.engine.handle import CoreEvent, CoreHandle
from corebridge.rpc.protocol import EVENT_METHOD
from corebridge.session.manager import SessionManager


class EventBroadcaster:
    """Single long-lived consumer of ``CoreHandle.events()``.

    Each event becomes one notification per active session, stamped with that
    session's own ``seq``. Slow sessions lose their oldest notifications; the
    broadcaster itself never waits on a session.
    """

    def __init__(self, core: CoreHandle, sessions: SessionManager):
        self.core = core
        self.sessions = sessions
        self.events_seen = 0
        self._stream: AsyncIterator[CoreEvent] | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Subscribe immediately so events emitted right after this call are not missed."""
        if self.running:
            return
        self._stream = self.core.events()
        self._task = asyncio.create_task(self._run(self._stream), name="event-broadcaster")
        logger.debug("Event broadcaster started")

    async def stop(self) -> None:
        task = self._task
        self._task = None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        stream = self._stream
        self._stream = None
        closer = getattr(stream, "aclose", None)
        if closer is not None:
            await closer()

    def publish(self, event: CoreEvent) -> int:
        """Enqueue one event on every active session; returns how many sessions got it."""
        self.events_seen += 1
        params = event.to_notification_params()
        delivered = 0
        for session in self.sessions.list_active():
            if session.notify(EVENT_METHOD, params) is not None:
                delivered += 1
        return delivered

    @property
    def lost_notifications(self) -> int:
        return sum(s.outbound.lost_notifications for s in self.sessions.list_active())

    async def _run(self, stream: AsyncIterator[CoreEvent]) -> None:
        try:
            async for event in stream:
                self.publish(event)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Engine event stream failed")
            return
        logger.info("Engine event stream ended after {} events", self.events_seen)
