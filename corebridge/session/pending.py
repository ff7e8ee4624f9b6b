"""Per-session table of in-flight calls and their cancellation tokens."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, TypeVar

from loguru import logger

from corebridge.rpc.protocol import RequestId
from corebridge.utils.exceptions import CallCanceled

T = TypeVar("T")


class CancelToken:
    """Cooperative cancellation signal checked at a call's suspension points."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "canceled") -> bool:
        if self._event.is_set():
            return False
        self.reason = reason
        self._event.set()
        return True

    async def wait(self) -> None:
        await self._event.wait()

    async def race(self, awaitable: Awaitable[T], *, request_id: RequestId | None = None) -> T:
        """Await ``awaitable`` unless the token fires first.

        When the token wins, the bridge stops waiting and raises CallCanceled; the
        abandoned engine work is asked to cancel but may finish in the background.
        """
        if self.cancelled:
            _discard(awaitable)
            raise CallCanceled(request_id, self.reason or "canceled")
        work = asyncio.ensure_future(awaitable)
        signal = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({work, signal}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            work.cancel()
            raise
        finally:
            signal.cancel()
        if work.done():
            return work.result()
        work.cancel()
        work.add_done_callback(_log_abandoned)
        raise CallCanceled(request_id, self.reason or "canceled")


def _discard(awaitable: Awaitable[Any]) -> None:
    close = getattr(awaitable, "close", None)
    if close is not None:
        close()


def _log_abandoned(task: asyncio.Future[Any]) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug("Abandoned engine call finished with {}", exc)


@dataclass(eq=False)
class PendingCall:
    """Bookkeeping for one in-flight request."""

    id: RequestId
    method: str
    token: CancelToken = field(default_factory=CancelToken)
    task: asyncio.Task[Any] | None = None


class PendingCallTable:
    """Request id -> PendingCall for one session.

    All mutations are synchronous, so a single event loop never observes a
    half-applied change; removal happens exactly once through ``settle``,
    ``cancel`` or ``cancel_all``.
    """

    def __init__(self) -> None:
        self._calls: dict[RequestId, PendingCall] = {}

    def __len__(self) -> int:
        return len(self._calls)

    def __contains__(self, request_id: object) -> bool:
        return request_id in self._calls

    def get(self, request_id: RequestId) -> PendingCall | None:
        return self._calls.get(request_id)

    def ids(self) -> list[RequestId]:
        return list(self._calls)

    def add(self, call: PendingCall) -> bool:
        """Record a call; False when the id is already pending."""
        if call.id in self._calls:
            return False
        self._calls[call.id] = call
        return True

    def settle(self, call: PendingCall) -> bool:
        """Remove a completed call; False when it was already canceled or torn down."""
        if self._calls.get(call.id) is not call:
            return False
        del self._calls[call.id]
        return True

    def cancel(self, request_id: RequestId, reason: str = "canceled") -> PendingCall | None:
        call = self._calls.pop(request_id, None)
        if call is None:
            return None
        call.token.cancel(reason)
        return call

    def cancel_all(self, reason: str = "session closed") -> list[PendingCall]:
        calls = list(self._calls.values())
        self._calls.clear()
        for call in calls:
            call.token.cancel(reason)
        return calls
