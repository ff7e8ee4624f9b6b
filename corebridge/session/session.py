"""Session: the unit of isolation for RPC state."""

from __future__ import annotations

import asyncio
import time
import uuid
from typing import Any, Callable, Coroutine

from loguru import logger

from corebridge.config.schema import SessionConfig
from corebridge.rpc.protocol import RequestId, RpcNotification, RpcResponse
from corebridge.session.outbound import OutboundQueue
from corebridge.session.pending import CancelToken, PendingCallTable
from corebridge.utils.exceptions import OutboundQueueFull, TransportClosed

FaultHandler = Callable[["Session", Exception], None]


class Session:
    """Owns one PendingCallTable, one outbound queue and one notification counter."""

    def __init__(
        self,
        transport: str,
        config: SessionConfig | None = None,
        *,
        session_id: str | None = None,
        on_fault: FaultHandler | None = None,
    ):
        self.config = config or SessionConfig()
        self.id = session_id or uuid.uuid4().hex[:12]
        self.transport = transport
        self.pending = PendingCallTable()
        self.outbound = OutboundQueue(
            self.config.outbound_capacity,
            session_id=self.id,
            response_timeout=self.config.response_enqueue_timeout_seconds,
        )
        self.next_seq = 0
        self.closed = False
        self.created_at_ms = int(time.time() * 1000)
        self._on_fault = on_fault
        self._tasks: dict[asyncio.Task[Any], CancelToken | None] = {}
        self._teardown_done: asyncio.Event | None = None

    def __repr__(self) -> str:
        return f"Session(id={self.id!r}, transport={self.transport!r}, closed={self.closed})"

    def spawn(self, coro: Coroutine[Any, Any, Any], *, token: CancelToken | None = None, name: str | None = None) -> asyncio.Task[Any]:
        """Run a coroutine owned by this session; teardown cancels it."""
        if self.closed:
            coro.close()
            raise TransportClosed(f"session {self.id} is closed")
        task = asyncio.create_task(coro, name=name)
        self._tasks[task] = token
        task.add_done_callback(self._forget_task)
        return task

    def _forget_task(self, task: asyncio.Task[Any]) -> None:
        self._tasks.pop(task, None)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.opt(exception=exc).error("Session {} task {} crashed", self.id, task.get_name())

    def notify(self, method: str, params: Any) -> RpcNotification | None:
        """Stamp the next seq and enqueue; the seq is consumed even when the queue drops it."""
        if self.closed:
            return None
        notification = RpcNotification(method=method, params=params, seq=self.next_seq)
        self.next_seq += 1
        self.outbound.put_notification(notification)
        return notification

    async def deliver(self, response: RpcResponse, *, claim: Callable[[], bool] | None = None) -> bool:
        """Enqueue a Response; False when it was not queued.

        That covers a closed or just-failed session and a ``claim`` that refused.
        """
        if self.closed:
            return False
        try:
            return await self.outbound.put_response(response, claim=claim)
        except TransportClosed:
            return False
        except OutboundQueueFull as exc:
            logger.error("Session {} cannot accept response for id={}: {}", self.id, response.id, exc.message)
            self.fail(exc)
            return False

    def fail(self, exc: Exception) -> None:
        """Report a session-fatal fault to the owner."""
        if self.closed:
            return
        if self._on_fault is not None:
            self._on_fault(self, exc)

    def cancel_call(self, request_id: RequestId, reason: str = "canceled") -> bool:
        return self.pending.cancel(request_id, reason) is not None

    async def teardown(self, grace_seconds: float | None = None) -> None:
        """Cancel every call, discard queued output and wait briefly for tasks to stop."""
        if self._teardown_done is not None:
            await self._teardown_done.wait()
            return
        self._teardown_done = asyncio.Event()
        self.closed = True
        grace = self.config.teardown_grace_seconds if grace_seconds is None else grace_seconds
        canceled = self.pending.cancel_all()
        for token in self._tasks.values():
            if token is not None:
                token.cancel("session closed")
        discarded = self.outbound.close()
        current = asyncio.current_task()
        tasks = [task for task in self._tasks if task is not current and not task.done()]
        lingering = 0
        if tasks:
            if grace > 0:
                _, still_running = await asyncio.wait(tasks, timeout=grace)
            else:
                still_running = set(tasks)
            lingering = len(still_running)
            for task in still_running:
                task.cancel()
        logger.info(
            "Session {} closed (canceled={}, discarded={}, lingering={})",
            self.id,
            len(canceled),
            discarded,
            lingering,
        )
        self._teardown_done.set()

    def stats(self) -> dict[str, Any]:
        return {
            "sessionId": self.id,
            "transport": self.transport,
            "pending": len(self.pending),
            "queued": len(self.outbound),
            "lostNotifications": self.outbound.lost_notifications,
            "nextSeq": self.next_seq,
            "closed": self.closed,
        }
