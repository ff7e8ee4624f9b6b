"""Bounded per-session delivery queue for Responses and Notifications."""

from __future__ import annotations

import asyncio
from collections import deque
from typing import Callable

from loguru import logger

from corebridge.rpc.protocol import OutboundItem, RpcNotification, RpcResponse
from corebridge.utils.exceptions import OutboundQueueFull, TransportClosed


class OutboundQueue:
    """FIFO outbound queue.

    Notifications are droppable: when full, the oldest queued Notification is
    evicted. Responses are never dropped; they evict a Notification or wait for
    space, and raise OutboundQueueFull if none appears in time.
    """

    def __init__(self, capacity: int, *, session_id: str = "", response_timeout: float = 5.0):
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.capacity = capacity
        self.session_id = session_id
        self.response_timeout = response_timeout
        self.lost_notifications = 0
        self._items: deque[OutboundItem] = deque()
        self._has_items = asyncio.Event()
        self._has_space = asyncio.Event()
        self._has_space.set()
        self._closed = False

    def __len__(self) -> int:
        return len(self._items)

    @property
    def closed(self) -> bool:
        return self._closed

    def put_notification(self, notification: RpcNotification) -> bool:
        """Enqueue without waiting; returns False when this notification was dropped."""
        if self._closed:
            return False
        if len(self._items) >= self.capacity and not self._evict_oldest_notification():
            self._record_loss()
            return False
        self._append(notification)
        return True

    async def put_response(self, response: RpcResponse, *, claim: Callable[[], bool] | None = None) -> bool:
        """Enqueue a Response, waiting for space if needed.

        ``claim`` runs in the same step as the append, once space is available;
        when it returns False the Response is dropped and nothing is queued.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.response_timeout
        while True:
            if self._closed:
                raise TransportClosed(f"session {self.session_id} is closed")
            if len(self._items) < self.capacity or self._has_notification():
                if claim is not None and not claim():
                    return False
                if len(self._items) >= self.capacity:
                    self._evict_oldest_notification()
                self._append(response)
                return True
            remaining = deadline - loop.time()
            if remaining <= 0:
                raise OutboundQueueFull(self.session_id, self.capacity, self.response_timeout)
            self._has_space.clear()
            try:
                await asyncio.wait_for(self._has_space.wait(), timeout=remaining)
            except asyncio.TimeoutError:
                continue

    async def get(self, timeout: float | None = None) -> OutboundItem | None:
        """Next item in enqueue order, or None on timeout."""
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout
        while True:
            if self._items:
                item = self._items.popleft()
                self._has_space.set()
                return item
            if self._closed:
                raise TransportClosed(f"session {self.session_id} is closed")
            self._has_items.clear()
            if deadline is None:
                await self._has_items.wait()
                continue
            remaining = deadline - loop.time()
            if remaining <= 0:
                return None
            try:
                await asyncio.wait_for(self._has_items.wait(), timeout=remaining)
            except asyncio.TimeoutError:
                return None

    def close(self) -> int:
        """Discard queued items and wake every waiter; returns the discarded count."""
        discarded = len(self._items)
        self._closed = True
        self._items.clear()
        self._has_items.set()
        self._has_space.set()
        return discarded

    def _append(self, item: OutboundItem) -> None:
        self._items.append(item)
        self._has_items.set()

    def _has_notification(self) -> bool:
        return any(isinstance(item, RpcNotification) for item in self._items)

    def _evict_oldest_notification(self) -> bool:
        for index, item in enumerate(self._items):
            if isinstance(item, RpcNotification):
                del self._items[index]
                self._record_loss()
                return True
        return False

    def _record_loss(self) -> None:
        self.lost_notifications += 1
        if self.lost_notifications == 1:
            logger.warning("Session {} outbound queue full; dropping notifications", self.session_id)
        else:
            logger.debug("Session {} dropped notification (lost={})", self.session_id, self.lost_notifications)
