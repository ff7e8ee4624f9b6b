"""In-process engine used for local runs, demos and tests."""

from __future__ import annotations

import asyncio
from typing import Any, AsyncIterator, Awaitable, Callable

from loguru import logger

from corebridge import __version__
from corebridge.engine.handle import CoreEvent
from corebridge.utils.exceptions import EngineError

EngineMethod = Callable[[Any], Awaitable[Any]]

_CLOSED = object()


def _param(params: Any, name: str, index: int = 0, default: Any = None) -> Any:
    if isinstance(params, dict):
        return params.get(name, default)
    if isinstance(params, list) and len(params) > index:
        return params[index]
    return default


class InMemoryEngine:
    """Engine with a small command set and a broadcast event source."""

    def __init__(self, accounts_path: str = "accounts", **options: Any):
        self.accounts_path = accounts_path
        self.options = options
        self._methods: dict[str, EngineMethod] = {}
        self._subscribers: list[asyncio.Queue[Any]] = []
        self._closed = False
        self.register("ping", self._ping)
        self.register("echo", self._echo)
        self.register("sleep", self._sleep)
        self.register("get_system_info", self._get_system_info)
        self.register("emit_event", self._emit_event)

    def register(self, name: str, method: EngineMethod) -> None:
        self._methods[name] = method

    def methods(self) -> list[str]:
        return sorted(self._methods)

    async def invoke(self, method: str, params: Any) -> Any:
        if self._closed:
            raise EngineError("engine is shut down")
        target = self._methods.get(method)
        if target is None:
            raise EngineError(f"unknown engine command: {method}", {"method": method})
        return await target(params)

    def emit(self, event: CoreEvent) -> None:
        """Hand the event to every current subscriber."""
        for queue in list(self._subscribers):
            queue.put_nowait(event)

    def events(self) -> AsyncIterator[CoreEvent]:
        """Subscribe now; the returned iterator yields until the engine shuts down."""
        queue: asyncio.Queue[Any] = asyncio.Queue()
        self._subscribers.append(queue)
        return self._drain(queue)

    async def _drain(self, queue: asyncio.Queue[Any]) -> AsyncIterator[CoreEvent]:
        try:
            while True:
                item = await queue.get()
                if item is _CLOSED:
                    return
                yield item
        finally:
            if queue in self._subscribers:
                self._subscribers.remove(queue)

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        logger.info("In-memory engine shutting down")
        for queue in list(self._subscribers):
            queue.put_nowait(_CLOSED)

    async def _ping(self, _params: Any) -> str:
        return "pong"

    async def _echo(self, params: Any) -> Any:
        return params

    async def _sleep(self, params: Any) -> float:
        seconds = _param(params, "seconds", default=0)
        if isinstance(seconds, bool) or not isinstance(seconds, (int, float)) or seconds < 0:
            raise EngineError("seconds must be a non-negative number", {"seconds": seconds})
        await asyncio.sleep(seconds)
        return seconds

    async def _get_system_info(self, _params: Any) -> dict[str, Any]:
        return {
            "engine": "memory",
            "bridgeVersion": __version__,
            "accountsPath": self.accounts_path,
            "subscribers": len(self._subscribers),
        }

    async def _emit_event(self, params: Any) -> None:
        kind = _param(params, "kind", default="Info")
        if not isinstance(kind, str) or not kind:
            raise EngineError("kind must be a non-empty string", {"kind": kind})
        payload = _param(params, "payload", index=1, default={})
        context_id = _param(params, "contextId", index=2)
        self.emit(CoreEvent(kind=kind, payload=payload if isinstance(payload, dict) else {"value": payload}, context_id=context_id))
