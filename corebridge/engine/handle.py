"""Asynchronous facade over the opaque messaging engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Protocol, runtime_checkable

from loguru import logger


@dataclass(frozen=True, slots=True)
class CoreEvent:
    """Engine-defined event; ``kind`` is the discriminant."""

    kind: str
    payload: dict[str, Any] = field(default_factory=dict)
    context_id: int | None = None

    def to_notification_params(self) -> dict[str, Any]:
        return {"contextId": self.context_id, "event": {**self.payload, "kind": self.kind}}


@runtime_checkable
class CoreEngine(Protocol):
    """Collaborator contract; both members must be safe to use from many concurrent tasks."""

    def methods(self) -> list[str]: ...
    async def invoke(self, method: str, params: Any) -> Any: ...
    def events(self) -> AsyncIterator[CoreEvent]: ...


class CoreHandle:
    """Single shared handle to the engine, passed by reference to every session."""

    def __init__(self, engine: CoreEngine):
        self.engine = engine

    def methods(self) -> list[str]:
        return [str(name) for name in self.engine.methods()]

    async def invoke(self, method: str, params: Any) -> Any:
        logger.trace("engine invoke {}", method)
        return await self.engine.invoke(method, params)

    def events(self) -> AsyncIterator[CoreEvent]:
        return self.engine.events()

    async def aclose(self) -> None:
        closer = getattr(self.engine, "aclose", None)
        if closer is None:
            return
        await closer()
