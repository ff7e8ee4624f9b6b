"""Static method-name -> handler mapping built once at startup."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Iterable, Literal

from loguru import logger

from corebridge.engine.handle import CoreHandle
from corebridge.rpc.protocol import RequestId
from corebridge.rpc.serialization import is_valid_id
from corebridge.utils.exceptions import InvalidParamsError

if TYPE_CHECKING:
    from corebridge.session.session import Session

ParamsKind = Literal["object", "array", "any"]

CANCEL_METHOD = "cancel_request"
STATS_METHOD = "bridge_stats"


@dataclass(slots=True)
class CallContext:
    """What a handler may touch: its own session and the shared engine handle."""

    session: "Session"
    core: CoreHandle
    request_id: RequestId | None
    method: str


Handler = Callable[[CallContext, Any], Awaitable[Any]]


@dataclass(frozen=True, slots=True)
class HandlerSpec:
    name: str
    handler: Handler
    params_kind: ParamsKind = "any"
    builtin: bool = False

    def check_params(self, params: Any, request_id: RequestId | None = None) -> None:
        if self.params_kind == "object" and not isinstance(params, dict):
            raise InvalidParamsError(f"{self.name} expects params to be an object", request_id=request_id)
        if self.params_kind == "array" and not isinstance(params, list):
            raise InvalidParamsError(f"{self.name} expects params to be an array", request_id=request_id)


class HandlerRegistry:
    """Name -> HandlerSpec. Unknown names fall through to method-not-found."""

    def __init__(self) -> None:
        self._handlers: dict[str, HandlerSpec] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)

    def register(self, name: str, handler: Handler, *, params_kind: ParamsKind = "any", builtin: bool = False) -> None:
        existing = self._handlers.get(name)
        if existing is not None:
            if existing.builtin and not builtin:
                logger.warning("Engine method {} clashes with a bridge method; keeping the bridge method", name)
                return
            if builtin and not existing.builtin:
                logger.warning("Bridge method {} shadows an engine method of the same name", name)
        self._handlers[name] = HandlerSpec(name=name, handler=handler, params_kind=params_kind, builtin=builtin)

    def get(self, name: str) -> HandlerSpec | None:
        return self._handlers.get(name)

    def names(self) -> list[str]:
        return sorted(self._handlers)


def engine_handler(method: str) -> Handler:
    """Forward a call to the engine under the same method name."""

    async def forward(ctx: CallContext, params: Any) -> Any:
        return await ctx.core.invoke(method, params)

    forward.__name__ = f"engine_{method}"
    return forward


async def cancel_request(ctx: CallContext, params: dict[str, Any]) -> bool:
    target = params.get("id")
    if not is_valid_id(target):
        raise InvalidParamsError("id must be a string or a number", request_id=ctx.request_id)
    if not ctx.session.pending.get(target):
        return False
    if ctx.request_id is not None and target == ctx.request_id:
        return False
    return ctx.session.cancel_call(target, reason=f"canceled by request {ctx.request_id}")


async def bridge_stats(ctx: CallContext, _params: Any) -> dict[str, Any]:
    return ctx.session.stats()


def build_handler_registry(core: CoreHandle, engine_methods: Iterable[str] | None = None) -> HandlerRegistry:
    registry = HandlerRegistry()
    for name in core.methods() if engine_methods is None else engine_methods:
        registry.register(name, engine_handler(name))
    registry.register(CANCEL_METHOD, cancel_request, params_kind="object", builtin=True)
    registry.register(STATS_METHOD, bridge_stats, builtin=True)
    logger.debug("Handler registry built with {} methods", len(registry))
    return registry
