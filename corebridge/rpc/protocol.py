"""JSON-RPC 2.0 models shared by every transport."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

from corebridge.utils.exceptions import (
    CANCELED,
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
)

JSONRPC_VERSION = "2.0"
EVENT_METHOD = "event"

ERROR_MESSAGES: dict[int, str] = {
    PARSE_ERROR: "parse error",
    INVALID_REQUEST: "invalid request",
    METHOD_NOT_FOUND: "method not found",
    INVALID_PARAMS: "invalid params",
    INTERNAL_ERROR: "internal error",
    CANCELED: "canceled",
}

RequestId = Union[int, float, str]


@dataclass(slots=True)
class RpcError:
    """Error member of a response."""

    code: int
    message: str
    data: Any = None


@dataclass(slots=True)
class RpcRequest:
    """Parsed request; ``is_notification`` when the caller sent no id member."""

    id: RequestId | None
    method: str
    params: Any
    is_notification: bool = False


@dataclass(slots=True)
class RpcResponse:
    """Exactly one per accepted request that was not canceled."""

    id: RequestId | None
    result: Any = None
    error: RpcError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(slots=True)
class RpcNotification:
    """Server-to-client message; ``seq`` is per-session and monotonic."""

    method: str
    params: Any
    seq: int


OutboundItem = Union[RpcResponse, RpcNotification]


def error_response(request_id: RequestId | None, code: int, message: str | None = None, data: Any = None) -> RpcResponse:
    return RpcResponse(
        id=request_id,
        error=RpcError(code=code, message=message or ERROR_MESSAGES.get(code, "error"), data=data),
    )
