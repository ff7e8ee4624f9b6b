"""Common RPC error-boundary helpers for request dispatch."""

from __future__ import annotations

from typing import Any, Callable

from corebridge.rpc.protocol import RequestId, RpcResponse, error_response
from corebridge.utils.exceptions import (
    INTERNAL_ERROR,
    EngineError,
    ProtocolError,
    classify_exception,
    sanitize_error_message,
)


def protocol_error_response(
    *,
    exc: ProtocolError,
    request_id: RequestId | None = None,
    log_debug: Callable[..., None] | None = None,
) -> RpcResponse:
    """Map a ProtocolError to its JSON-RPC error code."""
    rid = exc.request_id if exc.request_id is not None else request_id
    if log_debug is not None:
        log_debug("RPC rejected id={} code={}: {}", rid, exc.rpc_code, exc.message)
    return error_response(rid, exc.rpc_code, exc.message, exc.data)


def engine_error_response(
    *,
    request_id: RequestId | None,
    method: str,
    exc: EngineError,
    log_warning: Callable[..., None],
) -> RpcResponse:
    """Wrap an engine failure verbatim: message and data are not reinterpreted."""
    log_warning("RPC method {} failed in engine: {}", method, exc.message)
    return error_response(request_id, INTERNAL_ERROR, exc.message, exc.data)


def unhandled_exception_response(
    *,
    request_id: RequestId | None,
    method: str,
    exc: Exception,
    log_exception: Callable[..., None],
) -> RpcResponse:
    """Map unexpected exceptions to standardized internal-error responses."""
    code, category = classify_exception(exc)
    sanitized = sanitize_error_message(str(exc)) or type(exc).__name__
    log_exception("RPC method {} failed with [{}]: {}", method, code, sanitized)
    details: dict[str, Any] = {"error_code": code, "category": category.value}
    return error_response(request_id, INTERNAL_ERROR, sanitized, details)
