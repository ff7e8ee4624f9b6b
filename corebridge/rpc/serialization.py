"""Serialization helpers for JSON-RPC frames."""

from __future__ import annotations

import json
import math
from typing import Any

from loguru import logger

from .protocol import (
    JSONRPC_VERSION,
    OutboundItem,
    RequestId,
    RpcNotification,
    RpcRequest,
    RpcResponse,
    error_response,
)
from corebridge.utils.exceptions import INTERNAL_ERROR, InvalidRequestError, ParseError


def safe_dict(value: Any) -> dict[str, Any]:
    """Return the value when dict-like, otherwise an empty dict."""
    return value if isinstance(value, dict) else {}


def _reject_constant(name: str) -> Any:
    raise ParseError(f"parse error: {name} is not valid JSON")


def decode_envelope(raw: bytes | bytearray | str) -> Any:
    """Decode one inbound payload (single object or batch array)."""
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = bytes(raw).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ParseError("payload is not valid UTF-8") from exc
    try:
        return json.loads(raw, parse_constant=_reject_constant)
    except (json.JSONDecodeError, RecursionError) as exc:
        raise ParseError(f"parse error: {exc}") from exc


def is_valid_id(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    return isinstance(value, (int, float, str))


def recover_id(frame: Any) -> RequestId | None:
    """Best-effort id for error responses; None when it cannot be trusted."""
    if isinstance(frame, dict) and is_valid_id(frame.get("id")):
        return frame["id"]
    return None


def parse_request(frame: Any) -> RpcRequest:
    """Validate the structural shape of one request object."""
    if not isinstance(frame, dict):
        raise InvalidRequestError("request must be an object")
    request_id = recover_id(frame)
    if frame.get("jsonrpc") != JSONRPC_VERSION:
        raise InvalidRequestError('"jsonrpc" must be "2.0"', request_id=request_id)
    has_id = "id" in frame
    if has_id and not is_valid_id(frame["id"]):
        raise InvalidRequestError("id must be a string or a number")
    method = frame.get("method")
    if not isinstance(method, str) or not method:
        raise InvalidRequestError("method must be a non-empty string", request_id=request_id)
    params = frame.get("params", {})
    if not isinstance(params, (dict, list)):
        raise InvalidRequestError("params must be an object or an array", request_id=request_id)
    return RpcRequest(id=request_id, method=method, params=params, is_notification=not has_id)


def response_to_dict(response: RpcResponse) -> dict[str, Any]:
    payload: dict[str, Any] = {"jsonrpc": JSONRPC_VERSION, "id": response.id}
    if response.error is None:
        payload["result"] = response.result
        return payload
    error: dict[str, Any] = {"code": response.error.code, "message": response.error.message}
    if response.error.data is not None:
        error["data"] = response.error.data
    payload["error"] = error
    return payload


def notification_to_dict(notification: RpcNotification) -> dict[str, Any]:
    return {
        "jsonrpc": JSONRPC_VERSION,
        "method": notification.method,
        "params": notification.params,
        "seq": notification.seq,
    }


def _dumps(payload: dict[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=False, default=str, allow_nan=False)


def _finite(value: Any) -> Any:
    """Replace NaN and infinities with None, which JSON can carry."""
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, dict):
        return {k: _finite(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_finite(v) for v in value]
    return value


def encode_message(item: OutboundItem) -> str:
    """Encode an outbound item into one line of strict JSON."""
    if isinstance(item, RpcNotification):
        payload = notification_to_dict(item)
        try:
            return _dumps(payload)
        except ValueError:
            logger.warning("Notification seq={} carried non-finite numbers; sending them as null", item.seq)
            return _dumps(_finite(payload))
    try:
        return _dumps(response_to_dict(item))
    except ValueError:
        logger.warning("Result for id={} is not representable as JSON", item.id)
        return _dumps(response_to_dict(error_response(item.id, INTERNAL_ERROR, "result is not representable as JSON")))


def encode_message_bytes(item: OutboundItem) -> bytes:
    return encode_message(item).encode("utf-8")
