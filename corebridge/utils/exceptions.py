"""
Exception hierarchy and error handling utilities for corebridge.

Provides:
- Bridge exception classes with error codes and JSON-RPC codes
- Error categorization (protocol, engine, transport, resource)
- Message scrubbing before anything reaches a client
"""

from __future__ import annotations

import asyncio
import json
import re
from enum import Enum
from typing import Any

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
CANCELED = -32001


class ErrorCategory(Enum):
    """Coarse buckets used in error details and logs."""
    PROTOCOL = "protocol"
    ENGINE = "engine"
    CANCELED = "canceled"
    TRANSPORT = "transport"
    RESOURCE = "resource"
    VALIDATION = "validation"
    TIMEOUT = "timeout"
    FATAL = "fatal"


class CoreBridgeError(Exception):
    """Base exception for all corebridge errors."""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        category: ErrorCategory = ErrorCategory.FATAL,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.code,
            "message": self.message,
            "category": self.category.value,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class ProtocolError(CoreBridgeError):
    """Malformed envelope or unusable request; always answered locally."""

    rpc_code = INVALID_REQUEST

    def __init__(
        self,
        message: str,
        *,
        request_id: Any = None,
        data: Any = None,
        rpc_code: int | None = None,
    ):
        super().__init__(message, code="PROTOCOL_ERROR", category=ErrorCategory.PROTOCOL)
        if rpc_code is not None:
            self.rpc_code = rpc_code
        self.request_id = request_id
        self.data = data


class ParseError(ProtocolError):
    """Payload is not decodable structured data."""

    rpc_code = PARSE_ERROR

    def __init__(self, message: str = "parse error", *, data: Any = None):
        super().__init__(message, data=data)
        self.code = "PARSE_ERROR"


class InvalidRequestError(ProtocolError):
    """Payload decoded but is not a valid request object."""

    rpc_code = INVALID_REQUEST

    def __init__(self, message: str = "invalid request", *, request_id: Any = None, data: Any = None):
        super().__init__(message, request_id=request_id, data=data)
        self.code = "INVALID_REQUEST"


class MethodNotFoundError(ProtocolError):
    """Requested method is not in the handler registry."""

    rpc_code = METHOD_NOT_FOUND

    def __init__(self, method: str, *, request_id: Any = None):
        super().__init__(f"method not found: {method}", request_id=request_id, data={"method": method})
        self.code = "METHOD_NOT_FOUND"


class InvalidParamsError(ProtocolError):
    """Params have the wrong shape for the handler."""

    rpc_code = INVALID_PARAMS

    def __init__(self, message: str = "invalid params", *, request_id: Any = None, data: Any = None):
        super().__init__(message, request_id=request_id, data=data)
        self.code = "INVALID_PARAMS"
        self.category = ErrorCategory.VALIDATION


class EngineError(CoreBridgeError):
    """Failure reported by the engine; message and data are passed through verbatim."""

    def __init__(self, message: str, data: Any = None):
        super().__init__(message, code="ENGINE_ERROR", category=ErrorCategory.ENGINE)
        self.data = data


class CallCanceled(CoreBridgeError):
    """A pending call's cancellation token fired before the engine answered."""

    def __init__(self, request_id: Any = None, reason: str = "canceled"):
        super().__init__(
            reason,
            code="CANCELED",
            category=ErrorCategory.CANCELED,
            details={"request_id": request_id},
        )
        self.request_id = request_id


class TransportClosed(CoreBridgeError):
    """Session was torn down or the handle was invalidated."""

    def __init__(self, message: str = "transport closed"):
        super().__init__(message, code="TRANSPORT_CLOSED", category=ErrorCategory.TRANSPORT)


class TransportFault(CoreBridgeError):
    """I/O or framing failure; tears the owning session down."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, code="TRANSPORT_FAULT", category=ErrorCategory.TRANSPORT, details=details)


class OutboundQueueFull(CoreBridgeError):
    """A Response could not be enqueued; fatal for the owning session only."""

    def __init__(self, session_id: str, capacity: int, waited_seconds: float):
        super().__init__(
            f"outbound queue of session {session_id} stayed full for {waited_seconds}s",
            code="RESOURCE_EXHAUSTED",
            category=ErrorCategory.RESOURCE,
            details={"session_id": session_id, "capacity": capacity, "waited_seconds": waited_seconds},
        )


_SENSITIVE_PATTERNS = [
    re.compile(r"(api[_-]?key|token|secret|password|passphrase|auth)[=:]\s*['\"]?([^\s'\"]+)['\"]?", re.IGNORECASE),
    re.compile(r"bearer\s+[a-zA-Z0-9\-._~+/]+=*", re.IGNORECASE),
    re.compile(r"-----BEGIN [A-Z ]*PRIVATE KEY-----[\s\S]*?-----END [A-Z ]*PRIVATE KEY-----"),
    re.compile(r"[a-zA-Z0-9]{40,}"),
]


def sanitize_error_message(message: str, replacement: str = "[REDACTED]") -> str:
    """Redact credentials before a message leaves the bridge."""
    sanitized = message
    for pattern in _SENSITIVE_PATTERNS:
        sanitized = pattern.sub(replacement, sanitized)
    return sanitized


def classify_exception(exc: Exception) -> tuple[str, ErrorCategory]:
    """Map any exception to (error_code, category)."""
    exc_str = str(exc).lower()

    if isinstance(exc, CoreBridgeError):
        return exc.code, exc.category

    if isinstance(exc, asyncio.TimeoutError):
        return "TIMEOUT", ErrorCategory.TIMEOUT

    if isinstance(exc, ConnectionError):
        return "CONNECTION_ERROR", ErrorCategory.TRANSPORT

    if isinstance(exc, json.JSONDecodeError):
        return "JSON_PARSE_ERROR", ErrorCategory.PROTOCOL

    if isinstance(exc, UnicodeDecodeError):
        return "ENCODING_ERROR", ErrorCategory.PROTOCOL

    if isinstance(exc, MemoryError):
        return "OUT_OF_MEMORY", ErrorCategory.RESOURCE

    if isinstance(exc, ValueError):
        return "INVALID_VALUE", ErrorCategory.VALIDATION

    if isinstance(exc, KeyError):
        return "MISSING_KEY", ErrorCategory.VALIDATION

    if isinstance(exc, TypeError):
        return "TYPE_ERROR", ErrorCategory.VALIDATION

    if "timeout" in exc_str or "timed out" in exc_str:
        return "TIMEOUT", ErrorCategory.TIMEOUT

    if "connection" in exc_str or "network" in exc_str:
        return "CONNECTION_ERROR", ErrorCategory.TRANSPORT

    return "INTERNAL_ERROR", ErrorCategory.FATAL
