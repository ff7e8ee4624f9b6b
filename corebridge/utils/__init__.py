"""Utility functions for corebridge."""

from corebridge.utils.exceptions import (
    CoreBridgeError,
    ProtocolError,
    ParseError,
    InvalidRequestError,
    MethodNotFoundError,
    InvalidParamsError,
    EngineError,
    CallCanceled,
    TransportClosed,
    TransportFault,
    OutboundQueueFull,
    ErrorCategory,
    classify_exception,
    sanitize_error_message,
)
from corebridge.utils.logging import configure_logging, ensure_rotating_log_file

__all__ = [
    "CoreBridgeError",
    "ProtocolError",
    "ParseError",
    "InvalidRequestError",
    "MethodNotFoundError",
    "InvalidParamsError",
    "EngineError",
    "CallCanceled",
    "TransportClosed",
    "TransportFault",
    "OutboundQueueFull",
    "ErrorCategory",
    "classify_exception",
    "sanitize_error_message",
    "configure_logging",
    "ensure_rotating_log_file",
]
