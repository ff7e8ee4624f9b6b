"""JSON-RPC 2.0 wire types and codec.

The dispatcher and handler registry live in ``corebridge.rpc.dispatcher`` and
``corebridge.rpc.registry``; they depend on session state and are imported
directly.
"""

from corebridge.rpc.protocol import (
    EVENT_METHOD,
    JSONRPC_VERSION,
    RpcError,
    RpcNotification,
    RpcRequest,
    RpcResponse,
    error_response,
)
from corebridge.rpc.serialization import decode_envelope, encode_message, parse_request

__all__ = [
    "EVENT_METHOD",
    "JSONRPC_VERSION",
    "RpcError",
    "RpcNotification",
    "RpcRequest",
    "RpcResponse",
    "decode_envelope",
    "encode_message",
    "error_response",
    "parse_request",
]
