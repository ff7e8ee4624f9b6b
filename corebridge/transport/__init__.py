"""Transport adapters: in-process queue, WebSocket and stdio."""

from corebridge.transport.queue_adapter import QueueAdapter, SessionHandle
from corebridge.transport.stdio_adapter import StdioAdapter

__all__ = ["QueueAdapter", "SessionHandle", "StdioAdapter"]
