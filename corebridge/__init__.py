"""corebridge - JSON-RPC bridge between a messaging engine and its callers."""

__version__ = "0.1.0"
__logo__ = "⇄"
