"""Loguru helpers for consistent console and file logging."""

from __future__ import annotations

import sys
from pathlib import Path

from loguru import logger

_SINK_IDS: dict[str, int] = {}


def get_log_dir() -> Path:
    return Path.home() / ".corebridge" / "logs"


def configure_logging(level: str = "INFO", file_name: str | None = None) -> Path | None:
    """Route logs to stderr at the given level; stdout stays free for protocol frames.

    With ``file_name`` a rotating file sink is added as well and its path returned.
    """
    console_id = _SINK_IDS.pop("__console__", None)
    if console_id is None:
        logger.remove()
        _SINK_IDS.clear()
    else:
        logger.remove(console_id)
    _SINK_IDS["__console__"] = logger.add(sys.stderr, level=level.upper())
    if file_name:
        return ensure_rotating_log_file(file_name, level.upper())
    return None


def ensure_rotating_log_file(name: str, level: str = "INFO") -> Path:
    """Ensure a rotating log sink for the given command name."""
    log_path = get_log_dir() / f"{name}.log"
    if name in _SINK_IDS:
        return log_path
    log_path.parent.mkdir(parents=True, exist_ok=True)
    sink_id = logger.add(
        str(log_path),
        level=level,
        rotation="10 MB",
        retention="14 days",
        enqueue=True,
        encoding="utf-8",
        backtrace=False,
        diagnose=False,
    )
    _SINK_IDS[name] = sink_id
    return log_path
