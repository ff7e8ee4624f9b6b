"""Resolve the configured engine factory."""

from __future__ import annotations

import importlib
from typing import Any

from corebridge.config.schema import EngineConfig
from corebridge.engine.handle import CoreEngine


def import_factory(path: str) -> Any:
    """Import ``module:attr`` and return the attribute."""
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"engine factory must look like 'package.module:attr', got {path!r}")
    module = importlib.import_module(module_name)
    try:
        return getattr(module, attr)
    except AttributeError as exc:
        raise ValueError(f"{module_name} has no attribute {attr!r}") from exc


def load_engine(config: EngineConfig) -> CoreEngine:
    factory = import_factory(config.factory)
    engine = factory(accounts_path=config.accounts_path, **config.options)
    if not isinstance(engine, CoreEngine):
        raise TypeError(f"{config.factory} did not produce an engine (needs methods/invoke/events)")
    return engine
