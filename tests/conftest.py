"""Pytest hooks and fixtures."""

import pytest

from corebridge.config.schema import Config
from corebridge.engine.memory import InMemoryEngine


@pytest.fixture
def config() -> Config:
    """Defaults with short waits so teardown and backpressure tests stay fast."""
    cfg = Config()
    cfg.session.teardown_grace_seconds = 0.5
    cfg.session.response_enqueue_timeout_seconds = 0.3
    cfg.queue.call_timeout_seconds = 5.0
    return cfg


@pytest.fixture
def engine() -> InMemoryEngine:
    return InMemoryEngine(accounts_path="test-accounts")


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    """Keep developer env overrides out of config-driven tests."""
    monkeypatch.delenv("DC_ACCOUNTS_PATH", raising=False)
