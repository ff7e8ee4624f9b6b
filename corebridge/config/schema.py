"""Configuration schema using Pydantic.

Single data model and defaults for the bridge, persisted to ~/.corebridge/config.json.
"""

from typing import Any

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SessionConfig(BaseModel):
    """Per-session delivery and teardown limits."""
    outbound_capacity: int = Field(default=1024, ge=1)
    # Best-effort wait for call tasks to finish after their tokens fire.
    teardown_grace_seconds: float = Field(default=2.0, ge=0)
    # How long a Response may wait for queue space before the session is failed.
    response_enqueue_timeout_seconds: float = Field(default=5.0, gt=0)


class SocketConfig(BaseModel):
    """Network socket transport (WebSocket endpoint)."""
    host: str = "127.0.0.1"
    port: int = 18790
    path: str = "/ws/rpc"


class QueueConfig(BaseModel):
    """In-process synchronous call/poll transport."""
    startup_timeout_seconds: float = 5.0
    # Cap on how long a foreign-thread call waits on the worker loop (poll timeouts add to this).
    call_timeout_seconds: float = 10.0


class EngineConfig(BaseModel):
    """Engine collaborator selection."""
    factory: str = "corebridge.engine.memory:InMemoryEngine"
    accounts_path: str = "accounts"
    options: dict[str, Any] = Field(default_factory=dict)


class LoggingConfig(BaseModel):
    """Logging sinks."""
    level: str = "INFO"
    file: bool = False


class Config(BaseSettings):
    """Root configuration for corebridge."""
    session: SessionConfig = Field(default_factory=SessionConfig)
    socket: SocketConfig = Field(default_factory=SocketConfig)
    queue: QueueConfig = Field(default_factory=QueueConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(
        env_prefix="COREBRIDGE_",
        env_nested_delimiter="__",
    )
