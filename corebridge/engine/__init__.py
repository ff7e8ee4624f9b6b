"""Engine collaborator facade and bundled engines."""

from corebridge.engine.handle import CoreEngine, CoreEvent, CoreHandle
from corebridge.engine.loader import load_engine
from corebridge.engine.memory import InMemoryEngine

__all__ = ["CoreEngine", "CoreEvent", "CoreHandle", "InMemoryEngine", "load_engine"]
