"""Event batching module: queues, identity resolution and flush scheduling."""

from .engine import BatchingEngine, EngineConfig, EngineState, Transport
from .ticker import RepeatingTimer

__all__ = ["BatchingEngine", "EngineConfig", "EngineState", "RepeatingTimer", "Transport"]
