"""Analytics client - batched delivery of identify, page and track events."""

__version__ = "1.0.0"

from .batcher import BatchingEngine, EngineConfig
from .config import AnalyticsConfig, get_config_manager, setup_logging
from .core import ResponseStatus, SendOutcome
from .orchestrator import AnalyticsClient, create_default_client
from .sender import HTTPSender

__all__ = [
    "AnalyticsClient",
    "AnalyticsConfig",
    "BatchingEngine",
    "EngineConfig",
    "HTTPSender",
    "ResponseStatus",
    "SendOutcome",
    "create_default_client",
    "get_config_manager",
    "setup_logging",
]
