"""Configuration module for the analytics client."""

from .logger_config import setup_logging
from .settings import DEFAULT_ENDPOINT_URL, AnalyticsConfig, ConfigManager, get_config_manager, get_current_config

__all__ = ["AnalyticsConfig", "ConfigManager", "DEFAULT_ENDPOINT_URL", "get_config_manager", "get_current_config", "setup_logging"]
