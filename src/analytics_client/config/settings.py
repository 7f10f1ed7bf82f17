"""Configuration management for the analytics client.

This module provides the client configuration with environment variable
overrides and splits it into the per-component configs used by the batching
engine and the HTTP sender.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from loguru import logger

from .. import __version__
from ..batcher import EngineConfig
from ..sender import DEFAULT_ENDPOINT_URL, SenderConfig


@dataclass
class AnalyticsConfig:
    """Complete analytics client configuration."""

    # Collector settings
    api_key: str = ""  # Empty disables sending
    endpoint_url: str = DEFAULT_ENDPOINT_URL
    timeout_seconds: int = 30

    # Context attached to every batch
    app_name: str = ""
    library_name: str = "analytics-client"
    library_version: str = __version__

    # Flush cadence (seconds)
    tick_interval_seconds: float = 10.0

    # Logging
    log_level: str = "INFO"
    log_to_console: bool = True
    log_to_file: bool = False
    log_file_path: Path = field(default_factory=lambda: Path.cwd() / "logs" / "analytics_client.log")
    log_rotation: str = "10 MB"
    log_retention: str = "7 days"

    def __post_init__(self):
        """Apply environment variable overrides."""
        self._apply_env_overrides()

    def _apply_env_overrides(self):
        """Apply configuration overrides from environment variables."""
        if api_key := os.getenv("ANALYTICS_API_KEY"):
            self.api_key = api_key

        if app_name := os.getenv("ANALYTICS_APP_NAME"):
            self.app_name = app_name

        if endpoint_url := os.getenv("ANALYTICS_ENDPOINT_URL"):
            self.endpoint_url = endpoint_url

        if tick_interval := os.getenv("ANALYTICS_TICK_INTERVAL"):
            try:
                self.tick_interval_seconds = float(tick_interval)
            except ValueError:
                logger.warning(f"Invalid tick interval: {tick_interval}")

        if timeout := os.getenv("ANALYTICS_TIMEOUT"):
            try:
                self.timeout_seconds = int(timeout)
            except ValueError:
                logger.warning(f"Invalid timeout: {timeout}")

        if log_level := os.getenv("ANALYTICS_LOG_LEVEL"):
            self.log_level = log_level.upper()

    def get_engine_config(self) -> EngineConfig:
        """Get configuration for the batching engine."""
        return EngineConfig(
            api_key=self.api_key,
            app_name=self.app_name,
            library_name=self.library_name,
            library_version=self.library_version,
            tick_interval_seconds=self.tick_interval_seconds,
        )

    def get_sender_config(self) -> SenderConfig:
        """Get configuration for the HTTP sender."""
        return SenderConfig(
            endpoint_url=self.endpoint_url,
            api_key=self.api_key,
            timeout_seconds=self.timeout_seconds,
            user_agent=f"{self.library_name}/{self.library_version}",
        )

    def validate(self) -> tuple[bool, list[str]]:
        """Validate the configuration.

        An empty API key is not an error: it puts the client in a mode where
        events are queued but never sent.

        Returns:
            Tuple of (is_valid, error_messages)
        """
        errors = []

        if not self.endpoint_url:
            errors.append("Endpoint URL is required")

        if self.tick_interval_seconds <= 0:
            errors.append("Tick interval must be positive")

        if self.timeout_seconds <= 0:
            errors.append("Timeout must be positive")

        if not self.api_key:
            logger.warning("No API key configured, events will be queued but never sent")

        return len(errors) == 0, errors


class ConfigManager:
    """Manages analytics client configuration."""

    def __init__(self):
        """Initialize configuration manager."""
        self._config: Optional[AnalyticsConfig] = None

    def load_config(
        self,
        api_key: Optional[str] = None,
        app_name: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        tick_interval_seconds: Optional[float] = None,
    ) -> AnalyticsConfig:
        """Load configuration with optional overrides.

        Args:
            api_key: API key override
            app_name: Application name override
            endpoint_url: Collector URL override
            tick_interval_seconds: Flush interval override

        Returns:
            Configured AnalyticsConfig instance
        """
        config = AnalyticsConfig()

        # Apply parameter overrides
        if api_key:
            config.api_key = api_key

        if app_name:
            config.app_name = app_name

        if endpoint_url:
            config.endpoint_url = endpoint_url

        if tick_interval_seconds is not None:
            config.tick_interval_seconds = tick_interval_seconds

        self._config = config
        return config

    def get_config(self) -> Optional[AnalyticsConfig]:
        """Get current configuration."""
        return self._config

    def validate_config(self) -> tuple[bool, list[str]]:
        """Validate current configuration.

        Returns:
            Tuple of (is_valid, error_messages)
        """
        if not self._config:
            return False, ["No configuration loaded"]

        return self._config.validate()


# Global configuration manager instance
_config_manager = ConfigManager()


def get_config_manager() -> ConfigManager:
    """Get the global configuration manager."""
    return _config_manager


def get_current_config() -> Optional[AnalyticsConfig]:
    """Get the current configuration."""
    return _config_manager.get_config()
