"""Analytics client facade wiring the batching engine to the HTTP sender.

Application code talks to ``AnalyticsClient``: identify the user, record page
views and tracked actions, and optionally flush or shut down. The client owns
one engine; several clients can live side by side in one process.
"""

from __future__ import annotations

import uuid
from typing import Any, Dict, Optional

from loguru import logger

from ..batcher import BatchingEngine
from ..config import AnalyticsConfig
from ..core import events
from ..core.events import EventBatch
from ..core.status import ResponseStatus
from ..sender import HTTPSender


class AnalyticsClient:
    """Entry point for producing analytics events."""

    def __init__(
        self,
        config: AnalyticsConfig,
        anonymous_id: Optional[str] = None,
        transport=None,
        ticker_factory=None,
    ):
        """Initialize the client.

        Args:
            config: Analytics configuration
            anonymous_id: Id for anonymous events (generated if not provided)
            transport: Transport override, defaults to an HTTPSender built from config
            ticker_factory: Timer factory override for the engine
        """
        is_valid, errors = config.validate()
        if not is_valid:
            logger.error(f"Invalid analytics configuration: {errors}")
            raise ValueError(f"Invalid analytics configuration: {'; '.join(errors)}")

        self.config = config
        self.anonymous_id = anonymous_id or uuid.uuid4().hex

        self.sender = transport if transport is not None else HTTPSender(config.get_sender_config())

        engine_kwargs = {}
        if ticker_factory is not None:
            engine_kwargs["ticker_factory"] = ticker_factory
        self.engine = BatchingEngine(config.get_engine_config(), self.sender, **engine_kwargs)

        logger.info(f"Initialized analytics client for app {config.app_name!r} (anonymous id: {self.anonymous_id})")

    @property
    def last_response_status(self) -> ResponseStatus:
        return self.engine.last_response_status

    @property
    def user_id(self) -> Optional[str]:
        return self.engine.resolved_user_id

    def identify(self, user_id: str, traits: Optional[Dict[str, Any]] = None) -> None:
        """Declare who the user is. The first identify fixes the user id for this client."""
        self.engine.add_identified_event(events.identify(user_id, traits))

    def page(self, name: str, properties: Optional[Dict[str, Any]] = None, anonymous: bool = False) -> None:
        """Record a page view."""
        if anonymous:
            self.engine.add_anonymous_event(events.page(name, self.anonymous_id, properties))
        else:
            self.engine.add_identified_event(events.pending_page(name, properties))

    def track(self, event: str, properties: Optional[Dict[str, Any]] = None, anonymous: bool = False) -> None:
        """Record a tracked action."""
        if anonymous:
            self.engine.add_anonymous_event(events.track(event, self.anonymous_id, properties))
        else:
            self.engine.add_identified_event(events.pending_track(event, properties))

    def flush(self) -> Optional[EventBatch]:
        """Flush now instead of waiting for the next tick."""
        return self.engine.force_flush()

    def shutdown(self, flush: bool = False) -> None:
        """Stop the flush timer, optionally flushing once first.

        Events still queued afterwards are lost when the process exits.
        """
        if flush:
            self.flush()

        self.engine.stop()

        remaining = self.engine.get_stats()
        queued = remaining["pending_identified"] + remaining["pending_anonymous"] + remaining["in_flight_or_retry"]
        if queued:
            logger.warning(f"Analytics client shut down with {queued} unacknowledged events")

    def get_stats(self) -> Dict[str, Any]:
        """Get engine and sender statistics."""
        stats: Dict[str, Any] = {
            "anonymous_id": self.anonymous_id,
            "engine": self.engine.get_stats(),
        }

        if isinstance(self.sender, HTTPSender):
            stats["sender"] = self.sender.get_stats()

        return stats


def create_default_client(
    api_key: str,
    app_name: str,
    tick_interval_seconds: Optional[float] = None,
    endpoint_url: Optional[str] = None,
) -> AnalyticsClient:
    """Create an analytics client with default configuration.

    Args:
        api_key: Collector API key (empty disables sending)
        app_name: Application name reported in every batch
        tick_interval_seconds: Optional flush interval
        endpoint_url: Optional collector URL

    Returns:
        Configured analytics client
    """
    config = AnalyticsConfig(api_key=api_key, app_name=app_name)

    if tick_interval_seconds is not None:
        config.tick_interval_seconds = tick_interval_seconds

    if endpoint_url:
        config.endpoint_url = endpoint_url

    return AnalyticsClient(config)
