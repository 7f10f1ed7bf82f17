"""Client facade coordinating the batching engine and the sender."""

from .analytics_client import AnalyticsClient, create_default_client

__all__ = ["AnalyticsClient", "create_default_client"]
