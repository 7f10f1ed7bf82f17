"""HTTP transport module for sending batches to the analytics collector."""

from .http_sender import DEFAULT_ENDPOINT_URL, HTTPSender, SenderConfig, create_default_sender

__all__ = ["HTTPSender", "SenderConfig", "DEFAULT_ENDPOINT_URL", "create_default_sender"]
