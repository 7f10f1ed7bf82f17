"""HTTP sender for transmitting event batches to the analytics collector.

This module provides the transport used by the batching engine. Each batch
is POSTed as JSON with a Basic auth header derived from the API key. The
engine does its own resending, so a failed request is reported once and not
retried here.
"""

from __future__ import annotations

import base64
import json
import threading
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from loguru import logger

from ..core.events import EventBatch
from ..core.status import SendOutcome

DEFAULT_ENDPOINT_URL = "https://api.segment.io/v1/batch"


@dataclass
class SenderConfig:
    """Configuration for the HTTP sender."""

    endpoint_url: str = DEFAULT_ENDPOINT_URL  # Batch ingestion endpoint
    api_key: str = ""  # Used as the Basic auth username
    timeout_seconds: int = 30  # Request timeout
    user_agent: str = "analytics-client"


class HTTPSender:
    """HTTP sender for transmitting event batches."""

    def __init__(self, config: Optional[SenderConfig] = None):
        """Initialize the HTTP sender.

        Args:
            config: Sender configuration
        """
        self.config = config or SenderConfig()
        self._lock = threading.Lock()

        # Statistics
        self._total_batches_sent = 0
        self._total_batches_failed = 0
        self._total_events_sent = 0
        self._total_send_time = 0.0
        self._last_successful_send: Optional[datetime] = None
        self._last_error: Optional[str] = None

    def build_headers(self) -> Dict[str, str]:
        """Build request headers, including Basic auth from the API key."""
        credentials = base64.b64encode(f"{self.config.api_key}:".encode("utf-8")).decode("ascii")
        return {
            "Content-Type": "application/json",
            "Authorization": f"Basic {credentials}",
            "User-Agent": self.config.user_agent,
        }

    def send(self, batch: EventBatch, callback: Callable[[SendOutcome], None]) -> None:
        """Send a batch in the background and report the outcome to ``callback``.

        Args:
            batch: Event batch to send
            callback: Receives the SendOutcome once the request completes
        """
        thread = threading.Thread(target=self._send_and_report, args=(batch, callback), name="analytics-sender", daemon=True)
        thread.start()

    def send_batch(self, batch: EventBatch) -> SendOutcome:
        """Send a batch of events to the collector and wait for the response.

        Args:
            batch: Event batch to send

        Returns:
            SUCCESS with the parsed response body, or FAILURE with the reason
        """
        start_time = time.time()
        outcome = self._send_request(batch.to_dict())
        send_time = time.time() - start_time

        with self._lock:
            self._total_send_time += send_time

            if outcome.is_success:
                self._total_batches_sent += 1
                self._total_events_sent += batch.size()
                self._last_successful_send = datetime.now()
                self._last_error = None
            else:
                self._total_batches_failed += 1
                self._last_error = outcome.error

        if outcome.is_success:
            logger.info(f"Successfully sent batch with {batch.size()} events in {send_time:.2f}s")
        else:
            logger.error(f"Failed to send batch with {batch.size()} events: {outcome.error}")

        return outcome

    def get_stats(self) -> Dict[str, Any]:
        """Get sender statistics.

        Returns:
            Dictionary with sender statistics
        """
        with self._lock:
            attempts = max(1, self._total_batches_sent + self._total_batches_failed)

            return {
                "total_batches_sent": self._total_batches_sent,
                "total_batches_failed": self._total_batches_failed,
                "total_events_sent": self._total_events_sent,
                "success_rate": self._total_batches_sent / attempts,
                "average_send_time_seconds": self._total_send_time / attempts,
                "last_successful_send": self._last_successful_send.isoformat() if self._last_successful_send else None,
                "last_error": self._last_error,
            }

    def _send_and_report(self, batch: EventBatch, callback: Callable[[SendOutcome], None]) -> None:
        try:
            outcome = self.send_batch(batch)
        except Exception as e:
            logger.error(f"Unexpected error sending batch: {e}")
            outcome = SendOutcome.failure(f"Unexpected error sending batch: {e}")

        try:
            callback(outcome)
        except Exception:
            logger.exception("Send outcome callback raised")

    def _send_request(self, payload: Dict[str, Any]) -> SendOutcome:
        """Send a single HTTP request.

        Args:
            payload: JSON payload to send

        Returns:
            Outcome of the request
        """
        try:
            req = Request(
                self.config.endpoint_url,
                data=json.dumps(payload).encode("utf-8"),
                headers=self.build_headers(),
                method="POST",
            )

            with urlopen(req, timeout=self.config.timeout_seconds) as response:
                if 200 <= response.status < 300:
                    body = response.read().decode("utf-8")
                    logger.debug(f"Successful response: {response.status}")
                    return SendOutcome.success(json.loads(body) if body.strip() else None)
                else:
                    return SendOutcome.failure(f"HTTP {response.status}: {response.reason}")

        except HTTPError as e:
            error_msg = f"HTTP error: {e.code} {e.reason}"
            if e.code == 401:
                error_msg += " (invalid API key)"
            return SendOutcome.failure(error_msg)

        except URLError as e:
            return SendOutcome.failure(f"Network error: {e.reason}")

        except json.JSONDecodeError as e:
            return SendOutcome.failure(f"Invalid JSON response: {e}")

        except Exception as e:
            return SendOutcome.failure(f"Request error: {e}")


def create_default_sender(api_key: str, endpoint_url: Optional[str] = None) -> HTTPSender:
    """Create an HTTP sender with default configuration.

    Args:
        api_key: Collector API key
        endpoint_url: Optional collector URL (defaults to the batch endpoint)

    Returns:
        Configured HTTP sender
    """
    config = SenderConfig(
        endpoint_url=endpoint_url or DEFAULT_ENDPOINT_URL,
        api_key=api_key,
    )

    return HTTPSender(config)
