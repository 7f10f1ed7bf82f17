"""Batching engine: the event queues, identity resolution and tick-driven flushes.

Identified events are withheld until a user id has been resolved from the
first identify event. Anonymous events go out on every tick. The most
recently sent batch is kept until the transport reports success and is
resent, merged with newly queued events, on the next tick that sends.
A response that arrives after that resend means the collector sees those
events twice; delivery is at-least-once.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Optional, Protocol

from loguru import logger

from ..core.events import EventBatch, PendingIdentifiedEvent
from ..core.identity import decode_user_id
from ..core.status import ResponseStatus, SendOutcome
from .ticker import RepeatingTimer

FinalizedEvent = Dict[str, Any]


class Transport(Protocol):
    """Sends a batch and reports the outcome later through ``callback``."""

    def send(self, batch: EventBatch, callback: Callable[[SendOutcome], None]) -> None:
        """Issue the send without waiting for the response."""
        ...


@dataclass
class EngineConfig:
    """Configuration for the batching engine."""

    api_key: str = ""  # Empty disables sending
    app_name: str = ""
    library_name: str = "analytics-client"
    library_version: str = ""
    tick_interval_seconds: float = 10.0


@dataclass
class EngineState:
    """Mutable state owned by a single BatchingEngine."""

    api_key: str
    app_name: str
    library_name: str
    library_version: str

    resolved_user_id: Optional[str] = None
    started: bool = False
    pending_identified: List[PendingIdentifiedEvent] = field(default_factory=list)
    pending_anonymous: List[FinalizedEvent] = field(default_factory=list)
    in_flight_or_retry: List[FinalizedEvent] = field(default_factory=list)
    last_response_status: ResponseStatus = ResponseStatus.NOT_REQUESTED

    def snapshot(self) -> EngineState:
        """Copy of the state whose lists can be inspected without locking."""
        return replace(
            self,
            pending_identified=list(self.pending_identified),
            pending_anonymous=list(self.pending_anonymous),
            in_flight_or_retry=list(self.in_flight_or_retry),
        )


class BatchingEngine:
    """Buffers analytics events and flushes them as batches on a recurring tick."""

    def __init__(
        self,
        config: EngineConfig,
        transport: Transport,
        ticker_factory: Callable[[float, Callable[[], None]], RepeatingTimer] = RepeatingTimer,
    ):
        """Initialize the engine.

        Args:
            config: Engine configuration
            transport: Collaborator that performs the network send
            ticker_factory: Builds the repeating timer from (interval, callback)
        """
        if config.tick_interval_seconds <= 0:
            raise ValueError(f"Tick interval must be positive, got {config.tick_interval_seconds}")

        self.config = config
        self.transport = transport
        self._ticker_factory = ticker_factory

        self._state = EngineState(
            api_key=config.api_key,
            app_name=config.app_name,
            library_name=config.library_name,
            library_version=config.library_version,
        )
        self._lock = threading.RLock()
        self._ticker: Optional[RepeatingTimer] = None
        self._stopped = False
        self._warned_disabled = False

        # Statistics
        self._total_ticks = 0
        self._total_sends = 0
        self._total_successes = 0
        self._total_failures = 0
        self._total_events_sent = 0

    @property
    def state(self) -> EngineState:
        with self._lock:
            return self._state.snapshot()

    @property
    def resolved_user_id(self) -> Optional[str]:
        return self._state.resolved_user_id

    @property
    def last_response_status(self) -> ResponseStatus:
        return self._state.last_response_status

    @property
    def is_running(self) -> bool:
        return self._ticker is not None and not self._stopped

    def add_identified_event(self, event: PendingIdentifiedEvent) -> None:
        """Queue an event that must carry the resolved user id when sent."""
        with self._lock:
            state = self._state

            if state.resolved_user_id is None:
                # Probe only; the pending record is finalized for real at flush time
                user_id = decode_user_id(event.finalize(""))
                if user_id:
                    state.resolved_user_id = user_id
                    logger.info(f"Resolved user id {user_id!r}")

            state.pending_identified.append(event)
            logger.debug(f"Queued identified {event.event_type.value} event (pending: {len(state.pending_identified)})")

            if not state.started:
                self.handle_tick()

    def add_anonymous_event(self, event: FinalizedEvent) -> None:
        """Queue an event that needs no user identity."""
        with self._lock:
            state = self._state
            state.pending_anonymous.append(event)
            logger.debug(f"Queued anonymous {event.get('type')} event (pending: {len(state.pending_anonymous)})")

            if not state.started:
                self.handle_tick()

    def handle_tick(self) -> Optional[EventBatch]:
        """Decide whether to flush and send one batch.

        Returns:
            The batch handed to the transport, or None if nothing was sent
        """
        with self._lock:
            state = self._state
            self._total_ticks += 1

            self._ensure_ticker()

            can_flush_identified = bool(state.pending_identified) and state.resolved_user_id is not None

            candidate = list(state.in_flight_or_retry)
            if can_flush_identified:
                candidate.extend(event.finalize(state.resolved_user_id) for event in state.pending_identified)
            candidate.extend(state.pending_anonymous)

            batch: Optional[EventBatch] = None
            if not state.api_key:
                if not self._warned_disabled:
                    logger.warning("No API key configured, events stay queued and are never sent")
                    self._warned_disabled = True
            elif can_flush_identified:
                state.pending_identified = []
                state.pending_anonymous = []
                state.in_flight_or_retry = candidate
                batch = self._build_batch(candidate)
            elif state.pending_anonymous:
                state.pending_anonymous = []
                state.in_flight_or_retry = candidate
                batch = self._build_batch(candidate)
            else:
                logger.debug(f"Nothing to send this tick (identified waiting: {len(state.pending_identified)}, retry: {len(state.in_flight_or_retry)})")

            state.started = True

            if batch is not None:
                self._dispatch(batch)

            return batch

    def update_response_status(self, outcome: SendOutcome) -> None:
        """Record the outcome of the most recent send."""
        with self._lock:
            state = self._state
            state.last_response_status = outcome.status

            if outcome.status == ResponseStatus.SUCCESS:
                self._total_successes += 1
                self._total_events_sent += len(state.in_flight_or_retry)
                logger.info(f"Collector acknowledged batch of {len(state.in_flight_or_retry)} events")
                state.in_flight_or_retry = []
            elif outcome.status == ResponseStatus.FAILURE:
                self._total_failures += 1
                logger.warning(f"Batch send failed, {len(state.in_flight_or_retry)} events kept for resend: {outcome.error}")

    def force_flush(self) -> Optional[EventBatch]:
        """Run a tick now without waiting for the timer."""
        return self.handle_tick()

    def stop(self) -> None:
        """Cancel the repeating timer. Queued events are kept but no longer flushed automatically."""
        with self._lock:
            self._stopped = True
            ticker = self._ticker

        if ticker is not None:
            ticker.cancel()

        logger.info(f"Stopped batching engine. Stats - Ticks: {self._total_ticks}, Sends: {self._total_sends}, Acknowledged events: {self._total_events_sent}")

    def get_stats(self) -> Dict[str, Any]:
        """Get engine statistics."""
        with self._lock:
            state = self._state
            return {
                "running": self.is_running,
                "started": state.started,
                "sending_enabled": bool(state.api_key),
                "resolved_user_id": state.resolved_user_id,
                "pending_identified": len(state.pending_identified),
                "pending_anonymous": len(state.pending_anonymous),
                "in_flight_or_retry": len(state.in_flight_or_retry),
                "last_response_status": state.last_response_status.value,
                "total_ticks": self._total_ticks,
                "total_sends": self._total_sends,
                "total_successes": self._total_successes,
                "total_failures": self._total_failures,
                "total_events_sent": self._total_events_sent,
            }

    def _ensure_ticker(self) -> None:
        """Arm the repeating timer on the first tick. It re-fires on its own afterwards."""
        if self._ticker is not None or self._stopped:
            return

        self._ticker = self._ticker_factory(self.config.tick_interval_seconds, self.handle_tick)
        self._ticker.start()
        logger.info(f"Batching engine started, flushing every {self.config.tick_interval_seconds}s")

    def _build_batch(self, events: List[FinalizedEvent]) -> EventBatch:
        state = self._state
        return EventBatch(
            events=list(events),
            app_name=state.app_name,
            library_name=state.library_name,
            library_version=state.library_version,
        )

    def _dispatch(self, batch: EventBatch) -> None:
        """Hand the batch to the transport. Its outcome arrives via update_response_status."""
        self._state.last_response_status = ResponseStatus.PENDING
        self._total_sends += 1
        logger.info(f"Sending batch of {batch.size()} events")

        try:
            self.transport.send(batch, self.update_response_status)
        except Exception as e:
            logger.error(f"Transport raised while sending batch: {e}")
            self.update_response_status(SendOutcome.failure(f"Transport error: {e}"))
