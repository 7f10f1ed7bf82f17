"""Repeating timer that drives the batching engine's flush ticks."""

from __future__ import annotations

import threading
from typing import Callable, Optional

from loguru import logger


class RepeatingTimer:
    """Invokes a callback every ``interval_seconds`` on a daemon thread until cancelled."""

    def __init__(self, interval_seconds: float, callback: Callable[[], None], name: str = "analytics-ticker"):
        """Initialize the timer.

        Args:
            interval_seconds: Delay between two callback invocations
            callback: Function to call on every tick
            name: Thread name, useful in logs
        """
        if interval_seconds <= 0:
            raise ValueError(f"Tick interval must be positive, got {interval_seconds}")

        self.interval_seconds = interval_seconds
        self.callback = callback
        self.name = name

        self._cancelled = threading.Event()
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._fired = 0

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._cancelled.is_set()

    @property
    def fired(self) -> int:
        """Number of times the callback has been invoked."""
        return self._fired

    def start(self) -> None:
        """Start ticking. Calling start on a running timer does nothing."""
        with self._lock:
            if self._thread is not None:
                return

            self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
            self._thread.start()
            logger.debug(f"Started {self.name} with interval {self.interval_seconds}s")

    def cancel(self, timeout: float = 5.0) -> None:
        """Stop scheduling further ticks and wait for the thread to exit."""
        self._cancelled.set()

        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)

        logger.debug(f"Cancelled {self.name} after {self._fired} ticks")

    def _run(self) -> None:
        # wait() returns True only once cancelled
        while not self._cancelled.wait(self.interval_seconds):
            self._fired += 1
            try:
                self.callback()
            except Exception:
                logger.exception(f"Tick callback of {self.name} raised, continuing")
