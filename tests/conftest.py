"""Shared fixtures: a recording transport and a manually driven ticker."""

from __future__ import annotations

import copy

import pytest

from analytics_client.batcher import BatchingEngine, EngineConfig


class RecordingTransport:
    """Records every batch payload and leaves the outcome to the test."""

    def __init__(self):
        self.payloads = []
        self.callbacks = []

    def send(self, batch, callback):
        self.payloads.append(copy.deepcopy(batch.to_dict()))
        self.callbacks.append(callback)

    @property
    def sent_batches(self):
        return [payload["batch"] for payload in self.payloads]


class ManualTicker:
    """Stands in for RepeatingTimer; tests fire ticks explicitly."""

    def __init__(self, interval_seconds, callback):
        self.interval_seconds = interval_seconds
        self.callback = callback
        self.started = 0
        self.cancelled = False

    def start(self):
        self.started += 1

    def cancel(self, timeout=5.0):
        self.cancelled = True

    def fire(self, times=1):
        for _ in range(times):
            self.callback()


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def engine_factory(transport):
    def build(api_key="write-key", **overrides):
        config = EngineConfig(api_key=api_key, app_name="storefront", library_name="analytics-client", library_version="1.0.0", **overrides)
        return BatchingEngine(config, transport, ticker_factory=ManualTicker)

    return build


@pytest.fixture
def engine(engine_factory):
    return engine_factory()
