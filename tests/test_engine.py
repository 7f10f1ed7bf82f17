"""Tests for the batching engine's queueing, identity latch and flush decisions."""

import pytest

from analytics_client.core import ResponseStatus, SendOutcome, events


def anonymous_track(name="Clicked", anonymous_id="anon-1", **properties):
    return events.track(name, anonymous_id, properties)


def test_engine_starts_unstarted_with_no_requests(engine, transport):
    state = engine.state

    assert state.started is False
    assert state.resolved_user_id is None
    assert state.last_response_status == ResponseStatus.NOT_REQUESTED
    assert state.api_key == "write-key"
    assert state.app_name == "storefront"
    assert not engine.is_running
    assert transport.payloads == []


def test_first_add_bootstraps_timer_and_first_flush(engine, transport):
    engine.add_anonymous_event(anonymous_track())

    assert engine.state.started is True
    assert engine.is_running
    assert engine._ticker.started == 1
    assert engine._ticker.interval_seconds == engine.config.tick_interval_seconds
    assert len(transport.payloads) == 1


def test_later_adds_do_not_flush_until_tick(engine, transport):
    engine.add_anonymous_event(anonymous_track("First"))
    engine.add_anonymous_event(anonymous_track("Second"))
    engine.add_anonymous_event(anonymous_track("Third"))

    assert len(transport.payloads) == 1
    assert engine.state.pending_anonymous == [anonymous_track("Second"), anonymous_track("Third")]

    engine._ticker.fire()

    assert len(transport.payloads) == 2
    assert engine.state.pending_anonymous == []


def test_timer_is_armed_only_once(engine):
    engine.add_anonymous_event(anonymous_track())
    ticker = engine._ticker

    ticker.fire(3)
    engine.force_flush()

    assert engine._ticker is ticker
    assert ticker.started == 1


def test_identify_resolves_user_and_is_sent_on_first_tick(engine, transport):
    engine.add_identified_event(events.identify("u1", {"plan": "pro"}))

    assert engine.resolved_user_id == "u1"
    assert transport.sent_batches == [[{"type": "identify", "userId": "u1", "traits": {"plan": "pro"}}]]
    assert engine.state.pending_identified == []


def test_batch_payload_carries_context(engine, transport):
    engine.add_identified_event(events.identify("u1"))

    assert transport.payloads[0]["context"] == {
        "app": "storefront",
        "library": {"name": "analytics-client", "version": "1.0.0"},
    }


def test_identity_latch_ignores_later_identify(engine, transport):
    engine.add_identified_event(events.identify("u1"))
    engine.add_identified_event(events.identify("u2", {"name": "other"}))

    assert engine.resolved_user_id == "u1"

    engine.force_flush()

    # The later identify keeps its own id in the payload
    assert transport.sent_batches[-1] == [
        {"type": "identify", "userId": "u1", "traits": {}},
        {"type": "identify", "userId": "u2", "traits": {"name": "other"}},
    ]
    assert engine.resolved_user_id == "u1"


def test_identify_with_empty_user_id_does_not_resolve(engine, transport):
    engine.add_identified_event(events.identify(""))

    assert engine.resolved_user_id is None
    assert transport.payloads == []
    assert len(engine.state.pending_identified) == 1


def test_page_and_track_do_not_resolve_identity(engine):
    engine.add_identified_event(events.pending_page("Home"))
    engine.add_identified_event(events.pending_track("Signed Up"))

    assert engine.resolved_user_id is None


def test_identified_events_withheld_while_unresolved(engine, transport):
    engine.add_identified_event(events.pending_page("Home", {"path": "/"}))
    engine._ticker.fire(10)

    assert transport.payloads == []
    assert len(engine.state.pending_identified) == 1


def test_withheld_events_bind_to_identity_resolved_later(engine, transport):
    engine.add_identified_event(events.pending_page("Home", {"path": "/"}))
    engine.add_identified_event(events.pending_track("Viewed Product", {"sku": "A1"}))
    engine._ticker.fire(2)
    assert transport.payloads == []

    engine.add_identified_event(events.identify("u1", {"email": "u1@example.com"}))
    engine._ticker.fire()

    assert transport.sent_batches == [
        [
            {"type": "page", "userId": "u1", "name": "Home", "properties": {"path": "/"}},
            {"type": "track", "userId": "u1", "event": "Viewed Product", "properties": {"sku": "A1"}},
            {"type": "identify", "userId": "u1", "traits": {"email": "u1@example.com"}},
        ]
    ]


def test_anonymous_events_flush_every_tick(engine, transport):
    engine.add_anonymous_event(anonymous_track("First"))
    engine.update_response_status(SendOutcome.success({"success": True}))

    engine.add_anonymous_event(anonymous_track("Second"))
    engine._ticker.fire()

    assert transport.sent_batches == [[anonymous_track("First")], [anonymous_track("Second")]]


def test_anonymous_flush_leaves_identified_queue_untouched(engine, transport):
    engine.add_identified_event(events.pending_track("Checkout"))
    engine.add_anonymous_event(anonymous_track("Browse"))
    engine._ticker.fire()

    assert transport.sent_batches == [[anonymous_track("Browse")]]
    assert engine.state.pending_identified == [events.pending_track("Checkout")]
    assert engine.state.in_flight_or_retry == [anonymous_track("Browse")]


def test_anonymous_before_identify_scenario(engine, transport):
    engine.add_anonymous_event(anonymous_track("Landing"))
    assert transport.sent_batches == [[anonymous_track("Landing")]]
    engine.update_response_status(SendOutcome.success())

    engine.add_identified_event(events.pending_track("Added To Cart"))
    engine.add_identified_event(events.identify("u7"))
    engine._ticker.fire()

    assert transport.sent_batches[-1] == [
        {"type": "track", "userId": "u7", "event": "Added To Cart", "properties": {}},
        {"type": "identify", "userId": "u7", "traits": {}},
    ]


def test_full_flush_orders_retry_then_identified_then_anonymous(engine, transport):
    engine.add_anonymous_event(anonymous_track("Old"))  # sent, never acknowledged
    engine.add_anonymous_event(anonymous_track("New"))
    engine.add_identified_event(events.identify("u1"))
    engine._ticker.fire()

    assert transport.sent_batches[-1] == [
        anonymous_track("Old"),
        {"type": "identify", "userId": "u1", "traits": {}},
        anonymous_track("New"),
    ]
    state = engine.state
    assert state.pending_identified == []
    assert state.pending_anonymous == []
    assert state.in_flight_or_retry == transport.sent_batches[-1]


def test_failed_batch_is_resent_with_new_anonymous_events(engine, transport):
    engine.add_identified_event(events.identify("u1", {"plan": "pro"}))
    first = transport.payloads[0]["batch"]
    engine.update_response_status(SendOutcome.failure("HTTP error: 503 Service Unavailable"))

    assert engine.last_response_status == ResponseStatus.FAILURE
    assert engine.state.in_flight_or_retry == first

    engine.add_anonymous_event(anonymous_track("After Failure"))
    engine._ticker.fire()

    assert transport.sent_batches[1] == first + [anonymous_track("After Failure")]


def test_resent_batch_is_byte_for_byte_identical(engine, transport):
    import json

    engine.add_identified_event(events.pending_page("Pricing", {"tier": 2}))
    engine.add_identified_event(events.identify("u1"))
    engine._ticker.fire()
    sent = json.dumps(transport.sent_batches[0], sort_keys=True)
    engine.update_response_status(SendOutcome.failure("Network error: timed out"))

    engine.add_anonymous_event(anonymous_track())
    engine._ticker.fire()

    resent = transport.sent_batches[1][: len(transport.sent_batches[0])]
    assert json.dumps(resent, sort_keys=True) == sent


def test_success_clears_only_acknowledged_batch(engine, transport):
    engine.add_anonymous_event(anonymous_track("Acknowledged"))
    engine.add_anonymous_event(anonymous_track("Late"))

    engine.update_response_status(SendOutcome.success({"success": True}))

    state = engine.state
    assert state.in_flight_or_retry == []
    assert state.pending_anonymous == [anonymous_track("Late")]
    assert state.last_response_status == ResponseStatus.SUCCESS

    engine._ticker.fire()
    assert transport.sent_batches[-1] == [anonymous_track("Late")]


def test_pending_outcome_keeps_batch_for_resend(engine, transport):
    engine.add_anonymous_event(anonymous_track("One"))
    engine.update_response_status(SendOutcome.pending())

    assert engine.last_response_status == ResponseStatus.PENDING
    assert engine.state.in_flight_or_retry == [anonymous_track("One")]


def test_send_marks_status_pending(engine):
    engine.add_anonymous_event(anonymous_track())

    assert engine.last_response_status == ResponseStatus.PENDING


def test_no_send_when_only_retry_batch_is_waiting(engine, transport):
    engine.add_anonymous_event(anonymous_track())
    engine.update_response_status(SendOutcome.failure("boom"))

    engine._ticker.fire(3)

    assert len(transport.payloads) == 1
    assert engine.state.in_flight_or_retry == [anonymous_track()]


def test_late_response_after_resend_duplicates_events(engine, transport):
    engine.add_anonymous_event(anonymous_track("A"))
    first_callback = transport.callbacks[0]

    engine.add_anonymous_event(anonymous_track("B"))
    engine._ticker.fire()

    # "A" went out twice before any response arrived
    assert transport.sent_batches == [[anonymous_track("A")], [anonymous_track("A"), anonymous_track("B")]]

    first_callback(SendOutcome.success())
    assert engine.state.in_flight_or_retry == []


def test_send_that_never_completes_is_resent_with_every_flush(engine, transport):
    engine.add_anonymous_event(anonymous_track("Stuck"))

    for i in range(5):
        engine.add_anonymous_event(anonymous_track(f"Next {i}"))
        engine._ticker.fire()

    assert len(transport.payloads) == 6
    assert all(batch[0] == anonymous_track("Stuck") for batch in transport.sent_batches)
    assert engine.state.in_flight_or_retry[0] == anonymous_track("Stuck")
    assert engine.last_response_status == ResponseStatus.PENDING


def test_empty_api_key_never_sends(engine_factory, transport):
    engine = engine_factory(api_key="")
    engine.add_anonymous_event(events.page("Home", "anon-1", {"path": "/"}))

    for _ in range(3):
        engine._ticker.fire()
        assert len(engine.state.pending_anonymous) == 1

    assert transport.payloads == []
    assert engine.state.started is True
    assert engine.last_response_status == ResponseStatus.NOT_REQUESTED


def test_empty_api_key_still_resolves_identity(engine_factory, transport):
    engine = engine_factory(api_key="")
    engine.add_identified_event(events.identify("u1"))
    engine.force_flush()

    assert engine.resolved_user_id == "u1"
    assert len(engine.state.pending_identified) == 1
    assert transport.payloads == []


def test_force_flush_before_any_event_starts_engine(engine, transport):
    assert engine.force_flush() is None

    assert engine.state.started is True
    assert engine.is_running
    assert transport.payloads == []


def test_force_flush_sends_without_waiting_for_timer(engine, transport):
    engine.add_anonymous_event(anonymous_track("One"))
    engine.update_response_status(SendOutcome.success())
    engine.add_anonymous_event(anonymous_track("Two"))

    batch = engine.force_flush()

    assert batch is not None
    assert batch.events == [anonymous_track("Two")]
    assert engine._ticker.started == 1


def test_transport_exception_is_recorded_as_failure(engine):
    class ExplodingTransport:
        def send(self, batch, callback):
            raise RuntimeError("socket closed")

    engine.transport = ExplodingTransport()
    engine.add_anonymous_event(anonymous_track())

    assert engine.last_response_status == ResponseStatus.FAILURE
    assert engine.state.in_flight_or_retry == [anonymous_track()]


def test_stop_cancels_timer_and_keeps_queues(engine, transport):
    engine.add_identified_event(events.pending_page("Home"))
    ticker = engine._ticker

    engine.stop()

    assert ticker.cancelled
    assert not engine.is_running
    assert len(engine.state.pending_identified) == 1

    engine.force_flush()
    assert engine._ticker is ticker


def test_state_snapshot_is_detached(engine):
    engine.add_identified_event(events.pending_page("Home"))

    snapshot = engine.state
    snapshot.pending_identified.clear()

    assert len(engine.state.pending_identified) == 1


def test_stats_track_sends_and_acknowledgements(engine):
    engine.add_anonymous_event(anonymous_track("A"))
    engine.update_response_status(SendOutcome.failure("nope"))
    engine.add_anonymous_event(anonymous_track("B"))
    engine._ticker.fire()
    engine.update_response_status(SendOutcome.success())

    stats = engine.get_stats()
    assert stats["total_sends"] == 2
    assert stats["total_failures"] == 1
    assert stats["total_successes"] == 1
    assert stats["total_events_sent"] == 2
    assert stats["in_flight_or_retry"] == 0
    assert stats["last_response_status"] == "success"
    assert stats["sending_enabled"] is True


def test_independent_engines_do_not_share_state(engine_factory):
    first = engine_factory()
    second = engine_factory()

    first.add_identified_event(events.identify("u1"))

    assert first.resolved_user_id == "u1"
    assert second.resolved_user_id is None
    assert second.state.started is False


@pytest.mark.parametrize("interval", [0, -5])
def test_non_positive_tick_interval_is_rejected(engine_factory, interval):
    with pytest.raises(ValueError):
        engine_factory(tick_interval_seconds=interval)
