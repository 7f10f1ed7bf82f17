"""Core analytics client components: event model, identity decoding, send outcomes."""

from .events import EventBatch, EventType, PendingIdentifiedEvent, identify, page, pending_page, pending_track, track
from .identity import IdentifyPayload, decode_user_id
from .status import ResponseStatus, SendOutcome

__all__ = [
    # Event model
    "EventType",
    "EventBatch",
    "PendingIdentifiedEvent",
    "identify",
    "page",
    "track",
    "pending_page",
    "pending_track",
    # Identity
    "IdentifyPayload",
    "decode_user_id",
    # Outcomes
    "ResponseStatus",
    "SendOutcome",
]
