"""Event models for the analytics client.

Events flow through the client as: constructors → Batching Engine → Sender →
collector. Anonymous events are finalized immediately into JSON-ready dicts.
Identified page/track events are held as ``PendingIdentifiedEvent`` records
until the engine knows which user id to bind them to.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class EventType(str, Enum):
    """Types of events accepted by the collector."""

    IDENTIFY = "identify"
    PAGE = "page"
    TRACK = "track"


# Key holding the event label for each type. Identify has none.
_LABEL_KEYS = {
    EventType.PAGE: "name",
    EventType.TRACK: "event",
}

# Key holding the free-form map for each type.
_FIELD_KEYS = {
    EventType.IDENTIFY: "traits",
    EventType.PAGE: "properties",
    EventType.TRACK: "properties",
}


def _build(event_type: EventType, id_key: str, id_value: str, label: Optional[str], fields: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    event: Dict[str, Any] = {"type": event_type.value, id_key: id_value}
    if event_type in _LABEL_KEYS:
        event[_LABEL_KEYS[event_type]] = label or ""
    event[_FIELD_KEYS[event_type]] = dict(fields or {})
    return event


@dataclass(frozen=True)
class PendingIdentifiedEvent:
    """An identified event whose user id is bound at flush time.

    Identify events carry their own ``user_id`` and ignore the id passed to
    ``finalize``. Page and track events are ``awaiting_identity`` and take
    whatever id the engine has resolved when it flushes them, which may be
    the empty string.
    """

    event_type: EventType
    label: Optional[str] = None
    fields: Dict[str, Any] = field(default_factory=dict)
    user_id: Optional[str] = None

    @property
    def awaiting_identity(self) -> bool:
        return self.user_id is None

    def finalize(self, user_id: str) -> Dict[str, Any]:
        """Produce the final JSON form of this event bound to ``user_id``."""
        bound_id = user_id if self.awaiting_identity else self.user_id
        return _build(self.event_type, "userId", bound_id, self.label, self.fields)

    def to_dict(self) -> Dict[str, Any]:
        """Inspectable form of the pending record."""
        return {
            "event_type": self.event_type.value,
            "label": self.label,
            "fields": dict(self.fields),
            "user_id": self.user_id,
            "awaiting_identity": self.awaiting_identity,
        }


def identify(user_id: str, traits: Optional[Dict[str, Any]] = None) -> PendingIdentifiedEvent:
    """Build an identify event. It always carries its own user id."""
    return PendingIdentifiedEvent(event_type=EventType.IDENTIFY, fields=dict(traits or {}), user_id=user_id)


def pending_page(name: str, properties: Optional[Dict[str, Any]] = None) -> PendingIdentifiedEvent:
    """Build a page event bound to the user id resolved at flush time."""
    return PendingIdentifiedEvent(event_type=EventType.PAGE, label=name, fields=dict(properties or {}))


def pending_track(event: str, properties: Optional[Dict[str, Any]] = None) -> PendingIdentifiedEvent:
    """Build a track event bound to the user id resolved at flush time."""
    return PendingIdentifiedEvent(event_type=EventType.TRACK, label=event, fields=dict(properties or {}))


def page(name: str, anonymous_id: str, properties: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Build a finalized anonymous page event."""
    return _build(EventType.PAGE, "anonymousId", anonymous_id, name, properties)


def track(event: str, anonymous_id: str, properties: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Build a finalized anonymous track event."""
    return _build(EventType.TRACK, "anonymousId", anonymous_id, event, properties)


@dataclass
class EventBatch:
    """A batch of finalized events plus the context sent alongside it."""

    events: list[Dict[str, Any]] = field(default_factory=list)
    app_name: str = ""
    library_name: str = ""
    library_version: str = ""

    def size(self) -> int:
        """Return the number of events in this batch."""
        return len(self.events)

    def to_dict(self) -> Dict[str, Any]:
        """Convert batch to dictionary for the collector payload."""
        return {
            "batch": list(self.events),
            "context": {
                "app": self.app_name,
                "library": {
                    "name": self.library_name,
                    "version": self.library_version,
                },
            },
        }
