"""Event system for formsteps form sessions.

This module provides the event data structure and event emitter used for the
session audit trail. Schema loads, field edits, section transitions,
validation outcomes and submission results are each recorded as a typed
FormEvent.

The event stream is append-only and serves as the record of what a session
did, including how many times it actually went to the network for a schema.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional
import json
import logging
import uuid

from .types import EventType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FormEvent:
    """A single event in a form session.

    Attributes:
        event_id: Unique event identifier (e.g., "evt_3f2a...")
        type: Event type from EventType enum
        session_id: ID of the session this event relates to
        ts: UTC timestamp when the event occurred
        section_index: Current section index, when the session had one
        payload: Optional event-specific data (field id, errors, params)

    Examples:
        >>> event = FormEvent(
        ...     event_id="evt_001",
        ...     type=EventType.SECTION_ENTERED,
        ...     session_id="fs_001",
        ...     ts=datetime.now(timezone.utc),
        ...     section_index=1,
        ... )
        >>> event.to_dict()["type"]
        'section.entered'
    """
    event_id: str
    type: EventType
    session_id: str
    ts: datetime
    section_index: Optional[int] = None
    payload: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        if isinstance(self.type, str):
            object.__setattr__(self, "type", EventType(self.type))

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary for serialization.

        Timestamp is formatted as ISO 8601 string.
        """
        result: Dict[str, Any] = {
            "eventId": self.event_id,
            "type": self.type.value,
            "sessionId": self.session_id,
            "ts": self.ts.isoformat(),
        }
        if self.section_index is not None:
            result["sectionIndex"] = self.section_index
        if self.payload is not None:
            result["payload"] = self.payload
        return result

    def to_jsonl(self) -> str:
        """Convert event to a single-line JSON string."""
        return json.dumps(self.to_dict(), separators=(',', ':'))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FormEvent":
        """Create FormEvent from dictionary (camelCase keys)."""
        ts = datetime.fromisoformat(data["ts"].replace('Z', '+00:00'))
        return cls(
            event_id=data["eventId"],
            type=EventType(data["type"]),
            session_id=data["sessionId"],
            ts=ts,
            section_index=data.get("sectionIndex"),
            payload=data.get("payload"),
        )


def new_event(
    event_type: EventType,
    session_id: str,
    section_index: Optional[int] = None,
    payload: Optional[Dict[str, Any]] = None,
) -> FormEvent:
    """Create a FormEvent stamped with a fresh id and the current UTC time."""
    return FormEvent(
        event_id=f"evt_{uuid.uuid4().hex[:16]}",
        type=event_type,
        session_id=session_id,
        ts=datetime.now(timezone.utc),
        section_index=section_index,
        payload=payload,
    )


EventListener = Callable[[FormEvent], None]
"""Type alias for event listener callbacks.

Listeners are called synchronously when events are emitted.
"""


class EventEmitter:
    """Event emitter for managing event listeners and dispatching events.

    Features:
    - Type-specific subscriptions (listen to specific event types)
    - Wildcard subscriptions (listen to all events)
    - Synchronous dispatch (listeners called in registration order)
    - Error isolation (a failing listener is logged and skipped)

    Examples:
        >>> emitter = EventEmitter()
        >>> seen = []
        >>> emitter.on(EventType.SECTION_ENTERED, seen.append)
        >>> emitter.emit(new_event(EventType.SECTION_ENTERED, "fs_001", 0))
        >>> len(seen)
        1
    """

    def __init__(self):
        self._listeners: Dict[EventType, List[EventListener]] = {}
        self._any_listeners: List[EventListener] = []

    def on(self, event_type: EventType, listener: EventListener) -> None:
        """Subscribe to a specific event type."""
        if event_type not in self._listeners:
            self._listeners[event_type] = []
        self._listeners[event_type].append(listener)

    def on_any(self, listener: EventListener) -> None:
        """Subscribe to all event types."""
        self._any_listeners.append(listener)

    def off(self, event_type: EventType, listener: EventListener) -> None:
        """Unsubscribe from a specific event type. Unknown listeners are ignored."""
        listeners = self._listeners.get(event_type, [])
        if listener in listeners:
            listeners.remove(listener)

    def off_any(self, listener: EventListener) -> None:
        """Unsubscribe from the wildcard subscription. Unknown listeners are ignored."""
        if listener in self._any_listeners:
            self._any_listeners.remove(listener)

    def emit(self, event: FormEvent) -> None:
        """Dispatch an event to all registered listeners.

        Type-specific listeners run first, then wildcard listeners. A listener
        that raises is logged and does not stop the others.
        """
        for listener in list(self._listeners.get(event.type, [])) + list(self._any_listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(
                    "Event listener %r failed for %s", listener, event.type.value
                )

    def clear(self) -> None:
        """Remove all event listeners."""
        self._listeners.clear()
        self._any_listeners.clear()

    def listener_count(self, event_type: Optional[EventType] = None) -> int:
        """Count registered listeners.

        Args:
            event_type: If provided, count listeners for this type only.
                        If None, count all listeners (including wildcard).
        """
        if event_type is not None:
            return len(self._listeners.get(event_type, []))
        total = len(self._any_listeners)
        for listeners in self._listeners.values():
            total += len(listeners)
        return total


__all__ = [
    "FormEvent",
    "EventListener",
    "EventEmitter",
    "new_event",
]
