"""Telemetry event stream for the formstate engine.

When telemetry is enabled on a FormHandle, field interactions, validation
results, submissions and resets are emitted as FormEvent records through an
EventEmitter. Inspection and analytics tooling subscribes to the emitter;
the engine itself never depends on what listeners do.
"""

import json
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from formstate.logging import get_logger
from formstate.state import FormStatus


logger = get_logger(__name__)


class EventType(str, Enum):
    """Telemetry event types."""
    FORM_CREATED = "form.created"
    FIELD_UPDATED = "field.updated"
    FIELD_BLURRED = "field.blurred"
    ARRAY_UPDATED = "array.updated"
    VALIDATION_PASSED = "validation.passed"
    VALIDATION_FAILED = "validation.failed"
    SUBMISSION_STARTED = "submission.started"
    SUBMISSION_SUCCEEDED = "submission.succeeded"
    SUBMISSION_FAILED = "submission.failed"
    SUBMISSION_REJECTED = "submission.rejected"
    FORM_RESET = "form.reset"
    PERSISTENCE_FAILED = "persistence.failed"


def new_event_id() -> str:
    return f"evt_{uuid.uuid4().hex[:16]}"


@dataclass(frozen=True)
class FormEvent:
    """A single telemetry record.

    Attributes:
        event_id: Unique identifier (e.g., "evt_5f3a...")
        type: Event type
        form_name: Name of the form schema that emitted the event
        ts: UTC timestamp
        status: Form status after the event
        payload: Optional event-specific data (field name, error counts, ...)

    Examples:
        >>> event = FormEvent(
        ...     event_id="evt_001",
        ...     type=EventType.FIELD_UPDATED,
        ...     form_name="signup",
        ...     ts=datetime(2024, 1, 15, tzinfo=timezone.utc),
        ...     status=FormStatus.DIRTY,
        ...     payload={"field": "email"},
        ... )
        >>> event.to_dict()["type"]
        'field.updated'
    """
    event_id: str
    type: EventType
    form_name: str
    ts: datetime
    status: FormStatus
    payload: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        """Normalize string enum values."""
        if isinstance(self.type, str) and not isinstance(self.type, EventType):
            object.__setattr__(self, "type", EventType(self.type))
        if isinstance(self.status, str) and not isinstance(self.status, FormStatus):
            object.__setattr__(self, "status", FormStatus(self.status))

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary for serialization.

        Returns:
            Dictionary with camelCase keys; the timestamp is ISO 8601.
        """
        result: Dict[str, Any] = {
            "eventId": self.event_id,
            "type": self.type.value,
            "formName": self.form_name,
            "ts": self.ts.isoformat(),
            "status": self.status.value,
        }
        if self.payload is not None:
            result["payload"] = self.payload
        return result

    def to_jsonl(self) -> str:
        """Single-line JSON suitable for appending to a JSONL log."""
        return json.dumps(self.to_dict(), separators=(",", ":"))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FormEvent":
        """Create FormEvent from dictionary (camelCase keys)."""
        ts = datetime.fromisoformat(data["ts"].replace("Z", "+00:00"))
        return cls(
            event_id=data["eventId"],
            type=EventType(data["type"]),
            form_name=data["formName"],
            ts=ts,
            status=FormStatus(data["status"]),
            payload=data.get("payload"),
        )

    @classmethod
    def create(
        cls,
        event_type: EventType,
        form_name: str,
        status: FormStatus,
        payload: Optional[Dict[str, Any]] = None,
    ) -> "FormEvent":
        return cls(
            event_id=new_event_id(),
            type=event_type,
            form_name=form_name,
            ts=datetime.now(timezone.utc),
            status=status,
            payload=payload,
        )


EventListener = Callable[[FormEvent], None]
"""Type alias for event listener callbacks.

Listeners are called synchronously when events are emitted.
"""


class EventEmitter:
    """Dispatches FormEvents to type-specific and wildcard listeners.

    Listeners run in registration order: type-specific listeners first, then
    wildcard listeners. A listener that raises is logged and skipped; the
    remaining listeners still run.

    Examples:
        >>> emitter = EventEmitter()
        >>> seen = []
        >>> emitter.on(EventType.FORM_RESET, seen.append)
        >>> emitter.listener_count()
        1
    """

    def __init__(self):
        self._listeners: Dict[EventType, List[EventListener]] = {}
        self._any_listeners: List[EventListener] = []

    def on(self, event_type: EventType, listener: EventListener) -> None:
        """Register a listener for one event type.

        Args:
            event_type: Type of event to listen for
            listener: Callback receiving the FormEvent
        """
        self._listeners.setdefault(event_type, []).append(listener)

    def on_any(self, listener: EventListener) -> None:
        """Register a listener for every event type."""
        self._any_listeners.append(listener)

    def off(self, event_type: EventType, listener: EventListener) -> None:
        """Remove a type-specific listener. Unknown listeners are ignored."""
        listeners = self._listeners.get(event_type, [])
        if listener in listeners:
            listeners.remove(listener)

    def off_any(self, listener: EventListener) -> None:
        """Remove a wildcard listener. Unknown listeners are ignored."""
        if listener in self._any_listeners:
            self._any_listeners.remove(listener)

    def emit(self, event: FormEvent) -> None:
        """Deliver an event to its type listeners, then to wildcard listeners.

        Args:
            event: The event to dispatch
        """
        for listener in list(self._listeners.get(event.type, [])) + list(self._any_listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("event_listener_failed", event_type=event.type.value)

    def clear(self) -> None:
        """Remove every listener."""
        self._listeners.clear()
        self._any_listeners.clear()

    def listener_count(self, event_type: Optional[EventType] = None) -> int:
        """Count listeners for one type, or all listeners including wildcards."""
        if event_type is not None:
            return len(self._listeners.get(event_type, []))
        return len(self._any_listeners) + sum(
            len(listeners) for listeners in self._listeners.values()
        )


__all__ = [
    "EventType",
    "FormEvent",
    "EventListener",
    "EventEmitter",
    "new_event_id",
]
