"""Domain events and the in-process event bus.

All four event variants share one immutable shape; ``make_event`` is the
only place ids and timestamps are assigned.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Callable, Iterable, Mapping, Optional, Protocol

from humanizer.errors import HumanizerError
from humanizer.models.elements import utcnow


class EventType(str, Enum):
    GENERATION_REQUESTED = "generation_requested"
    ELEMENT_USED = "element_used"
    USAGE_THRESHOLD_REACHED = "usage_threshold_reached"
    INCOMPATIBLE_ELEMENTS_DETECTED = "incompatible_elements_detected"


@dataclass(frozen=True)
class DomainEvent:
    event_id: str
    event_type: EventType
    occurred_at: datetime
    payload: Mapping

    def __getitem__(self, key: str):
        return self.payload[key]

    def to_dict(self) -> dict:
        return {
            "eventId": self.event_id,
            "eventType": self.event_type.value,
            "occurredAt": self.occurred_at.isoformat(),
            **{k: _plain(v) for k, v in self.payload.items()},
        }


def _plain(value):
    if isinstance(value, Mapping):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _freeze(value):
    if isinstance(value, Mapping):
        return MappingProxyType({k: _freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple, set, frozenset)):
        return tuple(_freeze(v) for v in value)
    return value


def make_event(event_type: EventType, occurred_at: Optional[datetime] = None, **payload) -> DomainEvent:
    return DomainEvent(
        event_id=uuid.uuid4().hex,
        event_type=event_type,
        occurred_at=occurred_at or utcnow(),
        payload=_freeze(payload),
    )


# ── Variants ───────────────────────────────────────────────────────────────

def generation_requested(context: str, keywords: Iterable[str], session_id: Optional[str] = None,
                         vehicle: Optional[str] = None, article_id: Optional[str] = None) -> DomainEvent:
    return make_event(
        EventType.GENERATION_REQUESTED,
        context=context,
        keywords=list(keywords),
        session_id=session_id,
        vehicle=vehicle,
        article_id=article_id,
    )


def element_used(element_type: str, element_id: str, usage_count: int, context: str = "",
                 article_id: Optional[str] = None) -> DomainEvent:
    return make_event(
        EventType.ELEMENT_USED,
        element_type=element_type,
        element_id=element_id,
        usage_count=usage_count,
        context=context,
        article_id=article_id,
    )


def usage_threshold_reached(element_type: str, element_id: str, usage_count: int, threshold: int,
                            element_name: Optional[str] = None) -> DomainEvent:
    return make_event(
        EventType.USAGE_THRESHOLD_REACHED,
        element_type=element_type,
        element_id=element_id,
        element_name=element_name,
        usage_count=usage_count,
        threshold=threshold,
    )


def incompatible_elements_detected(elements: list[dict], reason: str, explanation: str,
                                   attempt: Optional[int] = None) -> DomainEvent:
    return make_event(
        EventType.INCOMPATIBLE_ELEMENTS_DETECTED,
        elements=elements,
        reason=reason,
        explanation=explanation,
        attempt=attempt,
    )


# ── Bus ────────────────────────────────────────────────────────────────────

class EventBus(Protocol):
    def publish(self, event: DomainEvent) -> None:
        ...


Handler = Callable[[DomainEvent], None]


class EventDispatcher:
    """Synchronous in-process bus.

    A handler that raises does not stop delivery to the remaining handlers;
    the failures are collected and re-raised together once all ran.
    """

    def __init__(self, keep_history: bool = True):
        self._handlers: list[tuple[Optional[EventType], Handler]] = []
        self.keep_history = keep_history
        self.history: list[DomainEvent] = []

    def subscribe(self, handler: Handler, event_type: Optional[EventType] = None) -> None:
        self._handlers.append((event_type, handler))

    def publish(self, event: DomainEvent) -> None:
        if self.keep_history:
            self.history.append(event)
        errors = []
        for wanted, handler in list(self._handlers):
            if wanted is not None and wanted != event.event_type:
                continue
            try:
                handler(event)
            except Exception as e:
                print(f"  Warning: event handler {getattr(handler, '__name__', handler)!r} failed "
                      f"on {event.event_type.value}: {e}")
                errors.append(e)
        if errors:
            raise EventDeliveryError(event, errors)

    def events_of(self, event_type: EventType) -> list[DomainEvent]:
        return [e for e in self.history if e.event_type == event_type]


class EventDeliveryError(HumanizerError):
    code = "event_delivery_failed"

    def __init__(self, event: DomainEvent, errors: list[Exception]):
        self.event = event
        self.errors = errors
        super().__init__(
            f"{len(errors)} handler(s) failed for {event.event_type.value}",
            context={"event_id": event.event_id, "errors": [str(e) for e in errors]},
        )


class NullEventBus:
    def publish(self, event: DomainEvent) -> None:
        return None
