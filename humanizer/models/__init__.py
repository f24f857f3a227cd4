"""Humanization elements, value objects and domain events."""

from humanizer.models.elements import (
    CombinationRecord,
    ContentSource,
    Discussion,
    DiscussionCategory,
    ElementKind,
    Location,
    Persona,
    PersonaName,
    ProfessionCategory,
    SourceType,
    StateCode,
    TrafficPattern,
    VehicleRef,
    VerificationInfo,
    classify_profession,
    is_technical_profession,
    utcnow,
)
from humanizer.models.events import (
    DomainEvent,
    EventBus,
    EventDispatcher,
    EventType,
    NullEventBus,
    make_event,
)

__all__ = [
    "CombinationRecord",
    "ContentSource",
    "Discussion",
    "DiscussionCategory",
    "ElementKind",
    "Location",
    "Persona",
    "PersonaName",
    "ProfessionCategory",
    "SourceType",
    "StateCode",
    "TrafficPattern",
    "VehicleRef",
    "VerificationInfo",
    "classify_profession",
    "is_technical_profession",
    "utcnow",
    "DomainEvent",
    "EventBus",
    "EventDispatcher",
    "EventType",
    "NullEventBus",
    "make_event",
]
