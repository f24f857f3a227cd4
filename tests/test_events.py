"""Tests for domain events and the in-process dispatcher."""

import pytest

from humanizer.models import events
from humanizer.models.events import EventDeliveryError, EventDispatcher, EventType

from conftest import FIXED_NOW


def test_event_is_immutable_and_flattens_to_dict():
    event = events.make_event(EventType.ELEMENT_USED, occurred_at=FIXED_NOW, element_id="p1", tags=["a", "b"])
    assert event["element_id"] == "p1"
    assert event["tags"] == ("a", "b")
    with pytest.raises(TypeError):
        event.payload["element_id"] = "p2"

    data = event.to_dict()
    assert data["eventType"] == "element_used"
    assert data["occurredAt"] == FIXED_NOW.isoformat()
    assert data["tags"] == ["a", "b"]
    assert len(data["eventId"]) == 32


def test_every_event_gets_its_own_id():
    first = events.generation_requested("Troca de óleo", ["óleo"])
    second = events.generation_requested("Troca de óleo", ["óleo"])
    assert first.event_id != second.event_id


def test_incompatible_elements_payload():
    elements = [{"type": "persona", "id": "p1", "label": "Ana"}, {"type": "location", "id": "l1", "label": "X"}]
    event = events.incompatible_elements_detected(elements, "persona_state_mismatch", "different state", attempt=2)
    data = event.to_dict()
    assert data["elements"][0] == {"type": "persona", "id": "p1", "label": "Ana"}
    assert data["reason"] == "persona_state_mismatch"
    assert data["attempt"] == 2


class TestEventDispatcher:
    def test_filters_by_event_type(self):
        bus = EventDispatcher()
        seen_all, seen_used = [], []
        bus.subscribe(seen_all.append)
        bus.subscribe(seen_used.append, EventType.ELEMENT_USED)

        bus.publish(events.element_used("persona", "p1", 1))
        bus.publish(events.usage_threshold_reached("persona", "p1", 50, 50, "Ana Ribeiro"))

        assert len(seen_all) == 2
        assert [e.event_type for e in seen_used] == [EventType.ELEMENT_USED]
        assert len(bus.events_of(EventType.USAGE_THRESHOLD_REACHED)) == 1

    def test_failing_handler_does_not_block_others(self):
        bus = EventDispatcher()
        delivered = []

        def broken(event):
            raise RuntimeError("handler down")

        bus.subscribe(broken)
        bus.subscribe(delivered.append)

        with pytest.raises(EventDeliveryError) as exc:
            bus.publish(events.element_used("location", "l1", 3))
        assert len(delivered) == 1
        assert exc.value.context["errors"] == ["handler down"]

    def test_history_can_be_disabled(self):
        bus = EventDispatcher(keep_history=False)
        bus.publish(events.element_used("persona", "p1", 1))
        assert bus.history == []
