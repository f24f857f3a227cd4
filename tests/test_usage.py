"""Tests for usage tracking, overuse severity and pairing history."""

import math
from datetime import timedelta

import pytest

from humanizer.errors import ElementOveruseError
from humanizer.selection.usage import OveruseSeverity, UsageTracker, severity_for_ratio, usage_ratio

from conftest import FIXED_NOW, make_location, make_persona


@pytest.fixture
def tracker(clock):
    return UsageTracker(clock=clock)


class TestSeverity:
    @pytest.mark.parametrize("ratio, expected", [
        (0.0, OveruseSeverity.NONE),
        (0.5, OveruseSeverity.LOW),
        (1.0, OveruseSeverity.MEDIUM),
        (1.2, OveruseSeverity.MEDIUM),
        (1.5, OveruseSeverity.HIGH),
        (2.0, OveruseSeverity.CRITICAL),
        (2.5, OveruseSeverity.CRITICAL),
    ])
    def test_bands(self, ratio, expected):
        assert severity_for_ratio(ratio) == expected

    def test_ratio_edge_cases(self):
        assert usage_ratio(0, 0) == 0.0
        assert math.isinf(usage_ratio(3, 0))
        assert usage_ratio(5, 10) == 0.5


class TestCheckLimit:
    def test_below_limit_returns_severity(self, tracker):
        assert tracker.check_limit("persona", "p1", 5, 10) == OveruseSeverity.LOW
        assert tracker.check_limit("persona", "p1", 0, 10) == OveruseSeverity.NONE

    def test_over_limit_raises_with_suggestions(self, tracker):
        with pytest.raises(ElementOveruseError) as exc:
            tracker.check_limit("persona", "p1", 25, 10, period="weekly", element_name="Ana Ribeiro")
        err = exc.value
        assert err.severity == "critical"
        assert err.ratio == 2.5
        assert err.period == "weekly"
        assert len(err.suggestions) == 3
        assert "weekly" in err.suggestions[1]
        assert "Ana Ribeiro" in err.message

    def test_twelve_of_ten_is_medium(self, tracker):
        with pytest.raises(ElementOveruseError) as exc:
            tracker.check_limit("location", "l1", 12, 10)
        assert exc.value.severity == "medium"

    def test_zero_limit_with_usage_is_critical(self, tracker):
        with pytest.raises(ElementOveruseError) as exc:
            tracker.check_limit("discussion", "d1", 1, 0)
        assert exc.value.severity == "critical"
        assert exc.value.context["ratio"] is None


class TestMarkUsed:
    def test_each_call_adds_exactly_one(self, tracker):
        persona = make_persona("p1")
        for _ in range(4):
            tracker.mark_used(persona)
        assert persona.usage_count == 4
        assert persona.last_used_at == FIXED_NOW
        assert tracker.selections == 4

    def test_recently_used(self, tracker):
        persona = make_persona("p1")
        assert not tracker.is_recently_used(persona, 7)
        tracker.mark_used(persona)
        assert tracker.is_recently_used(persona, 7)
        assert not tracker.is_recently_used(persona, 7, now=FIXED_NOW + timedelta(days=8))


class TestCombinations:
    def test_record_and_recency(self, tracker):
        tracker.record_combination("p1", "l1", "óleo", 0.8)
        tracker.record_combination("p1", "l1", "freios")
        record = tracker.combination("p1", "l1")
        assert record.usage_count == 2
        assert record.contexts == {"óleo", "freios"}
        assert tracker.is_combination_recently_used("p1", "l1")
        assert not tracker.is_combination_recently_used("p1", "l1", now=FIXED_NOW + timedelta(days=31))
        assert not tracker.is_combination_recently_used("p2", "l1")

    def test_recent_partners(self, tracker):
        tracker.record_combination("p1", "l1", now=FIXED_NOW - timedelta(days=40))
        tracker.record_combination("p1", "l2")
        tracker.record_combination("p2", "l3")
        assert tracker.recent_partners("p1", days=30) == {"l2"}

    def test_frequent_combinations_and_cleanup(self, tracker):
        for _ in range(3):
            tracker.record_combination("p1", "l1")
        tracker.record_combination("p2", "l2", now=FIXED_NOW - timedelta(days=200))
        assert [r.key for r in tracker.frequent_combinations(1)] == [("p1", "l1")]
        assert tracker.clean_history(older_than_days=180) == 1
        assert tracker.combination("p2", "l2") is None


def test_usage_statistics(tracker):
    personas = [make_persona("p1", usage_count=4), make_persona("p2")]
    locations = [make_location("l1", usage_count=1)]
    tracker.record_combination("p1", "l1")

    stats = tracker.usage_statistics(personas + locations)

    assert stats["kinds"]["persona"] == {
        "total": 2, "used": 1, "total_uses": 4, "max_usage": 4, "average_usage": 2.0,
    }
    assert stats["kinds"]["location"]["used"] == 1
    assert stats["combinations"] == 1
