"""Tests for generation sessions and the session-limit error."""

import pytest

from humanizer.errors import SessionLimitExceededError, suggested_distribution
from humanizer.selection.sessions import GenerationSessionManager

from conftest import FIXED_NOW


@pytest.mark.parametrize("total, limit, expected", [
    (25, 10, {1: 10, 2: 10, 3: 5}),
    (10, 10, {1: 10}),
    (11, 10, {1: 10, 2: 1}),
    (3, 10, {1: 3}),
    (0, 10, {}),
])
def test_suggested_distribution(total, limit, expected):
    assert suggested_distribution(total, limit) == expected


def test_suggested_distribution_needs_positive_limit():
    with pytest.raises(ValueError):
        suggested_distribution(5, 0)


class TestSessionLimitExceededError:
    def test_excess_and_distribution(self):
        err = SessionLimitExceededError("s1", current_count=8, requested_count=17, limit=10)
        assert err.total == 25
        assert err.excess == 15
        assert err.suggested_distribution() == {1: 10, 2: 10, 3: 5}
        assert err.context["excess"] == 15
        assert "3 sessions" in err.suggestions[0]

    def test_within_limit_has_no_excess(self):
        err = SessionLimitExceededError("s1", current_count=0, requested_count=10, limit=10)
        assert err.excess == 0
        assert err.suggested_distribution() == {1: 10}


class TestGenerationSessionManager:
    def setup_method(self):
        self.manager = GenerationSessionManager(limit=10, clock=lambda: FIXED_NOW)

    def test_reserve_until_full(self):
        session = self.manager.start("óleo")
        assert session.status == "open"
        self.manager.reserve(session.id, 7)
        self.manager.reserve(session.id, 3)
        assert session.remaining == 0
        assert session.status == "active"

        with pytest.raises(SessionLimitExceededError) as exc:
            self.manager.reserve(session.id, 1)
        assert exc.value.excess == 1
        assert session.requested == 10

    def test_oversized_request_reports_distribution(self):
        session = self.manager.start()
        with pytest.raises(SessionLimitExceededError) as exc:
            self.manager.reserve(session.id, 25)
        assert exc.value.suggested_distribution() == {1: 10, 2: 10, 3: 5}

    def test_results_and_completion(self):
        session = self.manager.start(limit=2)
        self.manager.reserve(session.id, 2)
        self.manager.record_result(session.id, succeeded=True)
        self.manager.record_result(session.id, succeeded=False)
        self.manager.complete(session.id)

        data = self.manager.get(session.id).to_dict()
        assert (data["generated"], data["succeeded"], data["failed"]) == (2, 1, 1)
        assert data["status"] == "completed"
        assert data["completed_at"] == FIXED_NOW.isoformat()
        assert self.manager.active() == []

    def test_completed_session_rejects_reservations(self):
        session = self.manager.start()
        self.manager.complete(session.id)
        with pytest.raises(ValueError):
            self.manager.reserve(session.id)

    def test_invalid_arguments(self):
        session = self.manager.start()
        with pytest.raises(ValueError):
            self.manager.reserve(session.id, 0)
        with pytest.raises(KeyError):
            self.manager.get("missing")
        with pytest.raises(ValueError):
            GenerationSessionManager(limit=0)
