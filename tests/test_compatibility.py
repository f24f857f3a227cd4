"""Tests for compatibility rules and the context score."""

from datetime import timedelta

import pytest

from humanizer.errors import ElementIncompatibilityError
from humanizer.models.elements import DiscussionCategory, StateCode, VehicleRef, utcnow
from humanizer.selection.compatibility import (
    CompatibilityRule,
    CompatibilityValidator,
    context_score,
    declared_state,
    default_rules,
)

from conftest import make_discussion, make_location, make_persona


@pytest.mark.parametrize("text, expected", [
    ("Curitiba - PR", StateCode.PR),
    ("Recife/PE", StateCode.PE),
    ("Salvador, ba", StateCode.BA),
    ("Porto Alegre", None),
    ("Lisboa - LX", None),
    ("", None),
])
def test_declared_state(text, expected):
    assert declared_state(text) == expected


class TestDefaultRules:
    def setup_method(self):
        self.validator = CompatibilityValidator()

    def test_persona_from_another_state_is_rejected(self):
        persona = make_persona("p1", location="Curitiba - PR")
        location = make_location("l1", state="SP")
        with pytest.raises(ElementIncompatibilityError) as exc:
            self.validator.validate(persona, location)
        err = exc.value
        assert err.reason == "persona_state_mismatch"
        assert err.element_types == ["persona", "location"]
        assert err.elements[0]["id"] == "p1"
        assert "Curitiba - PR" in err.explanation

    def test_persona_without_state_is_accepted(self):
        persona = make_persona("p1", location="Porto Alegre")
        assert self.validator.is_compatible(persona, make_location("l1", state="SP"))

    def test_same_state_is_accepted(self):
        persona = make_persona("p1", location="São Paulo - SP")
        assert self.validator.is_compatible(persona, make_location("l1", city="Campinas", state="SP"))

    def test_stale_news_discussion_is_rejected(self):
        persona = make_persona("p1")
        location = make_location("l1")
        fresh = make_discussion("d-fresh")
        stale = make_discussion("d-stale", category=DiscussionCategory.NEWS,
                                published_at=utcnow() - timedelta(days=200))
        with pytest.raises(ElementIncompatibilityError) as exc:
            self.validator.validate(persona, location, discussions=[fresh, stale])
        assert exc.value.reason == "stale_news_discussion"
        assert exc.value.involves("discussion")
        assert [e["id"] for e in exc.value.elements] == ["d-stale"]

    def test_old_non_news_discussion_is_fine(self):
        old = make_discussion("d-old", published_at=utcnow() - timedelta(days=400))
        assert self.validator.is_compatible(make_persona("p1"), make_location("l1"), discussions=[old])


class TestCustomRules:
    def test_rule_with_missing_role_is_skipped(self):
        rule = CompatibilityRule("no_vehicle_fans", ("persona", "vehicle"), lambda persona, vehicle: "never")
        validator = CompatibilityValidator([rule])
        assert validator.is_compatible(make_persona("p1"), make_location("l1"))
        assert not validator.is_compatible(make_persona("p1"), vehicle=VehicleRef("Fiat", "Uno", 2010))

    def test_first_failing_rule_wins(self):
        rules = [
            CompatibilityRule("first", ("persona",), lambda persona: "first failed"),
            CompatibilityRule("second", ("persona",), lambda persona: "second failed"),
        ]
        with pytest.raises(ElementIncompatibilityError) as exc:
            CompatibilityValidator(rules).validate(make_persona("p1"))
        assert exc.value.reason == "first"

    def test_invalid_role_rejected(self):
        with pytest.raises(ValueError):
            CompatibilityRule("bad", ("weather",), lambda weather: None)

    def test_empty_rule_list_accepts_everything(self):
        assert CompatibilityValidator([]).is_compatible(make_persona("p1", location="Recife/PE"),
                                                        make_location("l1", state="SP"))

    def test_default_rules_are_named(self):
        assert [r.reason for r in default_rules()] == ["persona_state_mismatch", "stale_news_discussion"]


class TestContextScore:
    def test_within_unit_interval(self):
        persona = make_persona("p1", vehicles=["Civic"])
        location = make_location("l1")
        discussions = [make_discussion("d1")]
        score = context_score(persona, location, discussions, "Manutenção do Civic em São Paulo")
        assert 0.0 <= score <= 1.0

    def test_related_elements_score_higher(self):
        location = make_location("l1", city="Curitiba", state="PR")
        unrelated = context_score(make_persona("p1"), location, [], "Viagem de moto pela serra")
        related = context_score(
            make_persona("p2", vehicles=["Civic"]), location,
            [make_discussion("d1", title="Civic em Curitiba", content="Civic no inverno de Curitiba")],
            "Civic no inverno de Curitiba",
        )
        assert related > unrelated
