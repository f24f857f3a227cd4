"""Declarative compatibility rules over (persona, location, vehicle, discussion).

A rule names the roles it needs and a check that returns an explanation
when the combination is not acceptable (None when it is). Rules that take
the ``discussion`` role run once per attached discussion. Validation stops
at the first failing rule.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, Optional, Sequence

from humanizer.config import RECENT_PUBLICATION_DAYS
from humanizer.errors import ElementIncompatibilityError, describe_element
from humanizer.models.elements import DiscussionCategory, StateCode

ROLES = ("persona", "location", "vehicle", "discussion")


@dataclass(frozen=True)
class CompatibilityRule:
    reason: str
    roles: tuple[str, ...]
    check: Callable[..., Optional[str]]

    def __post_init__(self) -> None:
        unknown = [r for r in self.roles if r not in ROLES]
        if unknown or not self.roles:
            raise ValueError(f"Rule {self.reason!r} has invalid roles: {self.roles}")


class CompatibilityValidator:
    def __init__(self, rules: Optional[Sequence[CompatibilityRule]] = None):
        self.rules = list(default_rules() if rules is None else rules)

    def validate(self, persona=None, location=None, vehicle=None, discussions: Iterable = ()) -> None:
        """Raise ElementIncompatibilityError on the first failing rule."""
        base = {"persona": persona, "location": location, "vehicle": vehicle}
        discussions = list(discussions or ())

        for rule in self.rules:
            if "discussion" in rule.roles:
                bindings = [dict(base, discussion=d) for d in discussions]
            else:
                bindings = [base]
            for binding in bindings:
                if any(binding.get(role) is None for role in rule.roles):
                    continue
                explanation = rule.check(**{role: binding[role] for role in rule.roles})
                if explanation:
                    raise self._error(rule, binding, explanation)

    def is_compatible(self, persona=None, location=None, vehicle=None, discussions: Iterable = ()) -> bool:
        try:
            self.validate(persona, location, vehicle, discussions)
        except ElementIncompatibilityError:
            return False
        return True

    @staticmethod
    def _error(rule: CompatibilityRule, binding: dict, explanation: str) -> ElementIncompatibilityError:
        if "discussion" in rule.roles:
            others = [(role, binding[role]) for role in rule.roles if role != "discussion"]
            return ElementIncompatibilityError.for_discussion(
                [binding["discussion"]], others, rule.reason, explanation
            )
        if set(rule.roles) == {"persona", "location"}:
            return ElementIncompatibilityError.for_persona_and_location(
                binding["persona"], binding["location"], rule.reason, explanation
            )
        return ElementIncompatibilityError(
            [describe_element(role, binding[role]) for role in rule.roles], rule.reason, explanation
        )


# ── Default rule set ───────────────────────────────────────────────────────

_STATE_SUFFIX = re.compile(r"(?:\s-\s|/|,\s*)([A-Za-z]{2})\s*$")


def declared_state(text: str) -> Optional[StateCode]:
    """State code at the end of free text such as 'Curitiba - PR' or 'Recife/PE'."""
    match = _STATE_SUFFIX.search(text or "")
    if not match:
        return None
    try:
        return StateCode(match.group(1).upper())
    except ValueError:
        return None


def persona_state_mismatch(persona, location) -> Optional[str]:
    home = declared_state(persona.location)
    if home is None or home == location.state_code:
        return None
    return (
        f"{persona.display_name} lives in {persona.location} ({home.value}) "
        f"but the article is set in {location.full_name}"
    )


def stale_news_discussion(discussion, now: Optional[datetime] = None) -> Optional[str]:
    if discussion.category != DiscussionCategory.NEWS:
        return None
    if discussion.published_at is None or discussion.is_recent(RECENT_PUBLICATION_DAYS, now):
        return None
    return (
        f"News discussion '{discussion.title}' is older than {RECENT_PUBLICATION_DAYS} days "
        "and would present outdated information as current"
    )


def default_rules() -> list[CompatibilityRule]:
    return [
        CompatibilityRule("persona_state_mismatch", ("persona", "location"), persona_state_mismatch),
        CompatibilityRule("stale_news_discussion", ("discussion",), stale_news_discussion),
    ]


# ── Context fit ────────────────────────────────────────────────────────────

def context_score(persona, location, discussions: Iterable, context: str) -> float:
    """Score in [0, 1] for how well the chosen elements relate to the article context.

    Informational only; it never rejects a combination.
    """
    words = [w for w in (context or "").lower().split() if len(w) > 3]
    lowered_context = (context or "").lower()
    total = 0.7
    factors = 1

    persona_text = f"{persona.profession} {persona.display_name}".lower()
    persona_score = sum(0.1 for w in words if w in persona_text)
    persona_score += sum(0.2 for v in persona.preferred_vehicles if v.lower() in lowered_context)
    total += min(0.3, persona_score)
    factors += 1

    location_text = f"{location.city} {location.region} {location.state_code.value}".lower()
    total += min(0.3, sum(0.1 for w in words if w in location_text))
    factors += 1

    discussion_score = 0.0
    for d in discussions:
        text = f"{d.title} {d.content}".lower()
        discussion_score += min(0.1, sum(0.05 for w in words if w in text))
    total += min(0.3, discussion_score)
    factors += 1

    return round(min(1.0, total / factors), 4)

