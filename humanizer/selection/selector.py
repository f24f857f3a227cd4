"""Non-repetitive selection of a persona, a location and discussions for one article.

Selection steps:
1. Persona: not used in the last 7 days (least-used pool when none qualify),
   narrowed to personas that prefer the requested vehicle when any do
2. Location: same recency rule, avoiding places this persona was paired
   with during the last 30 days when an alternative exists
3. Discussions: keyword matches not used in the last 30 days, by relevance
4. Compatibility check, re-selecting around the rejected elements
5. Mark everything used and announce it on the event bus
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable, Optional

from humanizer.config import (
    CANDIDATE_POOL_SIZE,
    COMBINATION_RECENCY_DAYS,
    DEFAULT_DISCUSSION_LIMIT,
    DISCUSSION_RECENCY_DAYS,
    ELEMENT_RECENCY_DAYS,
    MAX_SELECTION_ATTEMPTS,
    USAGE_THRESHOLDS,
)
from humanizer.errors import ElementIncompatibilityError
from humanizer.models import events
from humanizer.models.elements import (
    ContentSource,
    Discussion,
    ElementKind,
    Location,
    Persona,
    VehicleRef,
    utcnow,
)
from humanizer.models.events import EventBus, EventDeliveryError, NullEventBus
from humanizer.selection.compatibility import CompatibilityValidator, context_score
from humanizer.selection.usage import UsageTracker
from humanizer.store import CandidateFilter, ElementStore


@dataclass
class HumanizationSet:
    persona: Persona
    location: Location
    discussions: list[Discussion] = field(default_factory=list)
    vehicle: Optional[VehicleRef] = None
    context_score: float = 0.0
    attempts: int = 1
    event_failures: list[dict] = field(default_factory=list)

    def element_ids(self) -> dict:
        return {
            "persona_id": self.persona.id,
            "location_id": self.location.id,
            "discussion_ids": [d.id for d in self.discussions],
        }

    def to_dict(self) -> dict:
        return {
            "persona": self.persona.to_dict(),
            "location": self.location.to_dict(),
            "discussions": [d.to_dict() for d in self.discussions],
            "vehicle": self.vehicle.full_description if self.vehicle else None,
            "context_score": self.context_score,
            "attempts": self.attempts,
            "event_failures": list(self.event_failures),
        }


def context_terms(context: str, keywords: Iterable[str]) -> list[str]:
    """Search terms for discussions: the keywords, or the context's longer words."""
    terms = [k.strip() for k in keywords if k and k.strip()]
    if terms:
        return terms
    return [w for w in (context or "").split() if len(w) > 3]


class SelectionEngine:
    def __init__(
        self,
        store: ElementStore,
        validator: Optional[CompatibilityValidator] = None,
        tracker: Optional[UsageTracker] = None,
        bus: Optional[EventBus] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], datetime] = utcnow,
        max_attempts: int = MAX_SELECTION_ATTEMPTS,
        thresholds: Optional[dict] = None,
        recency_days: int = ELEMENT_RECENCY_DAYS,
        discussion_recency_days: int = DISCUSSION_RECENCY_DAYS,
        combination_recency_days: int = COMBINATION_RECENCY_DAYS,
        pool_size: int = CANDIDATE_POOL_SIZE,
    ):
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")
        self.store = store
        self.validator = validator or CompatibilityValidator()
        self.tracker = tracker or getattr(store, "tracker", None) or UsageTracker(clock=clock)
        self.bus = bus or NullEventBus()
        self._rng = rng or random.Random()
        self._clock = clock
        self.max_attempts = max_attempts
        self.thresholds = dict(USAGE_THRESHOLDS if thresholds is None else thresholds)
        self.recency_days = recency_days
        self.discussion_recency_days = discussion_recency_days
        self.combination_recency_days = combination_recency_days
        self.pool_size = pool_size
        self.event_failures: list[EventDeliveryError] = []

    # ── Public API ─────────────────────────────────────────────────────────

    def select_humanization_set(
        self,
        context: str,
        keywords: Iterable[str] = (),
        vehicle: Optional[VehicleRef] = None,
        discussion_limit: int = DEFAULT_DISCUSSION_LIMIT,
        article_id: Optional[str] = None,
    ) -> Optional[HumanizationSet]:
        """Pick and mark a compatible (persona, location, discussions) set.

        Returns None when no persona or location is available, or when every
        attempt was rejected by the compatibility rules.
        """
        terms = context_terms(context, list(keywords))
        rejected_pairs: set[tuple[str, str]] = set()
        exhausted_personas: set[str] = set()
        excluded_discussions: set[str] = set()
        failures: list[EventDeliveryError] = []

        for attempt in range(1, self.max_attempts + 1):
            persona = self._pick_persona(vehicle, exhausted_personas)
            if persona is None:
                return None

            blocked = {lid for pid, lid in rejected_pairs if pid == persona.id}
            location = self._pick_location(persona, blocked)
            if location is None:
                exhausted_personas.add(persona.id)
                continue

            discussions = self._pick_discussions(terms, discussion_limit, excluded_discussions)

            try:
                self.validator.validate(persona, location, vehicle, discussions)
            except ElementIncompatibilityError as e:
                self._announce(events.incompatible_elements_detected(
                    e.elements, e.reason, e.explanation, attempt=attempt,
                ), failures)
                if e.involves("discussion"):
                    excluded_discussions.update(el["id"] for el in e.elements if el["type"] == "discussion")
                else:
                    rejected_pairs.add((persona.id, location.id))
                continue

            return self._commit(persona, location, discussions, vehicle, context, article_id, attempt, failures)

        print(f"  Warning: no compatible element set after {self.max_attempts} attempts")
        return None

    def select_sources(self, topics: Iterable[str] = (), limit: int = 3) -> list[ContentSource]:
        """Active content sources for the topics, best weighted trust first."""
        flt = CandidateFilter(topics=tuple(topics), active_only=True)
        candidates = self.store.find_candidates(ElementKind.CONTENT_SOURCE, flt)
        decorated = [(-s.weighted_trust_score, self._rng.random(), s) for s in candidates]
        decorated.sort(key=lambda t: (t[0], t[1]))
        pending: list[events.DomainEvent] = []
        chosen = [self._use(ElementKind.CONTENT_SOURCE, s, "", None, pending) for _, _, s in decorated[:limit]]
        for event in pending:
            self._announce(event, [])
        return chosen

    # ── Candidate picking ──────────────────────────────────────────────────

    def _pool(self, kind: ElementKind, exclude_ids: set[str]) -> list:
        fresh = self.store.find_candidates(
            kind, CandidateFilter(exclude_ids=frozenset(exclude_ids), unused_within_days=self.recency_days)
        )
        if fresh:
            return fresh
        # Every candidate was used recently: degrade to least used
        return self.store.least_used(kind, self.pool_size, exclude_ids=exclude_ids)

    def _pick_ranked(self, candidates: list):
        """Lowest usage, then highest weighted trust; ties broken at random."""
        if not candidates:
            return None

        def rank(e):
            return (e.usage_count, -getattr(e, "weighted_trust_score", 0.0))

        best = min(rank(c) for c in candidates)
        return self._rng.choice([c for c in candidates if rank(c) == best])

    def _pick_persona(self, vehicle: Optional[VehicleRef], exclude_ids: set[str]) -> Optional[Persona]:
        candidates = self._pool(ElementKind.PERSONA, exclude_ids)
        if vehicle is not None:
            fans = [p for p in candidates if p.prefers(vehicle)]
            if fans:
                candidates = fans
        return self._pick_ranked(candidates)

    def _pick_location(self, persona: Persona, exclude_ids: set[str]) -> Optional[Location]:
        candidates = self._pool(ElementKind.LOCATION, exclude_ids)
        recent = self.tracker.recent_partners(persona.id, self.combination_recency_days, self._clock())
        unpaired = [loc for loc in candidates if loc.id not in recent]
        return self._pick_ranked(unpaired or candidates)

    def _pick_discussions(self, terms: list[str], limit: int, exclude_ids: set[str]) -> list[Discussion]:
        if limit <= 0 or not terms:
            return []
        flt = CandidateFilter(
            exclude_ids=frozenset(exclude_ids),
            unused_within_days=self.discussion_recency_days,
            keywords=tuple(terms),
        )
        candidates = self.store.find_candidates(ElementKind.DISCUSSION, flt)
        decorated = [(-d.relevance_score, self._rng.random(), d) for d in candidates]
        decorated.sort(key=lambda t: (t[0], t[1]))
        return [d for _, _, d in decorated[:limit]]

    # ── Commit ─────────────────────────────────────────────────────────────

    def _announce(self, event: events.DomainEvent, failures: list) -> None:
        """Publish one event. A failing subscriber is recorded but never undoes a selection."""
        try:
            self.bus.publish(event)
        except EventDeliveryError as e:
            failures.append(e)
            self.event_failures.append(e)

    def _use(self, kind: ElementKind, element, context: str, article_id: Optional[str], pending: list):
        updated = self.store.mark_used(kind, element.id)
        pending.append(events.element_used(kind.value, updated.id, updated.usage_count, context, article_id))

        threshold = self.thresholds.get(kind.value)
        if threshold and updated.usage_count - 1 < threshold <= updated.usage_count:
            pending.append(events.usage_threshold_reached(
                kind.value, updated.id, updated.usage_count, threshold, updated.display_name,
            ))
        return updated

    def _commit(self, persona, location, discussions, vehicle, context, article_id, attempt,
                failures: list) -> HumanizationSet:
        # State first, announcements after: a subscriber cannot leave a half-marked set
        pending: list[events.DomainEvent] = []
        persona = self._use(ElementKind.PERSONA, persona, context, article_id, pending)
        location = self._use(ElementKind.LOCATION, location, context, article_id, pending)
        discussions = [self._use(ElementKind.DISCUSSION, d, context, article_id, pending) for d in discussions]

        score = context_score(persona, location, discussions, context)
        self.tracker.record_combination(persona.id, location.id, context, score, self._clock())

        for event in pending:
            self._announce(event, failures)

        return HumanizationSet(
            persona=persona,
            location=location,
            discussions=discussions,
            vehicle=vehicle,
            context_score=score,
            attempts=attempt,
            event_failures=[e.to_dict() for e in failures],
        )
