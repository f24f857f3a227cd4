"""Element store interface and an in-memory, thread-safe implementation.

The selection engine only expresses filter intent through ``CandidateFilter``;
how the filter is evaluated belongs to the store.
"""

from __future__ import annotations

import copy
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Iterable, Optional, Protocol, Union

from humanizer.models.elements import ElementKind, utcnow
from humanizer.selection.usage import UsageTracker

KindLike = Union[ElementKind, str]


@dataclass(frozen=True)
class CandidateFilter:
    exclude_ids: frozenset = frozenset()
    unused_within_days: Optional[int] = None  # drop elements used inside this window
    keywords: tuple = ()
    categories: tuple = ()
    min_relevance: Optional[int] = None
    topics: tuple = ()
    active_only: bool = False
    limit: Optional[int] = None


class ElementStore(Protocol):
    def find_candidates(self, kind: KindLike, flt: CandidateFilter) -> list: ...

    def least_used(self, kind: KindLike, limit: int, exclude_ids: Iterable[str] = ()) -> list: ...

    def mark_used(self, kind: KindLike, element_id: str): ...

    def get(self, kind: KindLike, element_id: str): ...

    def save(self, element): ...

    def delete(self, kind: KindLike, element_id: str) -> bool: ...


class InMemoryElementStore:
    """Dict-backed store. Reads hand out copies, so callers hold snapshots."""

    def __init__(self, tracker: Optional[UsageTracker] = None,
                 clock: Callable[[], datetime] = utcnow):
        self.tracker = tracker or UsageTracker(clock=clock)
        self._clock = clock
        self._lock = threading.Lock()
        self._elements: dict[ElementKind, dict[str, object]] = {k: {} for k in ElementKind}

    def save(self, element):
        with self._lock:
            if not element.id:
                element.id = uuid.uuid4().hex
            self._elements[element.kind][element.id] = copy.deepcopy(element)
        return element

    def add_all(self, elements: Iterable) -> int:
        count = 0
        for element in elements:
            self.save(element)
            count += 1
        return count

    def get(self, kind: KindLike, element_id: str):
        with self._lock:
            element = self._elements[ElementKind(kind)].get(element_id)
            return copy.deepcopy(element) if element is not None else None

    def all(self, kind: Optional[KindLike] = None) -> list:
        with self._lock:
            kinds = [ElementKind(kind)] if kind is not None else list(ElementKind)
            return [copy.deepcopy(e) for k in kinds for e in self._elements[k].values()]

    def delete(self, kind: KindLike, element_id: str) -> bool:
        with self._lock:
            return self._elements[ElementKind(kind)].pop(element_id, None) is not None

    def mark_used(self, kind: KindLike, element_id: str):
        """Atomic increment-and-fetch of one element's usage."""
        with self._lock:
            element = self._elements[ElementKind(kind)].get(element_id)
            if element is None:
                raise KeyError(f"No {ElementKind(kind).value} with id {element_id!r}")
            self.tracker.mark_used(element, self._clock())
            return copy.deepcopy(element)

    def least_used(self, kind: KindLike, limit: int, exclude_ids: Iterable[str] = ()) -> list:
        excluded = set(exclude_ids)
        with self._lock:
            pool = [e for e in self._elements[ElementKind(kind)].values() if e.id not in excluded]
            pool.sort(key=lambda e: (e.usage_count, e.last_used_at is not None, e.last_used_at or self._clock()))
            return [copy.deepcopy(e) for e in pool[:limit]]

    def find_candidates(self, kind: KindLike, flt: CandidateFilter) -> list:
        now = self._clock()
        with self._lock:
            pool = list(self._elements[ElementKind(kind)].values())
            matches = [e for e in pool if self._matches(e, flt, now)]
            if flt.limit is not None:
                matches = matches[:flt.limit]
            return [copy.deepcopy(e) for e in matches]

    @staticmethod
    def _matches(element, flt: CandidateFilter, now: datetime) -> bool:
        if element.id in flt.exclude_ids:
            return False
        if flt.unused_within_days is not None and element.last_used_at is not None:
            if element.last_used_at > now - timedelta(days=flt.unused_within_days):
                return False
        if flt.keywords and hasattr(element, "matches_keywords"):
            if not element.matches_keywords(flt.keywords):
                return False
        if flt.categories:
            category = getattr(element, "category", None) or getattr(element, "source_type", None)
            wanted = {getattr(c, "value", c) for c in flt.categories}
            if category is None or category.value not in wanted:
                return False
        if flt.min_relevance is not None and getattr(element, "relevance_score", 0) < flt.min_relevance:
            return False
        if flt.topics and hasattr(element, "is_relevant_for"):
            if not element.is_relevant_for(flt.topics):
                return False
        if flt.active_only and not getattr(element, "is_active", True):
            return False
        return True
