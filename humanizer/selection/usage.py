"""Usage counting, recency checks, overuse policy and pairing history."""

from __future__ import annotations

import math
import threading
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Iterable, Optional

from humanizer.errors import ElementOveruseError
from humanizer.models.elements import CombinationRecord, utcnow


class OveruseSeverity(str, Enum):
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


def usage_ratio(current_usage: int, limit: int) -> float:
    if current_usage <= 0:
        return 0.0
    if limit <= 0:
        return math.inf
    return current_usage / limit


def severity_for_ratio(ratio: float) -> OveruseSeverity:
    if ratio >= 2.0:
        return OveruseSeverity.CRITICAL
    if ratio >= 1.5:
        return OveruseSeverity.HIGH
    if ratio >= 1.0:
        return OveruseSeverity.MEDIUM
    if ratio > 0:
        return OveruseSeverity.LOW
    return OveruseSeverity.NONE


class UsageTracker:
    """Mutates usage counters on element snapshots and keeps pairing history.

    ``mark_used`` is not atomic across stores; callers sharing elements
    between threads go through ``ElementStore.mark_used``, which holds its own
    lock around this call.
    """

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self._clock = clock
        self._lock = threading.Lock()
        self._combinations: dict[tuple[str, str], CombinationRecord] = {}
        self.selections = 0

    def now(self) -> datetime:
        return self._clock()

    # ── Element usage ──────────────────────────────────────────────────────

    def mark_used(self, element, now: Optional[datetime] = None):
        """Add exactly one use and stamp last-used with ``now``."""
        element.usage_count += 1
        element.last_used_at = now or self._clock()
        with self._lock:
            self.selections += 1
        return element

    def is_recently_used(self, element, days: int, now: Optional[datetime] = None) -> bool:
        return element.is_recently_used(days, now or self._clock())

    def check_limit(
        self,
        element_type: str,
        element_id: str,
        current_usage: int,
        limit: int,
        period: str = "daily",
        element_name: Optional[str] = None,
    ) -> OveruseSeverity:
        """Return the severity below the limit, raise ElementOveruseError at or above it.

        ``period`` is an opaque label (daily, weekly, monthly or anything else).
        """
        ratio = usage_ratio(current_usage, limit)
        severity = severity_for_ratio(ratio)
        if ratio >= 1.0:
            raise ElementOveruseError(
                element_type=element_type,
                element_id=element_id,
                current_usage=current_usage,
                limit=limit,
                ratio=ratio,
                severity=severity.value,
                period=period,
                element_name=element_name,
            )
        return severity

    # ── Persona/location pairings ──────────────────────────────────────────

    def record_combination(self, persona_id: str, location_id: str, context: str = "",
                           compatibility_score: Optional[float] = None,
                           now: Optional[datetime] = None) -> CombinationRecord:
        with self._lock:
            key = (persona_id, location_id)
            record = self._combinations.get(key)
            if record is None:
                record = CombinationRecord(persona_id, location_id)
                self._combinations[key] = record
            record.record_use(context, compatibility_score, now or self._clock())
            return record

    def combination(self, persona_id: str, location_id: str) -> Optional[CombinationRecord]:
        with self._lock:
            return self._combinations.get((persona_id, location_id))

    def is_combination_recently_used(self, persona_id: str, location_id: str, days: int = 30,
                                     now: Optional[datetime] = None) -> bool:
        record = self.combination(persona_id, location_id)
        if record is None or record.last_used_at is None:
            return False
        now = now or self._clock()
        return record.last_used_at > now - timedelta(days=days)

    def recent_partners(self, persona_id: str, days: int = 30, now: Optional[datetime] = None) -> set[str]:
        """Location ids paired with this persona within the window."""
        now = now or self._clock()
        cutoff = now - timedelta(days=days)
        with self._lock:
            return {
                r.location_id for r in self._combinations.values()
                if r.persona_id == persona_id and r.last_used_at and r.last_used_at > cutoff
            }

    def frequent_combinations(self, limit: int = 10) -> list[CombinationRecord]:
        with self._lock:
            records = list(self._combinations.values())
        records.sort(key=lambda r: (-r.usage_count, r.persona_id, r.location_id))
        return records[:limit]

    def clean_history(self, older_than_days: int = 180, now: Optional[datetime] = None) -> int:
        """Drop pairings not used within the window. Returns how many were removed."""
        now = now or self._clock()
        cutoff = now - timedelta(days=older_than_days)
        with self._lock:
            stale = [k for k, r in self._combinations.items() if r.last_used_at and r.last_used_at <= cutoff]
            for k in stale:
                del self._combinations[k]
        return len(stale)

    # ── Reporting ──────────────────────────────────────────────────────────

    def usage_statistics(self, elements: Iterable) -> dict:
        """Summarise usage per element kind plus pairing totals."""
        by_kind: dict[str, list[int]] = {}
        for element in elements:
            by_kind.setdefault(element.kind.value, []).append(element.usage_count)

        kinds = {}
        for kind, counts in sorted(by_kind.items()):
            used = [c for c in counts if c > 0]
            kinds[kind] = {
                "total": len(counts),
                "used": len(used),
                "total_uses": sum(counts),
                "max_usage": max(counts) if counts else 0,
                "average_usage": round(sum(counts) / len(counts), 2) if counts else 0.0,
            }

        with self._lock:
            combinations = len(self._combinations)
            selections = self.selections
        return {
            "selections": selections,
            "kinds": kinds,
            "combinations": combinations,
        }
