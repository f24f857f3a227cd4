"""Error taxonomy for selection, sessions and Claude API orchestration.

Every error carries a machine-readable ``code``, a human ``message`` and a
structured ``context`` dict so callers can branch on the failure kind and
log it without parsing strings.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, Iterable, Optional


class HumanizerError(Exception):
    """Base class for all domain errors."""

    code = "humanizer_error"

    def __init__(self, message: str, context: Optional[dict] = None, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.context: dict[str, Any] = dict(context or {})
        if code:
            self.code = code
        self.occurred_at = datetime.now(timezone.utc)

    def add_context(self, **values: Any) -> "HumanizerError":
        self.context.update(values)
        return self

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "context": dict(self.context),
            "occurred_at": self.occurred_at.isoformat(),
        }


# ── Transport and task failures ────────────────────────────────────────────

class ApiConnectionError(HumanizerError):
    """Connection-level failure (DNS, reset, timeout) after retries ran out."""

    code = "api_connection_failed"


class RequestCancelled(HumanizerError):
    """The caller cancelled the operation before it finished."""

    code = "request_cancelled"


class TaskError(HumanizerError):
    """Terminal failure of one orchestrator task."""

    code = "task_failed"


class GenerationError(TaskError):
    code = "generation_failed"


class AnalysisError(TaskError):
    code = "analysis_failed"


class HumanizationError(TaskError):
    code = "humanization_failed"


class InsightExtractionError(TaskError):
    code = "insight_extraction_failed"


class TitleGenerationError(TaskError):
    code = "title_generation_failed"


class FaqGenerationError(TaskError):
    code = "faq_generation_failed"


class VerificationError(TaskError):
    code = "verification_failed"


# ── Element compatibility ──────────────────────────────────────────────────

def describe_element(kind: str, element: Any) -> dict:
    """Return the {type, id, label} identity of an element for error payloads."""
    label = getattr(element, "display_name", None) or str(element)
    return {"type": kind, "id": getattr(element, "id", None) or str(element), "label": label}


class ElementIncompatibilityError(HumanizerError):
    """A persona/location/vehicle/discussion tuple failed a compatibility rule.

    Never retried by the orchestrator. The selection engine catches it to
    re-select; any other caller should surface it.
    """

    code = "elements_incompatible"

    def __init__(self, elements: list[dict], reason: str, explanation: str):
        self.elements = [dict(e) for e in elements]
        self.reason = reason
        self.explanation = explanation
        names = ", ".join(f"{e['type']}:{e['id']}" for e in self.elements)
        super().__init__(
            f"Incompatible elements ({names}): {explanation}",
            context={"elements": self.elements, "reason": reason, "explanation": explanation},
        )

    @property
    def element_types(self) -> list[str]:
        return [e["type"] for e in self.elements]

    def involves(self, kind: str) -> bool:
        return kind in self.element_types

    @classmethod
    def for_persona_and_location(cls, persona, location, reason: str, explanation: str):
        return cls(
            [describe_element("persona", persona), describe_element("location", location)],
            reason,
            explanation,
        )

    @classmethod
    def for_discussion(cls, discussions: Iterable, others: Iterable[tuple[str, Any]],
                       reason: str, explanation: str):
        elements = [describe_element("discussion", d) for d in discussions]
        elements.extend(describe_element(kind, element) for kind, element in others)
        return cls(elements, reason, explanation)


# ── Usage and sessions ─────────────────────────────────────────────────────

class ElementOveruseError(HumanizerError):
    """An element reached its usage limit for a period. Not fatal."""

    code = "element_overused"

    def __init__(self, element_type: str, element_id: str, current_usage: int, limit: int,
                 ratio: float, severity: str, period: str, element_name: Optional[str] = None):
        self.element_type = element_type
        self.element_id = element_id
        self.current_usage = current_usage
        self.limit = limit
        self.ratio = ratio
        self.severity = severity
        self.period = period
        self.element_name = element_name
        self.suggestions = self._build_suggestions()
        who = element_name or element_id
        super().__init__(
            f"{element_type} {who} used {current_usage} times in {period} period "
            f"(limit {limit}, severity {severity})",
            context={
                "element_type": element_type,
                "element_id": element_id,
                "current_usage": current_usage,
                "limit": limit,
                "ratio": None if math.isinf(ratio) else round(ratio, 4),
                "severity": severity,
                "period": period,
                "suggestions": self.suggestions,
            },
        )

    def _build_suggestions(self) -> list[str]:
        return [
            f"Use an alternative {self.element_type} that has been used less often.",
            f"Wait for the {self.period} period to roll over before using this {self.element_type} again.",
            f"Consider raising the {self.period} limit of {self.limit} if this usage level is acceptable.",
        ]


def suggested_distribution(total: int, limit: int) -> dict[int, int]:
    """Split ``total`` articles across sessions of at most ``limit`` each.

    Example: total=25, limit=10 -> {1: 10, 2: 10, 3: 5}
    """
    if limit <= 0:
        raise ValueError(f"limit must be positive, got {limit}")
    if total <= 0:
        return {}
    sessions = math.ceil(total / limit)
    distribution = {n: limit for n in range(1, sessions + 1)}
    remainder = total - limit * (sessions - 1)
    distribution[sessions] = remainder
    return distribution


class SessionLimitExceededError(HumanizerError):
    """Reserving articles would push a generation session over its cap."""

    code = "session_limit_exceeded"

    def __init__(self, session_id: str, current_count: int, requested_count: int, limit: int):
        self.session_id = session_id
        self.current_count = current_count
        self.requested_count = requested_count
        self.limit = limit
        self.total = current_count + requested_count
        self.excess = max(0, self.total - limit)
        self.distribution = suggested_distribution(self.total, limit)
        self.suggestions = [
            f"Split the batch across {len(self.distribution)} sessions of up to {limit} articles.",
            f"Reduce the request by {self.excess} articles to stay within this session.",
        ]
        super().__init__(
            f"Session {session_id} would hold {self.total} articles, "
            f"exceeding the limit of {limit} by {self.excess}",
            context={
                "session_id": session_id,
                "current_count": current_count,
                "requested_count": requested_count,
                "total": self.total,
                "limit": limit,
                "excess": self.excess,
                "suggested_distribution": self.distribution,
            },
        )

    def suggested_distribution(self) -> dict[int, int]:
        return dict(self.distribution)


# ── Request validation ─────────────────────────────────────────────────────

class InvalidParametersError(HumanizerError):
    """Malformed generation request. Never retried."""

    code = "invalid_parameters"

    def __init__(self, message: str, missing: Iterable[str] = (), unknown: Iterable[str] = (),
                 invalid: Optional[dict] = None, conflicting: Iterable[tuple[str, str]] = ()):
        self.missing = list(missing)
        self.unknown = list(unknown)
        self.invalid = dict(invalid or {})
        self.conflicting = [tuple(pair) for pair in conflicting]
        super().__init__(
            message,
            context={
                "missing": self.missing,
                "unknown": self.unknown,
                "invalid": self.invalid,
                "conflicting": [list(pair) for pair in self.conflicting],
            },
        )

    @property
    def violations(self) -> list[str]:
        out = [f"missing required parameter '{name}'" for name in self.missing]
        out += [f"unknown parameter '{name}'" for name in self.unknown]
        out += [f"invalid value for '{name}': {why}" for name, why in self.invalid.items()]
        out += [f"'{a}' conflicts with '{b}'" for a, b in self.conflicting]
        return out

    @classmethod
    def collect(cls, missing=(), unknown=(), invalid=None, conflicting=()) -> Optional["InvalidParametersError"]:
        """Return an error describing every violation, or None when there are none."""
        missing, unknown, conflicting = list(missing), list(unknown), list(conflicting)
        invalid = dict(invalid or {})
        if not (missing or unknown or invalid or conflicting):
            return None
        err = cls("Invalid article generation parameters", missing, unknown, invalid, conflicting)
        err.message = f"Invalid article generation parameters: {'; '.join(err.violations)}"
        err.args = (err.message,)
        return err
