"""Generation sessions: bounded batches of article requests."""

from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from humanizer.config import MAX_ARTICLES_PER_SESSION
from humanizer.errors import SessionLimitExceededError
from humanizer.models.elements import utcnow


@dataclass
class GenerationSession:
    id: str
    limit: int
    name: str = ""
    requested: int = 0
    generated: int = 0
    succeeded: int = 0
    failed: int = 0
    started_at: datetime = field(default_factory=utcnow)
    completed_at: Optional[datetime] = None

    @property
    def status(self) -> str:
        if self.completed_at is not None:
            return "completed"
        return "active" if self.requested else "open"

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.requested)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "limit": self.limit,
            "requested": self.requested,
            "generated": self.generated,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "status": self.status,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }


class GenerationSessionManager:
    """Tracks sessions against the per-session article cap. Thread-safe."""

    def __init__(self, limit: int = MAX_ARTICLES_PER_SESSION, clock: Callable[[], datetime] = utcnow):
        if limit <= 0:
            raise ValueError(f"Session limit must be positive, got {limit}")
        self.limit = limit
        self._clock = clock
        self._lock = threading.Lock()
        self._sessions: dict[str, GenerationSession] = {}

    def start(self, name: str = "", limit: Optional[int] = None) -> GenerationSession:
        limit = self.limit if limit is None else limit
        if limit <= 0:
            raise ValueError(f"Session limit must be positive, got {limit}")
        session = GenerationSession(id=uuid.uuid4().hex, limit=limit, name=name, started_at=self._clock())
        with self._lock:
            self._sessions[session.id] = session
        return session

    def get(self, session_id: str) -> GenerationSession:
        with self._lock:
            return self._get(session_id)

    def _get(self, session_id: str) -> GenerationSession:
        try:
            return self._sessions[session_id]
        except KeyError:
            raise KeyError(f"Unknown generation session {session_id!r}") from None

    def reserve(self, session_id: str, count: int = 1) -> GenerationSession:
        """Claim ``count`` article slots, or raise SessionLimitExceededError."""
        if count <= 0:
            raise ValueError(f"Reserved count must be positive, got {count}")
        with self._lock:
            session = self._get(session_id)
            if session.completed_at is not None:
                raise ValueError(f"Session {session_id} is already completed")
            if session.requested + count > session.limit:
                raise SessionLimitExceededError(session_id, session.requested, count, session.limit)
            session.requested += count
            return session

    def record_result(self, session_id: str, succeeded: bool) -> GenerationSession:
        with self._lock:
            session = self._get(session_id)
            session.generated += 1
            if succeeded:
                session.succeeded += 1
            else:
                session.failed += 1
            return session

    def complete(self, session_id: str) -> GenerationSession:
        with self._lock:
            session = self._get(session_id)
            if session.completed_at is None:
                session.completed_at = self._clock()
            return session

    def active(self) -> list[GenerationSession]:
        with self._lock:
            return [s for s in self._sessions.values() if s.completed_at is None]
