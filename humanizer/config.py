"""Central configuration for the humanized article generator."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

from dotenv import load_dotenv

load_dotenv()

# ── Paths ──────────────────────────────────────────────────────────────────
ROOT_DIR = Path(__file__).resolve().parent.parent
DATA_DIR = ROOT_DIR / "data"
ARTICLE_OUTPUT_DIR = ROOT_DIR / "output" / "articles"

# Seed files for the in-memory element store
PERSONAS_CSV = DATA_DIR / "personas.csv"
LOCATIONS_CSV = DATA_DIR / "locations.csv"
DISCUSSIONS_JSON = DATA_DIR / "discussions.json"
SOURCES_JSON = DATA_DIR / "content_sources.json"

# ── Claude settings ────────────────────────────────────────────────────────
AVAILABLE_MODELS = (
    "claude-opus-4-6",
    "claude-sonnet-4-5-20250929",
    "claude-haiku-4-5-20251001",
)
CLAUDE_MODEL = "claude-opus-4-6"
FAST_MODEL = "claude-haiku-4-5-20251001"  # titles, FAQ
BALANCED_MODEL = "claude-sonnet-4-5-20250929"  # insights, verification

DEFAULT_BASE_URL = "https://api.anthropic.com"
DEFAULT_API_VERSION = "2023-06-01"
CLAUDE_MAX_TOKENS = 4000
CLAUDE_TEMPERATURE = 0.7
REQUEST_TIMEOUT = 60  # seconds, bounds a single attempt
MAX_RETRY_ATTEMPTS = 3
BASE_RETRY_DELAY_MS = 1000
REQUESTS_PER_MINUTE = 50
MAX_PARALLEL_REQUESTS = 4

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})

# ── Prompt settings ────────────────────────────────────────────────────────
MAX_PROMPT_EXCERPTS = 5
EXCERPT_CHARS = 300
INSIGHT_CHUNK_SIZE = 2
INSIGHT_CHUNK_CHARS = 1000
DEFAULT_MAX_INSIGHTS = 5

# ── Selection settings ─────────────────────────────────────────────────────
ELEMENT_RECENCY_DAYS = 7  # personas and locations
DISCUSSION_RECENCY_DAYS = 30
COMBINATION_RECENCY_DAYS = 30
RECENT_PUBLICATION_DAYS = 90
DEFAULT_DISCUSSION_LIMIT = 3
MAX_SELECTION_ATTEMPTS = 3
CANDIDATE_POOL_SIZE = 20

# Usage count at which UsageThresholdReached is published, per element kind
USAGE_THRESHOLDS = {
    "persona": 50,
    "location": 50,
    "discussion": 20,
    "content_source": 100,
}

# ── Session settings ───────────────────────────────────────────────────────
MAX_ARTICLES_PER_SESSION = 10


@dataclass(frozen=True)
class ClaudeSettings:
    """Immutable API settings, validated once at startup."""

    api_key: str
    base_url: str = DEFAULT_BASE_URL
    api_version: str = DEFAULT_API_VERSION
    default_model: str = CLAUDE_MODEL
    temperature: float = CLAUDE_TEMPERATURE
    max_tokens: int = CLAUDE_MAX_TOKENS
    timeout: float = REQUEST_TIMEOUT
    max_retry_attempts: int = MAX_RETRY_ATTEMPTS
    base_retry_delay_ms: int = BASE_RETRY_DELAY_MS
    requests_per_minute: int = REQUESTS_PER_MINUTE
    max_parallel_requests: int = MAX_PARALLEL_REQUESTS

    def __post_init__(self) -> None:
        if not self.api_key or not self.api_key.strip():
            raise ValueError("ANTHROPIC_API_KEY not set. Add it to your .env file.")

        parsed = urlparse(self.base_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"Invalid API base URL: {self.base_url!r}")

        if self.default_model not in AVAILABLE_MODELS:
            raise ValueError(
                f"Unknown model {self.default_model!r}. "
                f"Available: {', '.join(AVAILABLE_MODELS)}"
            )
        if not 0.0 <= self.temperature <= 1.0:
            raise ValueError(f"Temperature must be between 0 and 1, got {self.temperature}")

        positive = {
            "max_tokens": self.max_tokens,
            "timeout": self.timeout,
            "base_retry_delay_ms": self.base_retry_delay_ms,
            "requests_per_minute": self.requests_per_minute,
            "max_parallel_requests": self.max_parallel_requests,
        }
        for name, value in positive.items():
            if value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")
        if self.max_retry_attempts < 1:
            raise ValueError(f"max_retry_attempts must be at least 1, got {self.max_retry_attempts}")


def _number(raw: str, cast, name: str):
    try:
        return cast(raw)
    except ValueError as e:
        raise ValueError(f"Invalid value for {name}: {raw!r}") from e


def load_settings(env: Optional[dict] = None) -> ClaudeSettings:
    """Build ClaudeSettings from environment variables (or a supplied mapping).

    Raises:
        ValueError: If a value cannot be parsed or fails validation.
    """
    source = os.environ if env is None else env

    def get(name: str, default: str) -> str:
        value = source.get(name)
        if value is None or not str(value).strip():
            return default
        return str(value).strip()

    return ClaudeSettings(
        api_key=get("ANTHROPIC_API_KEY", ""),
        base_url=get("ANTHROPIC_BASE_URL", DEFAULT_BASE_URL).rstrip("/"),
        api_version=get("ANTHROPIC_API_VERSION", DEFAULT_API_VERSION),
        default_model=get("CLAUDE_MODEL", CLAUDE_MODEL),
        temperature=_number(get("CLAUDE_TEMPERATURE", str(CLAUDE_TEMPERATURE)), float, "CLAUDE_TEMPERATURE"),
        max_tokens=_number(get("CLAUDE_MAX_TOKENS", str(CLAUDE_MAX_TOKENS)), int, "CLAUDE_MAX_TOKENS"),
        timeout=_number(get("CLAUDE_REQUEST_TIMEOUT", str(REQUEST_TIMEOUT)), float, "CLAUDE_REQUEST_TIMEOUT"),
        max_retry_attempts=_number(
            get("CLAUDE_MAX_RETRY_ATTEMPTS", str(MAX_RETRY_ATTEMPTS)), int, "CLAUDE_MAX_RETRY_ATTEMPTS"
        ),
        base_retry_delay_ms=_number(
            get("CLAUDE_BASE_RETRY_DELAY_MS", str(BASE_RETRY_DELAY_MS)), int, "CLAUDE_BASE_RETRY_DELAY_MS"
        ),
        requests_per_minute=_number(get("CLAUDE_RATE_LIMIT", str(REQUESTS_PER_MINUTE)), int, "CLAUDE_RATE_LIMIT"),
        max_parallel_requests=_number(
            get("CLAUDE_MAX_PARALLEL_REQUESTS", str(MAX_PARALLEL_REQUESTS)), int, "CLAUDE_MAX_PARALLEL_REQUESTS"
        ),
    )
