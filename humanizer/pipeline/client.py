"""Claude API client for article generation and the surrounding content tasks.

Every task is one stateless call through ``_send``: build the prompt, send
with retry/backoff and the shared rate limiter, then map failures onto the
error taxonomy (connection -> ApiConnectionError, HTTP or parse -> the
task's own error).
"""

from __future__ import annotations

import threading
import time
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

import anthropic

from humanizer.config import AVAILABLE_MODELS, BALANCED_MODEL, DEFAULT_MAX_INSIGHTS, FAST_MODEL, ClaudeSettings
from humanizer.errors import (
    AnalysisError,
    ApiConnectionError,
    FaqGenerationError,
    GenerationError,
    HumanizationError,
    HumanizerError,
    InvalidParametersError,
    TaskError,
    TitleGenerationError,
    VerificationError,
)
from humanizer.pipeline.anthropic_retry import messages_create_with_retry
from humanizer.pipeline.insights import extract_insights as run_insight_extraction
from humanizer.pipeline.prompts import (
    ANALYSIS_SYSTEM_PROMPT,
    FAQ_SYSTEM_PROMPT,
    HUMANIZE_SYSTEM_PROMPT,
    TITLES_SYSTEM_PROMPT,
    VERIFY_SYSTEM_PROMPT,
    build_analysis_prompt,
    build_faq_prompt,
    build_humanize_prompt,
    build_system_prompt,
    build_titles_prompt,
    build_user_prompt,
    build_verify_prompt,
    discussion_excerpts,
)
from humanizer.pipeline.rate_limit import RateLimiter, shared_limiter
from humanizer.pipeline.responses import (
    extract_title,
    json_list,
    message_text,
    parse_json_payload,
    parse_numbered_list,
    token_usage,
)

ARTICLE_OPTIONS = frozenset({"model", "max_tokens", "temperature", "insights", "system_prompt"})


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _error_body(e: anthropic.APIStatusError) -> dict:
    body = e.body if isinstance(e.body, dict) else {}
    error = body.get("error") if isinstance(body.get("error"), dict) else {}
    return {
        "status": e.status_code,
        "error_type": error.get("type", "api_error"),
        "error_message": error.get("message", str(e)),
    }


class ClaudeClient:
    def __init__(
        self,
        settings: ClaudeSettings,
        client: Optional[anthropic.Anthropic] = None,
        rate_limiter: Optional[RateLimiter] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings
        self.client = client or anthropic.Anthropic(
            api_key=settings.api_key,
            base_url=settings.base_url,
            timeout=settings.timeout,
            max_retries=0,  # retries happen in messages_create_with_retry
            default_headers={"anthropic-version": settings.api_version},
        )
        self.rate_limiter = rate_limiter or shared_limiter(settings.requests_per_minute)
        self._sleep = sleep

    # ── Shared substrate ──────────────────────────────────────────────────

    def _send(self, error_cls: type[TaskError], action: str,
              cancel_event: Optional[threading.Event] = None, **request):
        try:
            return messages_create_with_retry(
                self.client,
                max_attempts=self.settings.max_retry_attempts,
                base_delay_ms=self.settings.base_retry_delay_ms,
                rate_limiter=self.rate_limiter,
                sleep=self._sleep,
                cancel_event=cancel_event,
                **request,
            )
        except anthropic.APIConnectionError as e:
            raise ApiConnectionError(
                f"Failed to connect to Claude API: {e}",
                context={"action": action, "attempts": self.settings.max_retry_attempts,
                         "timeout": isinstance(e, anthropic.APITimeoutError)},
            ) from e
        except anthropic.APIStatusError as e:
            raise error_cls(f"Failed to {action}: {e.message}", context=_error_body(e)) from e
        except HumanizerError:
            raise
        except Exception as e:
            raise error_cls(f"Unexpected error while trying to {action}: {e}",
                            context={"exception": type(e).__name__}) from e

    def _metadata(self, model: str, message, start: float, **extra) -> dict:
        return {
            "model": model,
            "completed_at": _now(),
            "elapsed_seconds": round(time.time() - start, 2),
            "token_usage": token_usage(message),
            **extra,
        }

    # ── Article generation ────────────────────────────────────────────────

    def validate_article_request(self, context: str, keywords, options: dict, persona=None) -> dict:
        """Return the effective model/max_tokens/temperature, or raise InvalidParametersError."""
        missing = [] if context and str(context).strip() else ["context"]
        unknown = sorted(set(options) - ARTICLE_OPTIONS)
        invalid = {}
        conflicting = []

        if not isinstance(keywords, (list, tuple)) or not all(isinstance(k, str) for k in keywords):
            invalid["keywords"] = "must be a list of strings"

        model = options.get("model", self.settings.default_model)
        if model not in AVAILABLE_MODELS:
            invalid["model"] = f"must be one of {', '.join(AVAILABLE_MODELS)}"

        temperature = options.get("temperature", self.settings.temperature)
        if isinstance(temperature, bool) or not isinstance(temperature, (int, float)) or not 0 <= temperature <= 1:
            invalid["temperature"] = "must be a number between 0 and 1"

        max_tokens = options.get("max_tokens", self.settings.max_tokens)
        if isinstance(max_tokens, bool) or not isinstance(max_tokens, int) or max_tokens <= 0:
            invalid["max_tokens"] = "must be a positive integer"

        insights = options.get("insights")
        if insights is not None and not (isinstance(insights, list) and all(isinstance(i, dict) for i in insights)):
            invalid["insights"] = "must be a list of insight records"

        if options.get("system_prompt") and persona is not None:
            conflicting.append(("system_prompt", "persona"))

        error = InvalidParametersError.collect(missing, unknown, invalid, conflicting)
        if error:
            raise error
        return {"model": model, "temperature": temperature, "max_tokens": max_tokens}

    def generate_article(
        self,
        context: str,
        keywords: Optional[list[str]] = None,
        persona=None,
        location=None,
        discussions: Iterable = (),
        vehicle=None,
        options: Optional[dict] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> dict:
        """Generate one article.

        Args:
            context: Topic of the article.
            keywords: Terms the article must include.
            persona, location, vehicle: Optional humanization framing.
            discussions: Discussions whose excerpts become "insights to incorporate"
                when ``options["insights"]`` is not given.
            options: model, max_tokens, temperature, insights, system_prompt.

        Returns:
            {"title", "content", "metadata"}
        """
        keywords = [] if keywords is None else keywords
        options = dict(options or {})
        discussions = list(discussions or ())
        params = self.validate_article_request(context, keywords, options, persona)

        insights = options.get("insights")
        if insights is None:
            insights = discussion_excerpts(discussions)

        system_prompt = options.get("system_prompt") or build_system_prompt(persona, location, vehicle)
        user_prompt = build_user_prompt(context, list(keywords), insights)

        print(f"  -> Generating article ({params['model']})...")
        start = time.time()
        message = self._send(
            GenerationError,
            "generate article",
            cancel_event=cancel_event,
            model=params["model"],
            max_tokens=params["max_tokens"],
            temperature=params["temperature"],
            system=system_prompt,
            messages=[{"role": "user", "content": user_prompt}],
        )
        content = message_text(message)
        metadata = self._metadata(
            params["model"], message, start,
            keywords=list(keywords),
            persona_id=getattr(persona, "id", None),
            location_id=getattr(location, "id", None),
            discussion_ids=[d.id for d in discussions],
            vehicle=vehicle.full_description if vehicle else None,
            insights_used=len(insights),
        )
        usage = metadata["token_usage"]
        print(
            f"  OK Generated {len(content.split())} words in {metadata['elapsed_seconds']:.1f}s "
            f"({usage['input_tokens']} in / {usage['output_tokens']} out)"
        )
        return {"title": extract_title(content), "content": content, "metadata": metadata}

    # ── Other content tasks ───────────────────────────────────────────────

    def analyze_content(self, content: str, target_keywords: Iterable[str] = (),
                        model: Optional[str] = None) -> dict:
        model = model or self.settings.default_model
        print(f"  -> Analyzing content ({model})...")
        start = time.time()
        message = self._send(
            AnalysisError,
            "analyze content",
            model=model,
            max_tokens=2000,
            temperature=0.2,
            system=ANALYSIS_SYSTEM_PROMPT,
            messages=[{"role": "user", "content": build_analysis_prompt(content, list(target_keywords))}],
        )
        analysis = parse_json_payload(message_text(message), AnalysisError, "analysis")
        if not isinstance(analysis, dict):
            raise AnalysisError("Unexpected analysis JSON shape: expected an object",
                                context={"payload_type": type(analysis).__name__})
        print(f"  OK Analysis done, readability {analysis.get('readability_score', 'N/A')}")
        return {
            "analysis": analysis,
            "metadata": self._metadata(model, message, start, content_length=len(content),
                                       target_keywords=list(target_keywords)),
        }

    def generate_alternative_titles(self, content: str, current_title: str = "", count: int = 5) -> list[str]:
        print(f"  -> Generating {count} alternative titles ({FAST_MODEL})...")
        message = self._send(
            TitleGenerationError,
            "generate alternative titles",
            model=FAST_MODEL,
            max_tokens=1000,
            temperature=0.8,
            system=TITLES_SYSTEM_PROMPT,
            messages=[{"role": "user", "content": build_titles_prompt(content, current_title, count)}],
        )
        titles = parse_numbered_list(message_text(message), count)
        print(f"  OK {len(titles)} titles")
        return titles

    def humanize_content(self, content: str, persona, location=None, preserve_structure: bool = True,
                         model: Optional[str] = None) -> str:
        model = model or self.settings.default_model
        print(f"  -> Humanizing content as {persona.display_name} ({model})...")
        message = self._send(
            HumanizationError,
            "humanize content",
            model=model,
            max_tokens=self.settings.max_tokens,
            temperature=0.7,
            system=HUMANIZE_SYSTEM_PROMPT,
            messages=[{"role": "user",
                       "content": build_humanize_prompt(content, persona, location, preserve_structure)}],
        )
        humanized = message_text(message)
        print(f"  OK Humanized {len(content)} -> {len(humanized)} chars")
        return humanized

    def extract_insights(
        self,
        discussions: Iterable,
        context: str,
        max_insights: int = DEFAULT_MAX_INSIGHTS,
        model: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> dict:
        """Extract scored insights; more than two discussions fan out in parallel."""
        return run_insight_extraction(self, list(discussions), context, max_insights,
                                model or BALANCED_MODEL, cancel_event)

    def generate_faq(self, content: str, count: int = 5, include_answers: bool = True) -> dict:
        print(f"  -> Generating {count} FAQs ({FAST_MODEL})...")
        start = time.time()
        message = self._send(
            FaqGenerationError,
            "generate FAQs",
            model=FAST_MODEL,
            max_tokens=2000,
            temperature=0.4,
            system=FAQ_SYSTEM_PROMPT,
            messages=[{"role": "user", "content": build_faq_prompt(content, count, include_answers)}],
        )
        payload = parse_json_payload(message_text(message), FaqGenerationError, "FAQ")
        faqs = json_list(payload, "faqs", FaqGenerationError, "FAQ")[:count]
        print(f"  OK {len(faqs)} FAQs")
        return {"faqs": faqs, "metadata": self._metadata(FAST_MODEL, message, start, content_length=len(content))}

    def verify_guidelines(self, content: str, guidelines: Iterable[str] = ()) -> dict:
        guidelines = list(guidelines)
        print(f"  -> Verifying content against {len(guidelines) or 'standard'} guidelines ({BALANCED_MODEL})...")
        start = time.time()
        message = self._send(
            VerificationError,
            "verify content",
            model=BALANCED_MODEL,
            max_tokens=2000,
            temperature=0.2,
            system=VERIFY_SYSTEM_PROMPT,
            messages=[{"role": "user", "content": build_verify_prompt(content, guidelines)}],
        )
        verification = parse_json_payload(message_text(message), VerificationError, "verification")
        if not isinstance(verification, dict):
            raise VerificationError("Unexpected verification JSON shape: expected an object",
                                    context={"payload_type": type(verification).__name__})
        print(f"  OK Compliance {verification.get('overall_compliance', 'N/A')}, "
              f"{len(verification.get('issues') or [])} issues")
        return {
            "verification": verification,
            "metadata": self._metadata(BALANCED_MODEL, message, start, content_length=len(content)),
        }

    def get_api_status(self) -> dict:
        """Report reachability and the models the key can see. Never raises for API failures."""
        checked_at = _now()
        try:
            page = self.client.models.list()
        except anthropic.APIConnectionError as e:
            return {"status": "unavailable", "message": f"Connection error: {e}", "checked_at": checked_at}
        except anthropic.APIStatusError as e:
            return {
                "status": "unavailable",
                "message": f"API request failed: {e.message}",
                "status_code": e.status_code,
                "checked_at": checked_at,
            }
        models = [
            {"id": m.id, "name": getattr(m, "display_name", None) or m.id}
            for m in getattr(page, "data", None) or []
        ]
        return {
            "status": "available",
            "models": models,
            "current_model": self.settings.default_model,
            "checked_at": checked_at,
        }
