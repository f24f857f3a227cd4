"""Retry Anthropic API calls on rate limits, server errors and dropped connections.

Retryable: HTTP 429/500/502/503/504 and connection-level failures (DNS,
reset, timeout). Everything else fails on the first attempt. The delay
doubles each time: with a 1000 ms base the waits before attempts 2, 3 and 4
are 1s, 2s and 4s.
"""

from __future__ import annotations

import threading
import time
from typing import Callable, Optional

import anthropic

from humanizer.config import BASE_RETRY_DELAY_MS, MAX_RETRY_ATTEMPTS, RETRYABLE_STATUS_CODES
from humanizer.errors import RequestCancelled
from humanizer.pipeline.rate_limit import RateLimiter


def is_retryable(error: Exception) -> bool:
    # APITimeoutError is a subclass of APIConnectionError
    if isinstance(error, anthropic.APIConnectionError):
        return True
    if isinstance(error, anthropic.APIStatusError):
        return error.status_code in RETRYABLE_STATUS_CODES
    return False


def backoff_delay_ms(attempt: int, base_ms: int = BASE_RETRY_DELAY_MS) -> int:
    """Delay before ``attempt`` (2 or later): base, 2x base, 4x base, ..."""
    if attempt < 2:
        raise ValueError(f"The first attempt is never delayed, got attempt={attempt}")
    return base_ms * 2 ** (attempt - 2)


def _describe(error: Exception) -> str:
    if isinstance(error, anthropic.APIStatusError):
        return f"{type(error).__name__} ({error.status_code})"
    return type(error).__name__


def messages_create_with_retry(
    client: anthropic.Anthropic,
    *,
    max_attempts: int = MAX_RETRY_ATTEMPTS,
    base_delay_ms: int = BASE_RETRY_DELAY_MS,
    rate_limiter: Optional[RateLimiter] = None,
    sleep: Callable[[float], None] = time.sleep,
    cancel_event: Optional[threading.Event] = None,
    **kwargs,
):
    """Call client.messages.create(**kwargs), retrying transient failures.

    Only the first success or the final failure reaches the caller.
    """
    last_error = None
    for attempt in range(1, max_attempts + 1):
        if cancel_event is not None and cancel_event.is_set():
            raise RequestCancelled("Request cancelled before sending")
        if rate_limiter is not None:
            rate_limiter.acquire(cancel_event)
        try:
            return client.messages.create(**kwargs)
        except (anthropic.APIConnectionError, anthropic.APIStatusError) as e:
            if not is_retryable(e) or attempt == max_attempts:
                raise
            last_error = e
            delay = backoff_delay_ms(attempt + 1, base_delay_ms) / 1000
            print(f"  .. API {_describe(e)}, retrying in {delay:.1f}s (attempt {attempt}/{max_attempts})...")
            if cancel_event is not None:
                if cancel_event.wait(delay):
                    raise RequestCancelled("Request cancelled during retry backoff") from e
            else:
                sleep(delay)
    if last_error:
        raise last_error
    raise RuntimeError("retry loop exited without return or raise")
