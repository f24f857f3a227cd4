"""Process-wide requests-per-minute limiter shared by every Claude call."""

from __future__ import annotations

import threading
import time
from collections import deque
from typing import Callable, Optional

from humanizer.errors import RequestCancelled


class RateLimiter:
    """Sliding-window limiter: at most ``requests_per_minute`` sends per ``window`` seconds.

    Safe to share between the worker threads of a parallel fan-out.
    """

    def __init__(
        self,
        requests_per_minute: int,
        window: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if requests_per_minute <= 0:
            raise ValueError(f"requests_per_minute must be positive, got {requests_per_minute}")
        self.requests_per_minute = requests_per_minute
        self.window = window
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._sent: deque[float] = deque()

    def _reserve(self) -> float:
        """Take a slot and return 0, or return how long until one frees up."""
        with self._lock:
            now = self._clock()
            while self._sent and self._sent[0] <= now - self.window:
                self._sent.popleft()
            if len(self._sent) < self.requests_per_minute:
                self._sent.append(now)
                return 0.0
            return self._sent[0] + self.window - now

    def acquire(self, cancel_event: Optional[threading.Event] = None) -> float:
        """Block until a slot is free. Returns the seconds spent waiting."""
        waited = 0.0
        while True:
            wait = self._reserve()
            if wait <= 0:
                return waited
            print(f"  .. Rate limit of {self.requests_per_minute}/min reached, waiting {wait:.1f}s...")
            if cancel_event is not None:
                if cancel_event.wait(wait):
                    raise RequestCancelled("Cancelled while waiting for a rate limit slot")
            else:
                self._sleep(wait)
            waited += wait

    @property
    def in_window(self) -> int:
        with self._lock:
            now = self._clock()
            return sum(1 for t in self._sent if t > now - self.window)


_shared: dict[int, RateLimiter] = {}
_shared_lock = threading.Lock()


def shared_limiter(requests_per_minute: int) -> RateLimiter:
    """The process-wide limiter for this rate; every client built without one shares it."""
    with _shared_lock:
        limiter = _shared.get(requests_per_minute)
        if limiter is None:
            limiter = _shared[requests_per_minute] = RateLimiter(requests_per_minute)
        return limiter
