"""Tests for retry/backoff and the rate limiter."""

import threading
from unittest.mock import MagicMock

import anthropic
import pytest

from humanizer.errors import RequestCancelled
from humanizer.pipeline.anthropic_retry import backoff_delay_ms, is_retryable, messages_create_with_retry
from humanizer.pipeline.rate_limit import RateLimiter

from conftest import api_connection_error, api_status_error, fake_message


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


def test_backoff_doubles_from_the_base():
    assert [backoff_delay_ms(a, 1000) for a in (2, 3, 4)] == [1000, 2000, 4000]
    with pytest.raises(ValueError):
        backoff_delay_ms(1, 1000)


@pytest.mark.parametrize("status, expected", [
    (429, True), (500, True), (502, True), (503, True), (504, True),
    (400, False), (401, False), (404, False), (529, False),
])
def test_retryable_statuses(status, expected):
    assert is_retryable(api_status_error(status)) is expected


def test_connection_errors_are_retryable():
    assert is_retryable(api_connection_error())
    assert not is_retryable(ValueError("nope"))


class TestMessagesCreateWithRetry:
    def setup_method(self):
        self.client = MagicMock()
        self.sleeps = []

    def call(self, **kwargs):
        return messages_create_with_retry(
            self.client, max_attempts=3, base_delay_ms=1000, sleep=self.sleeps.append, model="m", **kwargs
        )

    def test_success_passes_kwargs_through(self):
        self.client.messages.create.return_value = fake_message("ok")
        assert self.call(max_tokens=10).content[0].text == "ok"
        self.client.messages.create.assert_called_once_with(model="m", max_tokens=10)
        assert self.sleeps == []

    def test_retries_transient_errors_then_succeeds(self):
        self.client.messages.create.side_effect = [api_status_error(429), api_connection_error(), fake_message("ok")]
        assert self.call().content[0].text == "ok"
        assert self.client.messages.create.call_count == 3
        assert self.sleeps == [1.0, 2.0]

    def test_gives_up_after_max_attempts_with_last_error(self):
        self.client.messages.create.side_effect = [api_status_error(503)] * 3
        with pytest.raises(anthropic.APIStatusError) as exc:
            self.call()
        assert exc.value.status_code == 503
        assert self.client.messages.create.call_count == 3
        assert self.sleeps == [1.0, 2.0]

    def test_client_errors_fail_immediately(self):
        self.client.messages.create.side_effect = api_status_error(400)
        with pytest.raises(anthropic.APIStatusError):
            self.call()
        assert self.client.messages.create.call_count == 1
        assert self.sleeps == []

    def test_cancelled_before_sending(self):
        event = threading.Event()
        event.set()
        with pytest.raises(RequestCancelled):
            self.call(cancel_event=event)
        self.client.messages.create.assert_not_called()

    def test_each_attempt_takes_a_rate_limit_slot(self):
        limiter = MagicMock()
        self.client.messages.create.side_effect = [api_status_error(500), fake_message("ok")]
        self.call(rate_limiter=limiter)
        assert limiter.acquire.call_count == 2


class TestRateLimiter:
    def test_waits_for_oldest_request_to_leave_window(self):
        clock = FakeClock()
        limiter = RateLimiter(2, window=60, clock=clock, sleep=clock.sleep)

        assert limiter.acquire() == 0
        clock.now = 10
        assert limiter.acquire() == 0
        clock.now = 20
        assert limiter.acquire() == pytest.approx(40)
        assert clock.sleeps == [pytest.approx(40)]
        assert limiter.in_window == 2

    def test_cancel_while_waiting(self):
        clock = FakeClock()
        limiter = RateLimiter(1, clock=clock, sleep=clock.sleep)
        limiter.acquire()
        event = threading.Event()
        event.set()
        with pytest.raises(RequestCancelled):
            limiter.acquire(cancel_event=event)

    def test_rejects_non_positive_rate(self):
        with pytest.raises(ValueError):
            RateLimiter(0)
