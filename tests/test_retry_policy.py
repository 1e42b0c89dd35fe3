"""Test the retry policy decisions and driver loop"""

import logging

import pytest

from spot_browser.controller import Forward, RetryPolicy, WaitRetry
from spot_browser.core import (
    ApiErrorEvent,
    AuthErrorEvent,
    DecodeError,
    OtherApiError,
    RateLimitedError,
    TransportError,
    UnauthorizedError,
)


@pytest.fixture
def published(bus):
    events = []
    bus.subscribe(AuthErrorEvent, events.append, weak=False)
    bus.subscribe(ApiErrorEvent, events.append, weak=False)
    return events


class TestDecide:
    """Test RetryPolicy.decide()"""

    def test_rate_limited_waits_retry_after_plus_one(self, bus, published):
        """Test RateLimited(k) waits k + 1 seconds"""
        policy = RetryPolicy(bus)
        assert policy.decide(RateLimitedError("slow", retry_after=1), 0) == WaitRetry(2)
        assert policy.decide(RateLimitedError("slow", retry_after=7), 9) == WaitRetry(8)
        assert published == []

    def test_rate_limited_without_hint(self, bus):
        """Test a missing Retry-After defaults to 4 (+1) seconds"""
        policy = RetryPolicy(bus)
        assert policy.decide(RateLimitedError("slow"), 3) == WaitRetry(5)

    def test_rate_limited_gives_up_after_ten(self, bus, published):
        """Test the 10th retry is forwarded with an ApiErrorEvent"""
        policy = RetryPolicy(bus)
        error = RateLimitedError("slow", retry_after=1)

        decision = policy.decide(error, 10)

        assert decision == Forward(error)
        assert [type(e) for e in published] == [ApiErrorEvent]
        assert published[0].message == "Rate limit exceeded after 10 retries"

    def test_unauthorized_waits_thirty_seconds(self, bus, published):
        """Test Unauthorized broadcasts AuthError and waits 30 seconds"""
        policy = RetryPolicy(bus)

        decision = policy.decide(UnauthorizedError("Token expired"), 0)

        assert decision == WaitRetry(30)
        assert [(type(e), e.message) for e in published] == [(AuthErrorEvent, "Token expired")]

    @pytest.mark.parametrize("error", [
        TransportError("Connection reset"),
        DecodeError("Bad JSON"),
        OtherApiError("Not found", http_status=404),
    ])
    def test_other_errors_forward(self, bus, published, error):
        """Test every other ApiError is forwarded and broadcast"""
        policy = RetryPolicy(bus)

        assert policy.decide(error, 0) == Forward(error)
        assert [(type(e), e.message) for e in published] == [(ApiErrorEvent, error.message)]


class TestRun:
    """Test RetryPolicy.run()"""

    def test_success_first_time(self, bus, fake_sleep):
        """Test a successful step is returned without sleeping"""
        assert RetryPolicy(bus).run(lambda: 42, sleep=fake_sleep) == 42
        assert fake_sleep.calls == []

    def test_retries_until_success(self, bus, fake_sleep):
        """Test rate limits are waited out"""
        outcomes = [RateLimitedError("slow", retry_after=2), RateLimitedError("slow", retry_after=0), "ok"]

        def step():
            outcome = outcomes.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

        decisions = []
        result = RetryPolicy(bus).run(step, sleep=fake_sleep, on_decision=decisions.append)

        assert result == "ok"
        assert fake_sleep.calls == [3, 1]
        assert decisions == [WaitRetry(3), WaitRetry(1)]

    def test_cooperative_fake_succeeds_within_ten_attempts(self, bus, fake_sleep):
        """Test nine rate limits in a row still end in success"""
        failures = iter(range(9))

        def step():
            if next(failures, None) is not None:
                raise RateLimitedError("slow", retry_after=0)
            return "done"

        assert RetryPolicy(bus).run(step, sleep=fake_sleep) == "done"
        assert len(fake_sleep.calls) == 9

    def test_persistent_rate_limit_is_forwarded(self, bus, fake_sleep):
        """Test the error surfaces once retries are exhausted"""
        def step():
            raise RateLimitedError("slow", retry_after=0)

        with pytest.raises(RateLimitedError):
            RetryPolicy(bus, max_rate_limit_retries=3).run(step, sleep=fake_sleep)
        assert fake_sleep.calls == [1, 1, 1]

    def test_forwarded_error_is_raised(self, bus, fake_sleep):
        """Test a forwarded error stops the loop immediately"""
        calls = []

        def step():
            calls.append(1)
            raise TransportError("Timed out")

        with pytest.raises(TransportError):
            RetryPolicy(bus).run(step, sleep=fake_sleep)
        assert len(calls) == 1

    def test_unwanted_result_stops_retrying(self, bus, fake_sleep):
        """Test still_wanted() turning False ends the loop after the wait"""
        wanted = [True]

        def sleep(seconds):
            fake_sleep(seconds)
            wanted[0] = False

        def step():
            raise UnauthorizedError("Token expired")

        with pytest.raises(UnauthorizedError):
            RetryPolicy(bus).run(step, sleep=sleep, still_wanted=lambda: wanted[0])
        assert fake_sleep.calls == [30]

    def test_failures_are_logged_with_fields(self, bus, fake_sleep, caplog):
        """Test each failed attempt logs the loader and error kind"""
        outcomes = [OtherApiError("Gone", http_status=410)]

        def step():
            raise outcomes[0]

        with caplog.at_level(logging.WARNING, logger="spot_browser.controller.retry"):
            with pytest.raises(OtherApiError):
                RetryPolicy(bus).run(step, sleep=fake_sleep, name="saved tracks")

        record = caplog.records[0]
        assert record.loader_name == "saved tracks"
        assert record.api_error_kind == "OtherApiError"
        assert record.api_error_status == 410
