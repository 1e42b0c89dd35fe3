"""
Retry policy for page fetches.

RetryPolicy.decide() maps a failed attempt to one of three decisions:

    Repeat()            try again right away
    WaitRetry(seconds)  sleep, then try again
    Forward(error)      give up and hand the error to the controller

Rules:
    RateLimitedError, retry_count < 10  -> WaitRetry((retry_after or 4) + 1)
    RateLimitedError, retry_count >= 10 -> ApiErrorEvent("Rate limit exceeded after N retries"), Forward
    UnauthorizedError                   -> AuthErrorEvent(message), WaitRetry(30)
    any other ApiError                  -> ApiErrorEvent(message), Forward

The 30 second wait after Unauthorized gives the token refresher time to
repair the token; the next attempt reads whatever the store holds then.
"""

import time
from dataclasses import dataclass
from typing import Callable, TypeVar

from spot_browser.core.events import ApiErrorEvent, AuthErrorEvent, EventBus, get_event_bus
from spot_browser.core.exceptions import ApiError, RateLimitedError, UnauthorizedError
from spot_browser.core.logger import get_logger, log_api_failure

logger = get_logger(__name__)


MAX_RATE_LIMIT_RETRIES = 10
DEFAULT_RETRY_AFTER = 4
RETRY_AFTER_PADDING = 1
UNAUTHORIZED_WAIT = 30

R = TypeVar("R")


@dataclass(frozen=True)
class Repeat:
    pass


@dataclass(frozen=True)
class WaitRetry:
    seconds: float


@dataclass(frozen=True)
class Forward:
    error: ApiError


RetryDecision = Repeat | WaitRetry | Forward


class RetryPolicy:
    """
    Stateless classifier plus a small driver loop.

    Args:
        bus: Event bus for Auth/ApiError broadcasts, defaults to the
             process bus.
        max_rate_limit_retries: Rate-limit attempts before giving up.
    """

    def __init__(
        self,
        bus: EventBus | None = None,
        max_rate_limit_retries: int = MAX_RATE_LIMIT_RETRIES
    ) -> None:
        self._bus = bus
        self.max_rate_limit_retries = max_rate_limit_retries

    @property
    def bus(self) -> EventBus:
        return self._bus or get_event_bus()

    def decide(self, error: ApiError, retry_count: int) -> RetryDecision:
        if isinstance(error, RateLimitedError):
            if retry_count < self.max_rate_limit_retries:
                retry_after = error.retry_after if error.retry_after is not None else DEFAULT_RETRY_AFTER
                return WaitRetry(retry_after + RETRY_AFTER_PADDING)
            self.bus.publish(ApiErrorEvent(f"Rate limit exceeded after {retry_count} retries"))
            return Forward(error)

        if isinstance(error, UnauthorizedError):
            self.bus.publish(AuthErrorEvent(error.message))
            return WaitRetry(UNAUTHORIZED_WAIT)

        self.bus.publish(ApiErrorEvent(error.message))
        return Forward(error)

    def run(
        self,
        step: Callable[[], R],
        sleep: Callable[[float], None] = time.sleep,
        name: str = "request",
        on_decision: Callable[[RetryDecision], None] | None = None,
        still_wanted: Callable[[], bool] | None = None
    ) -> R:
        """
        Call step() until it succeeds or the policy forwards the error.

        Args:
            step: One attempt (fetch + decode).
            sleep: Called with the WaitRetry delay; tests pass a fake.
            name: Used in log lines.
            on_decision: Observer for every decision taken.
            still_wanted: Checked before every retry; once it returns False
                          the last error is raised instead of retrying
                          (the caller has moved on to another epoch).

        Raises:
            ApiError: The forwarded error.
        """
        retry_count = 0
        while True:
            try:
                return step()
            except ApiError as e:
                log_api_failure(logger, name, e, retry_count)
                decision = self.decide(e, retry_count)
                if on_decision is not None:
                    on_decision(decision)

                if isinstance(decision, Forward):
                    raise decision.error
                if still_wanted is not None and not still_wanted():
                    raise
                if isinstance(decision, WaitRetry):
                    logger.info(f"Retrying {name} in {decision.seconds:g}s")
                    sleep(decision.seconds)
                    if still_wanted is not None and not still_wanted():
                        raise
                retry_count += 1
