import asyncio
import logging
from typing import Awaitable, Callable

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_result,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)
from tenacity.wait import wait_base

from venue_engine.core.errors import ConfigurationError
from venue_engine.models import OutcomeKind, ProviderOutcome

logger = logging.getLogger(__name__)


class wait_rate_limit_floor(wait_base):
    """Wrap another wait so a 429 outcome waits at least `floor` seconds."""

    def __init__(self, wait: wait_base, floor: float):
        self.wait = wait
        self.floor = floor

    def __call__(self, retry_state: RetryCallState) -> float:
        delay = self.wait(retry_state)
        outcome = retry_state.outcome
        if outcome is not None and not outcome.failed and outcome.result().status == 429:
            delay = max(delay, self.floor)
        return delay


def _is_retryable(outcome: ProviderOutcome) -> bool:
    return outcome.retryable


class RetryController:
    """
    Bounded exponential backoff around one provider attempt function.

    The attempt function never raises for upstream problems; it reports a
    ProviderOutcome and only outcomes carrying HTTP 429 or 5xx are retried.
    A 429 waits at least `rate_limit_pause_s` before the next attempt.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay_s: float = 0.25,
        max_jitter_s: float = 0.1,
        rate_limit_pause_s: float = 0.8,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if max_attempts < 1:
            raise ConfigurationError("max_attempts must be >= 1")
        self.max_attempts = max_attempts
        self.base_delay_s = base_delay_s
        self.max_jitter_s = max_jitter_s
        self.rate_limit_pause_s = rate_limit_pause_s
        self._sleep = sleep

    def _wait(self) -> wait_base:
        backoff = wait_exponential(multiplier=self.base_delay_s) + wait_random(
            0, self.max_jitter_s
        )
        return wait_rate_limit_floor(backoff, self.rate_limit_pause_s)

    def _log_retry(self, retry_state: RetryCallState) -> None:
        outcome = retry_state.outcome.result()
        logger.info(
            f"{outcome.provider.value} returned {outcome.status}, "
            f"retrying in {retry_state.next_action.sleep:.2f}s "
            f"(attempt {retry_state.attempt_number}/{self.max_attempts})"
        )

    async def run(
        self, attempt_fn: Callable[[], Awaitable[ProviderOutcome]]
    ) -> ProviderOutcome:
        attempts = 0

        async def counted() -> ProviderOutcome:
            nonlocal attempts
            attempts += 1
            outcome = await attempt_fn()
            outcome.attempts = attempts
            return outcome

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=self._wait(),
            retry=retry_if_result(_is_retryable),
            sleep=self._sleep,
            before_sleep=self._log_retry,
            retry_error_callback=lambda state: state.outcome.result(),
        )
        outcome = await retrying(counted)
        if not outcome.retryable:
            return outcome

        logger.warning(
            f"{outcome.provider.value} still failing after {outcome.attempts} attempts "
            f"(last status {outcome.status})"
        )
        if outcome.status == 429:
            outcome.kind = OutcomeKind.RATE_LIMITED
        else:
            outcome.kind = OutcomeKind.UNAVAILABLE
        outcome.hit = None
        return outcome
