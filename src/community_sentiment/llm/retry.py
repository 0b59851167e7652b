"""Bounded retry with failure-class-aware backoff for provider calls.

Provider failures are classified into rate-limited, overloaded, other
transient and non-retryable. Retryable classes are retried with a delay of
``scale x attempt`` seconds, where the overloaded class uses a shorter scale
than the rate-limited one. When the attempt ceiling is reached the caller
gets a ProviderTransientError and decides what to do with the batch.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
)

from .exceptions import (
    APIError,
    AuthenticationError,
    LLMConnectionError,
    ProviderTransientError,
    RateLimitError,
)

T = TypeVar('T')


class FailureClass(Enum):
    """Classification of a provider failure."""
    RATE_LIMITED = 'rate_limited'
    OVERLOADED = 'overloaded'
    TRANSIENT = 'transient'
    NON_RETRYABLE = 'non_retryable'

    @property
    def retryable(self) -> bool:
        return self is not FailureClass.NON_RETRYABLE


def classify_failure(exc: BaseException) -> FailureClass:
    """Classify an exception raised by a provider call.

    Args:
        exc: The exception raised by the provider client.

    Returns:
        The FailureClass driving the retry decision.
    """
    if isinstance(exc, AuthenticationError):
        return FailureClass.NON_RETRYABLE
    if isinstance(exc, RateLimitError):
        return FailureClass.RATE_LIMITED
    if isinstance(exc, APIError):
        if exc.status_code == 429:
            return FailureClass.RATE_LIMITED
        if exc.is_overloaded:
            return FailureClass.OVERLOADED
        if exc.is_retryable():
            return FailureClass.TRANSIENT
        return FailureClass.NON_RETRYABLE
    if isinstance(exc, LLMConnectionError):
        return FailureClass.TRANSIENT
    return FailureClass.NON_RETRYABLE


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt ceiling and per-class backoff scales (seconds per attempt).

    Attributes:
        max_attempts: Total attempts per call, including the first one.
        rate_limit_scale: Backoff scale for rate-limited failures.
        overloaded_scale: Backoff scale for overloaded failures.
        transient_scale: Backoff scale for other transient failures.
        max_retry_after: Ceiling on a provider-supplied Retry-After delay.
    """
    max_attempts: int = 3
    rate_limit_scale: float = 5.0
    overloaded_scale: float = 2.0
    transient_scale: float = 5.0
    max_retry_after: float = 60.0

    def __post_init__(self) -> None:
        """Validate policy values after initialization."""
        if self.max_attempts < 1:
            raise ValueError('max_attempts must be >= 1')
        if min(self.rate_limit_scale, self.overloaded_scale, self.transient_scale) < 0:
            raise ValueError('backoff scales must be >= 0')
        if self.max_retry_after < 0:
            raise ValueError('max_retry_after must be >= 0')

    def delay_for(self, failure_class: FailureClass, attempt: int) -> float:
        """Backoff before the retry that follows ``attempt`` failed attempts.

        Args:
            failure_class: Class of the failure that just happened.
            attempt: 1-based number of the attempt that failed.

        Returns:
            Delay in seconds.
        """
        scale = {
            FailureClass.RATE_LIMITED: self.rate_limit_scale,
            FailureClass.OVERLOADED: self.overloaded_scale,
            FailureClass.TRANSIENT: self.transient_scale,
        }.get(failure_class, 0.0)
        return scale * attempt


class RetryController:
    """Runs provider calls under a RetryPolicy.

    The sleep functions are injectable so the give-up path can be exercised
    without real delays.
    """

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
        async_sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the controller.

        Args:
            policy: Retry policy; defaults to RetryPolicy().
            sleep: Blocking sleep used by call().
            async_sleep: Coroutine sleep used by call_async().
        """
        self.policy = policy or RetryPolicy()
        self._sleep = sleep
        self._async_sleep = async_sleep

    def _wait(self, retry_state: RetryCallState) -> float:
        """tenacity wait strategy: per-class linear backoff, honouring Retry-After."""
        exc = retry_state.outcome.exception()
        delay = self.policy.delay_for(classify_failure(exc), retry_state.attempt_number)
        retry_after = getattr(exc, 'retry_after', None)
        if retry_after is not None and retry_after > delay:
            delay = min(retry_after, max(self.policy.max_retry_after, delay))
        return delay

    def _before_sleep(self, retry_state: RetryCallState) -> None:
        """Log each retry before backing off."""
        exc = retry_state.outcome.exception()
        logging.warning(
            'Provider call failed (%s), retrying in %.1fs (attempt %d/%d): %s',
            classify_failure(exc).value,
            retry_state.next_action.sleep if retry_state.next_action else 0.0,
            retry_state.attempt_number,
            self.policy.max_attempts,
            exc,
        )

    def _retry_kwargs(self) -> dict:
        return {
            'stop': stop_after_attempt(self.policy.max_attempts),
            'wait': self._wait,
            'retry': retry_if_exception(lambda e: classify_failure(e).retryable),
            'before_sleep': self._before_sleep,
            'reraise': False,
        }

    def _give_up(self, error: RetryError) -> ProviderTransientError:
        """Build the terminal error once the attempt ceiling is reached."""
        last_exc = error.last_attempt.exception()
        failure_class = classify_failure(last_exc)
        attempts = error.last_attempt.attempt_number
        logging.error(
            'Giving up after %d attempts (%s): %s',
            attempts,
            failure_class.value,
            last_exc,
        )
        return ProviderTransientError(
            f'Provider call failed after {attempts} attempts: {last_exc}',
            client_type=getattr(last_exc, 'client_type', None),
            operation='retry',
            failure_class=failure_class.value,
            attempts=attempts,
        )

    def call(self, fn: Callable[[], T]) -> T:
        """Invoke ``fn`` with retries.

        Args:
            fn: Zero-argument callable performing one provider call.

        Returns:
            The value returned by the first successful attempt.

        Raises:
            ProviderTransientError: If retryable failures exhaust the attempts.
            LLMClientError: Non-retryable failures, unchanged and unretried.
        """
        retrying = Retrying(sleep=self._sleep, **self._retry_kwargs())
        try:
            return retrying(fn)
        except RetryError as e:
            raise self._give_up(e) from e.last_attempt.exception()

    async def call_async(self, fn: Callable[[], Awaitable[T]]) -> T:
        """Await ``fn()`` with retries.

        Args:
            fn: Zero-argument callable returning a fresh awaitable per attempt.

        Returns:
            The value produced by the first successful attempt.

        Raises:
            ProviderTransientError: If retryable failures exhaust the attempts.
            LLMClientError: Non-retryable failures, unchanged and unretried.
        """
        async def attempt() -> T:
            return await fn()

        retrying = AsyncRetrying(sleep=self._async_sleep, **self._retry_kwargs())
        try:
            return await retrying(attempt)
        except RetryError as e:
            raise self._give_up(e) from e.last_attempt.exception()
