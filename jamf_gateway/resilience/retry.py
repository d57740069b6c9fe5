"""Retry with exponential backoff.

``retry_with_backoff`` re-runs a failing async operation while its error
is classified as transient.  Classification defaults to
``is_retryable_error``: network failures, HTTP 5xx and rate limiting are
retried, everything else (validation, auth, circuit-open) is raised on
first occurrence.  A rate-limited error never waits less than the
server's ``Retry-After``.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar

import httpx

from jamf_gateway.core.errors import JamfAPIError, NetworkError, RateLimitError

if TYPE_CHECKING:
    from jamf_gateway.core.config import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff schedule and retry classification.

    Attributes:
        max_retries:        Retries after the first attempt (0 = single attempt).
        initial_delay:      Delay before the first retry, seconds.
        max_delay:          Ceiling for the exponential delay, seconds.
        backoff_multiplier: Growth factor between consecutive delays.
        retry_condition:    Overrides ``is_retryable_error`` when given.
        on_retry:           Observer called as ``(error, attempt, delay)``
                            before each wait.
        jitter:             Fraction of the delay added at random.
        debug:              Log each retry at INFO instead of DEBUG.
    """

    max_retries: int = 3
    initial_delay: float = 1.0
    max_delay: float = 10.0
    backoff_multiplier: float = 2.0
    retry_condition: Callable[[BaseException], bool] | None = None
    on_retry: Callable[[BaseException, int, float], Any] | None = None
    jitter: float = 0.0
    debug: bool = False

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.backoff_multiplier < 1:
            raise ValueError("backoff_multiplier must be >= 1")
        if self.initial_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must be >= 0")

    @classmethod
    def from_settings(cls, settings: Settings) -> RetryPolicy:
        """Build the operator-configured default policy (ms -> seconds)."""
        return cls(
            max_retries=settings.MAX_RETRIES,
            initial_delay=settings.RETRY_DELAY / 1000,
            max_delay=settings.RETRY_MAX_DELAY / 1000,
            backoff_multiplier=settings.RETRY_BACKOFF_MULTIPLIER,
            debug=settings.DEBUG_MODE,
        )

    def backoff_delay(self, attempt: int) -> float:
        """Exponential delay after the 1-based *attempt*, capped at ``max_delay``."""
        base = self.initial_delay * (self.backoff_multiplier ** (attempt - 1))
        return min(self.max_delay, base)


def is_retryable_error(error: BaseException) -> bool:
    """Default classification: transient failures are retryable."""
    if isinstance(error, (RateLimitError, NetworkError)):
        return True
    if isinstance(error, JamfAPIError):
        return error.status_code is not None and error.status_code >= 500
    return isinstance(error, (httpx.TransportError, ConnectionError, TimeoutError))


def get_retry_delay(error: BaseException, delay: float) -> float:
    """Raise *delay* to the server-mandated wait for rate-limited errors."""
    if isinstance(error, RateLimitError):
        return max(delay, error.retry_after)
    return delay


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None = None,
) -> T:
    """Run *operation*, retrying transient failures with exponential backoff.

    Makes at most ``policy.max_retries + 1`` invocations.  The last error
    is re-raised unchanged once retries are exhausted or the error is not
    retryable.
    """
    policy = policy or RetryPolicy()
    should_retry = policy.retry_condition or is_retryable_error
    attempt = 0

    while True:
        attempt += 1
        try:
            return await operation()
        except Exception as exc:
            if attempt > policy.max_retries or not should_retry(exc):
                raise

            delay = policy.backoff_delay(attempt)
            if policy.jitter:
                delay += random.uniform(0, policy.jitter * delay)
            delay = get_retry_delay(exc, delay)

            if policy.on_retry is not None:
                policy.on_retry(exc, attempt, delay)
            logger.log(
                logging.INFO if policy.debug else logging.DEBUG,
                "Retry attempt %d/%d in %.2fs after %s: %s",
                attempt,
                policy.max_retries,
                delay,
                type(exc).__name__,
                exc,
            )
            await asyncio.sleep(delay)


def with_retry(
    policy: RetryPolicy | None = None,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Decorate an async function so each call goes through ``retry_with_backoff``."""

    def decorator(fn: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(fn)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            return await retry_with_backoff(lambda: fn(*args, **kwargs), policy)

        return wrapper

    return decorator
