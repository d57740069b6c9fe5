"""Keyed retry + circuit breaker executor.

``RetryableCircuitBreaker`` owns a ``CircuitBreakerRegistry`` and runs
each operation through ``retry_with_backoff`` where every individual
attempt is gated by the breaker for the operation's key.  A single
logical call can therefore both retry transient failures and trip (or
observe) the breaker across those retries.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from jamf_gateway.resilience.circuit_breaker import CircuitBreakerRegistry, CircuitState
from jamf_gateway.resilience.retry import RetryPolicy, retry_with_backoff

if TYPE_CHECKING:
    from jamf_gateway.core.config import Settings

T = TypeVar("T")


class RetryableCircuitBreaker:
    """Per-key circuit breakers combined with backoff retry.

    Args:
        failure_threshold:  Failures before a key's circuit opens.
        reset_timeout:      Seconds an open circuit waits before a trial call.
        half_open_requests: Trial successes needed to close a circuit.
        retry_policy:       Policy used when a call does not pass its own.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        reset_timeout: float = 60.0,
        half_open_requests: int = 2,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self._registry = CircuitBreakerRegistry(
            failure_threshold=failure_threshold,
            reset_timeout=reset_timeout,
            half_open_requests=half_open_requests,
        )
        self.retry_policy = retry_policy

    @classmethod
    def from_settings(cls, settings: Settings) -> RetryableCircuitBreaker:
        return cls(
            failure_threshold=settings.CIRCUIT_BREAKER_THRESHOLD,
            reset_timeout=settings.CIRCUIT_BREAKER_RESET_TIMEOUT / 1000,
            half_open_requests=settings.CIRCUIT_BREAKER_HALF_OPEN_REQUESTS,
            retry_policy=RetryPolicy.from_settings(settings),
        )

    async def execute_with_retry(
        self,
        key: str,
        operation: Callable[[], Awaitable[T]],
        retry_policy: RetryPolicy | None = None,
    ) -> T:
        """Run *operation* with retry, each attempt guarded by *key*'s breaker."""
        return await retry_with_backoff(
            lambda: self._registry.get(key).execute(operation),
            retry_policy or self.retry_policy,
        )

    def get_circuit_state(self, key: str) -> CircuitState | None:
        """State of *key*'s breaker, or ``None`` if the key has never been used."""
        breaker = self._registry.peek(key)
        return breaker.state if breaker is not None else None

    def get_failure_count(self, key: str) -> int | None:
        """Failure count of *key*'s breaker, or ``None`` for unknown keys."""
        breaker = self._registry.peek(key)
        return breaker.failure_count if breaker is not None else None

    def reset(self, key: str | None = None) -> None:
        """Drop the breaker for *key*, or all breakers."""
        self._registry.reset(key)

    def all_snapshots(self) -> list[dict[str, Any]]:
        return self._registry.all_snapshots()

    @property
    def circuit_breakers(self) -> CircuitBreakerRegistry:
        return self._registry


# ── Batch helper ───────────────────────────────────────────────────────


@dataclass
class BatchItemResult(Generic[T]):
    """Outcome of one operation in a batch.

    Exactly one of ``result`` / ``error`` is meaningful, selected by
    ``success``.
    """

    success: bool
    result: T | None = None
    error: BaseException | None = None


async def batch_retry_with_breaker(
    operations: Sequence[Callable[[], Awaitable[T]]],
    breaker: RetryableCircuitBreaker,
    key_prefix: str = "batch",
    retry_policy: RetryPolicy | None = None,
) -> list[BatchItemResult[T]]:
    """Run every operation under its own breaker key ``{key_prefix}-{index}``.

    Failures are captured per item and never abort the batch.  Results
    come back in input order.
    """
    if not operations:
        return []

    outcomes = await asyncio.gather(
        *(
            breaker.execute_with_retry(f"{key_prefix}-{index}", op, retry_policy)
            for index, op in enumerate(operations)
        ),
        return_exceptions=True,
    )

    results: list[BatchItemResult[T]] = []
    for outcome in outcomes:
        if isinstance(outcome, BaseException):
            results.append(BatchItemResult(success=False, error=outcome))
        else:
            results.append(BatchItemResult(success=True, result=outcome))
    return results
