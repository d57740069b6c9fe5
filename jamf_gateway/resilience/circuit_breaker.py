"""Async circuit breaker.

Implements the three-state circuit breaker guarding calls to Jamf Pro:

    CLOSED    ->  (failure_threshold reached)          ->  OPEN
    OPEN      ->  (reset_timeout elapsed, next call)   ->  HALF_OPEN
    HALF_OPEN ->  (half_open_requests successes)       ->  CLOSED
    HALF_OPEN ->  (any failure)                        ->  OPEN

Each logical upstream dependency (normally a tool category such as
``computers`` or ``policies``) gets its own ``CircuitBreaker`` through
``CircuitBreakerRegistry``, so one misbehaving endpoint family does not
starve the others.

The breaker is a shared health counter, not a mutex: concurrent calls
against the same key all run, and all of their outcomes are counted.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Iterator
from enum import Enum
from typing import Any, TypeVar

from jamf_gateway.core.errors import CircuitOpenError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


class CircuitBreaker:
    """Async circuit breaker for a single key.

    Args:
        name:               Breaker key (for logging/errors).
        failure_threshold:  Consecutive failures before opening the circuit.
        reset_timeout:      Seconds the circuit stays OPEN before a trial call.
        half_open_requests: Consecutive HALF_OPEN successes needed to close.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        reset_timeout: float = 60.0,
        half_open_requests: int = 2,
    ) -> None:
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        if reset_timeout <= 0:
            raise ValueError("reset_timeout must be > 0")
        if half_open_requests < 1:
            raise ValueError("half_open_requests must be >= 1")

        self.name = name
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self.half_open_requests = half_open_requests

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: float | None = None
        self._half_open_successes = 0
        self._lock = asyncio.Lock()

        # Metrics
        self.total_calls = 0
        self.total_failures = 0
        self.total_rejections = 0
        self.total_successes = 0

    # ── Public properties ────────────────────────────────────────────

    @property
    def state(self) -> CircuitState:
        """Stored state; OPEN only becomes HALF_OPEN when a call arrives."""
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    @property
    def last_failure_time(self) -> float | None:
        return self._last_failure_time

    @property
    def half_open_successes(self) -> int:
        return self._half_open_successes

    def remaining_open_time(self) -> float:
        """Seconds left before an OPEN circuit admits a trial call."""
        if self._state != CircuitState.OPEN or self._last_failure_time is None:
            return 0.0
        elapsed = time.monotonic() - self._last_failure_time
        return max(0.0, self.reset_timeout - elapsed)

    # ── Core call wrapper ────────────────────────────────────────────

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run *operation* under breaker protection.

        Raises ``CircuitOpenError`` without invoking *operation* while the
        circuit is open.  Errors from *operation* are recorded and re-raised
        unchanged.
        """
        await self.pre_check()
        try:
            result = await operation()
        except Exception:
            await self.on_failure()
            raise
        await self.on_success()
        return result

    async def pre_check(self) -> None:
        """Check whether a call is allowed; raise if the circuit is open.

        An OPEN circuit whose reset timeout has elapsed moves to HALF_OPEN
        here and admits the call as a trial.
        """
        async with self._lock:
            if self._state == CircuitState.OPEN:
                remaining = self.remaining_open_time()
                if remaining > 0:
                    self.total_rejections += 1
                    raise CircuitOpenError(self.name, remaining)
                self._state = CircuitState.HALF_OPEN
                self._half_open_successes = 0
                logger.info("Circuit '%s' half-open, admitting trial calls", self.name)

            self.total_calls += 1

    async def on_success(self) -> None:
        """Record a successful call."""
        async with self._lock:
            self.total_successes += 1
            if self._state == CircuitState.HALF_OPEN:
                self._half_open_successes += 1
                if self._half_open_successes >= self.half_open_requests:
                    self._state = CircuitState.CLOSED
                    self._failure_count = 0
                    self._half_open_successes = 0
                    logger.info("Circuit '%s' closed after successful trial calls", self.name)
            elif self._state == CircuitState.CLOSED:
                self._failure_count = 0

    async def on_failure(self) -> None:
        """Record a failed call and open the circuit when warranted."""
        async with self._lock:
            self._failure_count += 1
            self.total_failures += 1
            self._last_failure_time = time.monotonic()

            if self._state == CircuitState.HALF_OPEN:
                self._state = CircuitState.OPEN
                self._half_open_successes = 0
                logger.warning("Circuit '%s' re-opened: trial call failed", self.name)
            elif self._state == CircuitState.CLOSED and self._failure_count >= self.failure_threshold:
                self._state = CircuitState.OPEN
                logger.warning(
                    "Circuit '%s' opened after %d consecutive failures",
                    self.name,
                    self._failure_count,
                )

    async def reset(self) -> None:
        """Force-reset the circuit breaker to CLOSED state."""
        async with self._lock:
            self._state = CircuitState.CLOSED
            self._failure_count = 0
            self._half_open_successes = 0
            self._last_failure_time = None

    def snapshot(self) -> dict[str, Any]:
        """Return a JSON-serializable snapshot for health/metrics."""
        return {
            "name": self.name,
            "state": self._state.value,
            "failure_count": self._failure_count,
            "retry_after_seconds": round(self.remaining_open_time(), 3),
            "total_calls": self.total_calls,
            "total_failures": self.total_failures,
            "total_rejections": self.total_rejections,
            "total_successes": self.total_successes,
        }


class CircuitBreakerRegistry:
    """Keyed, lazily populated map of ``CircuitBreaker`` instances.

    Entries are created on first use of a key and removed only by an
    explicit :meth:`reset`.  There is no eviction.

    Usage::

        registry = CircuitBreakerRegistry(failure_threshold=5, reset_timeout=60.0)
        breaker = registry.get("computers")
        await breaker.execute(fetch_inventory)
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        reset_timeout: float = 60.0,
        half_open_requests: int = 2,
    ) -> None:
        self._threshold = failure_threshold
        self._reset_timeout = reset_timeout
        self._half_open_requests = half_open_requests
        self._breakers: dict[str, CircuitBreaker] = {}

    def get(self, key: str) -> CircuitBreaker:
        """Return (or create) the circuit breaker for *key*."""
        if key not in self._breakers:
            self._breakers[key] = CircuitBreaker(
                name=key,
                failure_threshold=self._threshold,
                reset_timeout=self._reset_timeout,
                half_open_requests=self._half_open_requests,
            )
        return self._breakers[key]

    def peek(self, key: str) -> CircuitBreaker | None:
        """Return the breaker for *key* without creating one."""
        return self._breakers.get(key)

    def reset(self, key: str | None = None) -> None:
        """Forget the breaker for *key*, or every breaker when *key* is ``None``."""
        if key is None:
            self._breakers.clear()
        else:
            self._breakers.pop(key, None)

    def all_snapshots(self) -> list[dict[str, Any]]:
        """Return snapshots for every registered breaker."""
        return [cb.snapshot() for cb in self._breakers.values()]

    def __contains__(self, key: object) -> bool:
        return key in self._breakers

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._breakers))

    def __len__(self) -> int:
        return len(self._breakers)
