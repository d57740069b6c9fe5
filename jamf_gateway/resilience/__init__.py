"""Resilience patterns: circuit breaker, backoff retry and the keyed executor.

Every upstream Jamf Pro call runs through ``RetryableCircuitBreaker`` so a
flaky or rate-limited server cannot cascade failures into the agent.
"""

from jamf_gateway.resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerRegistry,
    CircuitState,
)
from jamf_gateway.resilience.executor import (
    BatchItemResult,
    RetryableCircuitBreaker,
    batch_retry_with_breaker,
)
from jamf_gateway.resilience.retry import (
    RetryPolicy,
    get_retry_delay,
    is_retryable_error,
    retry_with_backoff,
    with_retry,
)

__all__ = [
    "BatchItemResult",
    "CircuitBreaker",
    "CircuitBreakerRegistry",
    "CircuitState",
    "RetryPolicy",
    "RetryableCircuitBreaker",
    "batch_retry_with_breaker",
    "get_retry_delay",
    "is_retryable_error",
    "retry_with_backoff",
    "with_retry",
]
