"""Structured errors for the Jamf MCP gateway.

Custom exception hierarchy shared by the dispatcher, the resilience
executor and the MCP tool handlers.  Every error carries a
machine-readable ``error_code`` and a list of human ``suggestions`` so the
tool layer can surface it to an end user without further wrapping.
"""

from __future__ import annotations

import math
from typing import Any

from pydantic import BaseModel

# Rate-limited responses without a usable Retry-After header wait this long
DEFAULT_RATE_LIMIT_RETRY_AFTER: float = 60.0
# Upper bound on any server-requested wait, seconds
DEFAULT_RATE_LIMIT_MAX_RETRY_AFTER: float = 300.0


class JamfGatewayError(Exception):
    """Base exception for all gateway errors."""

    default_code = "GATEWAY_ERROR"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        suggestions: list[str] | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.error_code = error_code or self.default_code
        self.suggestions = list(suggestions or [])
        self.context = dict(context or {})
        super().__init__(message)

    def to_detailed_string(self) -> str:
        """Render message, code and suggestions on one line for logs."""
        parts = [f"[{self.error_code}] {self.message}"]
        if self.suggestions:
            parts.append("suggestions: " + "; ".join(self.suggestions))
        return " | ".join(parts)


class JamfAPIError(JamfGatewayError):
    """An error returned by (or on the way to) the Jamf Pro API.

    Attributes:
        status_code: HTTP status of the failed response, when there was one.
    """

    default_code = "JAMF_API_ERROR"

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error_code: str | None = None,
        suggestions: list[str] | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        self.status_code = status_code
        if error_code is None and status_code is not None:
            error_code = f"HTTP_{status_code}"
        super().__init__(message, error_code, suggestions, context)


class NetworkError(JamfAPIError):
    """The upstream could not be reached (connect failure, timeout, reset)."""

    default_code = "NETWORK_ERROR"

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(
            message,
            error_code=self.default_code,
            suggestions=["Check network connectivity to the Jamf Pro server"],
            context=context,
        )

    @classmethod
    def from_error(cls, exc: BaseException, context: dict[str, Any] | None = None) -> NetworkError:
        detail = str(exc) or type(exc).__name__
        return cls(f"Network error: {detail}", context=context)


class AuthenticationError(JamfAPIError):
    """Credentials were rejected or lack the required API role privileges."""

    default_code = "AUTH_ERROR"

    def __init__(
        self,
        message: str,
        status_code: int | None = 401,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message,
            status_code=status_code,
            error_code=self.default_code,
            suggestions=["Verify the API client credentials and its Jamf Pro privileges"],
            context=context,
        )


class ValidationError(JamfAPIError):
    """The request was rejected as invalid (4xx other than auth and 429)."""

    default_code = "VALIDATION_ERROR"

    def __init__(
        self,
        message: str,
        status_code: int | None = 400,
        suggestions: list[str] | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message,
            status_code=status_code,
            error_code=self.default_code,
            suggestions=suggestions,
            context=context,
        )


class RateLimitError(JamfAPIError):
    """The upstream throttled the request (HTTP 429).

    Attributes:
        retry_after: Seconds the server asked us to wait before retrying.
    """

    default_code = "RATE_LIMITED"

    def __init__(
        self,
        retry_after: float = DEFAULT_RATE_LIMIT_RETRY_AFTER,
        context: dict[str, Any] | None = None,
    ) -> None:
        retry_after = float(retry_after)
        if not math.isfinite(retry_after):
            retry_after = DEFAULT_RATE_LIMIT_RETRY_AFTER
        self.retry_after = max(0.0, retry_after)
        super().__init__(
            f"Rate limit exceeded, retry after {self.retry_after:g}s",
            status_code=429,
            error_code=self.default_code,
            suggestions=[f"Wait {math.ceil(self.retry_after)} seconds before retrying"],
            context=context,
        )


class CircuitOpenError(JamfGatewayError):
    """Raised when a circuit breaker rejects a call without attempting it.

    Attributes:
        key:         Breaker key (logical upstream dependency).
        retry_after: Seconds until the breaker allows a trial call.
    """

    default_code = "CIRCUIT_OPEN"

    def __init__(self, key: str, retry_after: float) -> None:
        self.key = key
        self.retry_after = max(0.0, retry_after)
        wait_seconds = math.ceil(self.retry_after)
        super().__init__(
            f"Circuit breaker open for '{key}', retry after {wait_seconds}s",
            error_code=self.default_code,
            suggestions=[f"Wait {wait_seconds} seconds before retrying"],
            context={"key": key},
        )


class WritesDisabledError(JamfGatewayError):
    """Raised when a write tool is called while writes are disabled."""

    default_code = "WRITES_DISABLED"

    def __init__(self, tool_name: str) -> None:
        self.tool_name = tool_name
        super().__init__(
            f"Tool '{tool_name}' modifies Jamf Pro but writes are disabled",
            suggestions=["Set JAMF_WRITE_ENABLED=true to allow write tools"],
            context={"tool": tool_name},
        )


class StructuredErrorResponse(BaseModel):
    """Structured error payload returned to callers.

    Never contains stack traces.  ``recoverable`` and ``retry_after_ms``
    tell the caller whether trying again later is worthwhile.
    """

    error: str
    code: str
    request_id: str
    recoverable: bool = False
    retry_after_ms: int | None = None
    suggestions: list[str] = []

    @classmethod
    def from_exception(cls, exc: Exception, request_id: str) -> StructuredErrorResponse:
        """Create from an exception, mapping to machine-readable codes.

        Never leaks internal details for unhandled exceptions.
        """
        if isinstance(exc, RateLimitError):
            return cls(
                error=str(exc),
                code=exc.error_code,
                request_id=request_id,
                recoverable=True,
                retry_after_ms=int(exc.retry_after * 1000),
                suggestions=exc.suggestions,
            )
        if isinstance(exc, CircuitOpenError):
            return cls(
                error=str(exc),
                code=exc.error_code,
                request_id=request_id,
                recoverable=True,
                retry_after_ms=math.ceil(exc.retry_after * 1000),
                suggestions=exc.suggestions,
            )
        if isinstance(exc, NetworkError):
            return cls(
                error=str(exc),
                code=exc.error_code,
                request_id=request_id,
                recoverable=True,
                retry_after_ms=5000,
                suggestions=exc.suggestions,
            )
        if isinstance(exc, JamfAPIError) and exc.status_code is not None and exc.status_code >= 500:
            return cls(
                error=str(exc),
                code=exc.error_code,
                request_id=request_id,
                recoverable=True,
                retry_after_ms=10000,
                suggestions=exc.suggestions,
            )
        if isinstance(exc, JamfGatewayError):
            return cls(
                error=str(exc),
                code=exc.error_code,
                request_id=request_id,
                suggestions=exc.suggestions,
            )
        # Unhandled, never expose internal details
        return cls(
            error="An internal error occurred",
            code="INTERNAL_ERROR",
            request_id=request_id,
        )
