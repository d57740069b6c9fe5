"""JamfDispatcher: HTTP dispatch to the Jamf Pro API.

Each MCP tool maps to a ``DispatchRoute`` (HTTP method, path template and
breaker category).  ``JamfDispatcher.send()`` performs one request and
translates the outcome into the gateway error taxonomy;
``JamfDispatcher.dispatch()`` runs ``send()`` through the keyed
retry + circuit breaker executor, keyed by the route's category.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

import httpx

from jamf_gateway.core.config import Settings
from jamf_gateway.core.errors import (
    DEFAULT_RATE_LIMIT_MAX_RETRY_AFTER,
    DEFAULT_RATE_LIMIT_RETRY_AFTER,
    AuthenticationError,
    JamfAPIError,
    NetworkError,
    RateLimitError,
    ValidationError,
)
from jamf_gateway.resilience.executor import RetryableCircuitBreaker
from jamf_gateway.resilience.retry import RetryPolicy

logger = logging.getLogger(__name__)

# ── Data classes ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class DispatchRoute:
    """Route definition for a single tool.

    Attributes:
        path:     API path template, e.g. ``/api/v1/computers-inventory-detail/{computer_id}``.
        method:   HTTP method.
        category: Circuit breaker key shared by related endpoints.
    """

    path: str
    method: str = "GET"
    category: str = "default"


@dataclass
class DispatchResult:
    """Structured response from Jamf Pro.

    Attributes:
        status_code: HTTP status code.
        body:        Parsed JSON body (``{"text": ...}`` for non-JSON bodies).
        headers:     Response headers as a plain dict.
        elapsed_ms:  Round-trip time in milliseconds.
    """

    status_code: int
    body: Any
    headers: dict
    elapsed_ms: float


# ── Route table ────────────────────────────────────────────────────────


def _build_routes() -> dict[str, DispatchRoute]:
    """Build the route table.  Modern (``/api``) and Classic (``/JSSResource``) paths mix freely."""
    return {
        "search_computers": DispatchRoute(
            path="/api/v1/computers-inventory",
            category="computers",
        ),
        "get_computer_details": DispatchRoute(
            path="/api/v1/computers-inventory-detail/{computer_id}",
            category="computers",
        ),
        "delete_computer": DispatchRoute(
            path="/api/v1/computers-inventory/{computer_id}",
            method="DELETE",
            category="computers",
        ),
        "update_inventory": DispatchRoute(
            path="/JSSResource/computercommands/command/UpdateInventory/id/{computer_id}",
            method="POST",
            category="computer-commands",
        ),
        "list_policies": DispatchRoute(
            path="/JSSResource/policies",
            category="policies",
        ),
        "get_policy_details": DispatchRoute(
            path="/JSSResource/policies/id/{policy_id}",
            category="policies",
        ),
        "list_computer_groups": DispatchRoute(
            path="/api/v1/computer-groups",
            category="computer-groups",
        ),
    }


def parse_retry_after(
    value: str | None,
    default: float = DEFAULT_RATE_LIMIT_RETRY_AFTER,
    maximum: float = DEFAULT_RATE_LIMIT_MAX_RETRY_AFTER,
) -> float:
    """Parse a ``Retry-After`` header given as seconds or as an HTTP date.

    Non-finite values fall back to *default*; anything else is clamped to
    ``[0, maximum]``.
    """
    if not value:
        return default
    try:
        seconds = float(value)
    except ValueError:
        try:
            when = parsedate_to_datetime(value)
        except (TypeError, ValueError):
            return default
        if when.tzinfo is None:
            when = when.replace(tzinfo=timezone.utc)
        seconds = (when - datetime.now(timezone.utc)).total_seconds()
    if not math.isfinite(seconds):
        return default
    return min(maximum, max(0.0, seconds))


# ── Dispatcher ──────────────────────────────────────────────────────────


class JamfDispatcher:
    """Dispatches tool calls to Jamf Pro via HTTP.

    Uses one pooled ``httpx.AsyncClient``.  Every request made through
    :meth:`dispatch` is guarded by the circuit breaker of its route's
    category and retried with backoff on transient failures.

    Args:
        settings:   Application settings (upstream URL, token, resilience).
        resilience: Executor to use; built from *settings* when omitted.
    """

    def __init__(
        self,
        settings: Settings,
        resilience: RetryableCircuitBreaker | None = None,
    ) -> None:
        self.routes: dict[str, DispatchRoute] = _build_routes()
        self.base_url = settings.URL.rstrip("/")
        self.timeout = settings.REQUEST_TIMEOUT
        self.max_retry_after = settings.RATE_LIMIT_MAX_RETRY_AFTER / 1000
        self._api_token = settings.API_TOKEN
        # Tests can override this with a client on an httpx.MockTransport
        self._client: httpx.AsyncClient | None = None
        self._resilience = resilience or RetryableCircuitBreaker.from_settings(settings)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {"Accept": "application/json"}
            if self._api_token:
                headers["Authorization"] = f"Bearer {self._api_token}"
            self._client = httpx.AsyncClient(headers=headers, timeout=self.timeout)
        return self._client

    def get_route(self, tool_name: str) -> DispatchRoute | None:
        """Return the ``DispatchRoute`` for *tool_name*, or ``None``."""
        return self.routes.get(tool_name)

    def _require_route(self, tool_name: str) -> DispatchRoute:
        route = self.get_route(tool_name)
        if route is None:
            raise ValueError(f"Unknown tool: {tool_name}")
        return route

    def _parse_body(self, response: httpx.Response) -> Any:
        """Parse a JSON body, falling back to the raw text."""
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            return {"text": response.text}

    def _raise_for_status(self, tool_name: str, response: httpx.Response) -> None:
        """Map an error response onto the gateway error taxonomy."""
        status = response.status_code
        if status < 400:
            return

        context = {"tool": tool_name, "status_code": status, "url": str(response.request.url)}
        message = f"Jamf Pro returned HTTP {status} for {tool_name}"

        if status == 429:
            retry_after = parse_retry_after(response.headers.get("Retry-After"), maximum=self.max_retry_after)
            raise RateLimitError(retry_after, context=context)
        if status in (401, 403):
            raise AuthenticationError(message, status_code=status, context=context)
        if status >= 500:
            raise JamfAPIError(
                message,
                status_code=status,
                suggestions=["Jamf Pro is having trouble; the request will be retried"],
                context=context,
            )
        raise ValidationError(message, status_code=status, context=context)

    async def send(
        self,
        tool_name: str,
        *,
        path_params: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> DispatchResult:
        """Perform a single request for *tool_name* with no retry or breaker.

        Raises:
            ValueError: If *tool_name* is not in the route table.
            NetworkError: On connection failures and timeouts.
            RateLimitError: On HTTP 429.
            AuthenticationError: On HTTP 401/403.
            JamfAPIError: On HTTP 5xx.
            ValidationError: On any other HTTP 4xx.
        """
        route = self._require_route(tool_name)
        url = f"{self.base_url}{route.path.format(**(path_params or {}))}"
        client = self._get_client()

        start = time.monotonic()
        try:
            response = await client.request(
                route.method,
                url,
                params=params or None,
                json=json,
                timeout=self.timeout,
            )
        except httpx.TimeoutException as exc:
            raise NetworkError(
                f"Request for {tool_name} timed out after {self.timeout}s",
                context={"tool": tool_name, "url": url},
            ) from exc
        except httpx.TransportError as exc:
            raise NetworkError.from_error(exc, context={"tool": tool_name, "url": url}) from exc
        elapsed_ms = (time.monotonic() - start) * 1000

        self._raise_for_status(tool_name, response)
        return DispatchResult(
            status_code=response.status_code,
            body=self._parse_body(response),
            headers=dict(response.headers),
            elapsed_ms=round(elapsed_ms, 2),
        )

    async def dispatch(
        self,
        tool_name: str,
        *,
        path_params: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        json: Any = None,
        retry_policy: RetryPolicy | None = None,
    ) -> DispatchResult:
        """Send a request for *tool_name* with breaker protection and retry.

        The breaker key is the route's category, so related endpoints share
        one view of upstream health.
        """
        route = self._require_route(tool_name)
        return await self._resilience.execute_with_retry(
            route.category,
            lambda: self.send(tool_name, path_params=path_params, params=params, json=json),
            retry_policy,
        )

    @property
    def resilience(self) -> RetryableCircuitBreaker:
        """Expose the executor for diagnostics and batch operations."""
        return self._resilience

    async def close(self) -> None:
        """Close the pooled httpx client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
