"""Settings for the Jamf Pro MCP gateway.

Centralized configuration loaded from environment variables with the
``JAMF_`` prefix.  Durations keep the units operators already use for the
upstream client: retry and breaker timings are milliseconds, the HTTP
request timeout is seconds.
"""

from __future__ import annotations

from pydantic_settings import BaseSettings

DEFAULT_WRITE_TOOL_PREFIXES: list[str] = [
    "create",
    "update",
    "delete",
    "retry",
    "execute",
    "deploy",
    "remove",
    "set",
    "trigger",
    "run",
    "send",
    "clone",
]


class Settings(BaseSettings):
    """Jamf MCP gateway configuration.

    All fields can be overridden by environment variables prefixed with
    ``JAMF_``.  For example, ``JAMF_MAX_RETRIES=5`` overrides the default
    retry count.
    """

    # ── Service identity ────────────────────────────────────────────
    SERVICE_NAME: str = "jamf-mcp-gateway"
    SERVICE_VERSION: str = "0.1.0"
    HOST: str = "0.0.0.0"
    PORT: int = 8087
    LOG_LEVEL: str = "INFO"

    # ── Upstream Jamf Pro ───────────────────────────────────────────
    URL: str = "https://example.jamfcloud.com"
    API_TOKEN: str = ""  # Static bearer token; refresh is handled elsewhere
    REQUEST_TIMEOUT: float = 30.0  # Seconds per HTTP request

    # ── Retry with backoff ──────────────────────────────────────────
    MAX_RETRIES: int = 3
    RETRY_DELAY: int = 1000  # Initial delay, ms
    RETRY_MAX_DELAY: int = 10000  # Delay ceiling, ms
    RETRY_BACKOFF_MULTIPLIER: float = 2.0
    DEBUG_MODE: bool = False
    RATE_LIMIT_MAX_RETRY_AFTER: int = 300000  # Ceiling on a 429 Retry-After, ms

    # ── Circuit breakers ────────────────────────────────────────────
    CIRCUIT_BREAKER_THRESHOLD: int = 5  # Consecutive failures before OPEN
    CIRCUIT_BREAKER_RESET_TIMEOUT: int = 60000  # ms before a HALF_OPEN trial
    CIRCUIT_BREAKER_HALF_OPEN_REQUESTS: int = 2  # Successes needed to close

    # ── Write serialization ─────────────────────────────────────────
    WRITE_QUEUE_ENABLED: bool = True
    WRITE_CONCURRENCY: int = 1
    WRITE_TOOL_PREFIXES: list[str] = list(DEFAULT_WRITE_TOOL_PREFIXES)
    SKILL_TOOL_PREFIX: str = "skill_"
    WRITE_ENABLED: bool = False  # Write tools refused unless explicitly enabled

    model_config = {
        "env_prefix": "JAMF_",
    }
