"""Output sanitization for Jamf Pro responses.

Inventory and policy records can carry secrets (FileVault recovery keys,
LAPS passwords, script parameters holding credentials).  The sanitizer
walks the response and masks values under sensitive keys before the
result reaches the agent.
"""

from typing import Any

REDACTED = "***REDACTED***"

_SENSITIVE_KEY_FRAGMENTS: tuple[str, ...] = (
    "password",
    "passcode",
    "secret",
    "token",
    "recoverykey",
    "recovery_key",
    "personalrecoverykey",
)


class OutputSanitizer:
    """Masks sensitive fields in tool output.

    Args:
        active: When ``False`` the sanitizer is a passthrough.
        extra_keys: Additional key fragments (case-insensitive) to mask.
    """

    def __init__(self, active: bool = True, extra_keys: tuple[str, ...] = ()) -> None:
        self.active = active
        self._fragments = tuple(k.lower() for k in _SENSITIVE_KEY_FRAGMENTS + tuple(extra_keys))

    def _is_sensitive(self, key: str) -> bool:
        lower = key.lower()
        return any(fragment in lower for fragment in self._fragments)

    def sanitize(self, data: Any) -> Any:
        """Return a copy of *data* with sensitive values masked."""
        if not self.active:
            return data
        if isinstance(data, dict):
            return {
                key: REDACTED if isinstance(key, str) and self._is_sensitive(key) and value else self.sanitize(value)
                for key, value in data.items()
            }
        if isinstance(data, list):
            return [self.sanitize(item) for item in data]
        return data
