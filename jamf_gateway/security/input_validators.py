"""Input sanitization for tool arguments.

``sanitize_string()`` cleans free-text arguments (search terms, category
names) before they are embedded in RSQL filters or compared locally.
``format_validation_errors()`` flattens a pydantic ``ValidationError``
into per-field hints the tool layer attaches to its error.
"""

from __future__ import annotations

import unicodedata
from typing import Any


def sanitize_string(value: str) -> str:
    """Drop NUL characters and return the NFC form of *value*."""
    return unicodedata.normalize("NFC", value.replace("\x00", ""))


def format_validation_errors(exc: Any) -> list[dict[str, str]]:
    """One ``{"field", "message"}`` dict per pydantic error, dotted location as field."""
    return [
        {
            "field": ".".join(str(part) for part in err.get("loc", ())) or "unknown",
            "message": err.get("msg", "Validation error"),
        }
        for err in exc.errors()
    ]
