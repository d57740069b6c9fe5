"""Shared plumbing for Jamf tool handlers.

Every handler factory receives a ``ToolContext``.  ``ToolContext.run``
routes the invocation through the write queue before the handler body
talks to the dispatcher, and ``require_write`` enforces the write
guardrails (operator opt-in plus an explicit ``confirm=true``).
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

import pydantic
from fastmcp.exceptions import ToolError

from jamf_gateway.core.config import Settings
from jamf_gateway.core.errors import (
    JamfGatewayError,
    StructuredErrorResponse,
    ValidationError,
    WritesDisabledError,
)
from jamf_gateway.security.input_validators import format_validation_errors
from jamf_gateway.security.output_sanitizer import OutputSanitizer
from jamf_gateway.tool_dispatcher import JamfDispatcher
from jamf_gateway.write_queue import ToolWriteQueue

T = TypeVar("T")
M = TypeVar("M", bound=pydantic.BaseModel)

logger = logging.getLogger(__name__)


@dataclass
class ToolContext:
    """Collaborators shared by all tool handlers."""

    dispatcher: JamfDispatcher
    sanitizer: OutputSanitizer
    write_queue: ToolWriteQueue
    settings: Settings

    async def run(self, tool_name: str, args: dict[str, Any], fn: Callable[[], Awaitable[T]]) -> T:
        """Run *fn* through the write queue; gateway errors become a structured ``ToolError``."""
        try:
            return await self.write_queue.maybe_run_write_locked(tool_name, args, fn)
        except JamfGatewayError as exc:
            response = StructuredErrorResponse.from_exception(exc, request_id=str(uuid.uuid4()))
            logger.warning("Tool %s failed (%s): %s", tool_name, response.request_id, exc.to_detailed_string())
            raise ToolError(response.model_dump_json()) from exc

    def validate(self, model: type[M], args: dict[str, Any]) -> M:
        """Build *model* from *args*, reporting failures as ``ValidationError``."""
        try:
            return model(**args)
        except pydantic.ValidationError as exc:
            problems = format_validation_errors(exc)
            raise ValidationError(
                f"Invalid arguments: {', '.join(p['field'] for p in problems)}",
                status_code=None,
                suggestions=[f"{p['field']}: {p['message']}" for p in problems],
            ) from exc

    def require_write(self, tool_name: str, confirm: bool) -> None:
        """Refuse a mutating call unless writes are enabled and confirmed."""
        if not self.settings.WRITE_ENABLED:
            raise WritesDisabledError(tool_name)
        if confirm is not True:
            raise ValidationError(
                f"Tool '{tool_name}' modifies Jamf Pro and requires confirm=true",
                status_code=None,
                suggestions=["Re-run the tool with confirm=true after reviewing the change"],
                context={"tool": tool_name},
            )
