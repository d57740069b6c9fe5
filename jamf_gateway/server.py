"""FastMCP server.

Creates a FastMCP server with every Jamf tool registered from the
``ToolRegistry``.  Each handler runs: write queue -> validate -> dispatch
(retry + circuit breaker) -> sanitize -> return.
"""

from collections.abc import Callable
from typing import Any

from fastmcp import FastMCP
from mcp.types import ToolAnnotations

from jamf_gateway.core.config import Settings
from jamf_gateway.security.output_sanitizer import OutputSanitizer
from jamf_gateway.tool_dispatcher import JamfDispatcher
from jamf_gateway.tool_registry import ToolRegistry
from jamf_gateway.tools import (
    batch_inventory_update,
    delete_computer,
    get_computer_details,
    get_policy_details,
    list_computer_groups,
    list_policies,
    search_computers,
    update_inventory,
)
from jamf_gateway.tools.base import ToolContext
from jamf_gateway.write_queue import ToolWriteQueue, create_tool_write_queue

# ── Handler factory mapping ────────────────────────────────────────────

_HANDLER_FACTORIES: dict[str, Callable[..., Any]] = {
    "search_computers": search_computers.create_handler,
    "get_computer_details": get_computer_details.create_handler,
    "list_policies": list_policies.create_handler,
    "get_policy_details": get_policy_details.create_handler,
    "list_computer_groups": list_computer_groups.create_handler,
    "update_inventory": update_inventory.create_handler,
    "delete_computer": delete_computer.create_handler,
    "skill_batch_inventory_update": batch_inventory_update.create_handler,
}


# ── Server factory ─────────────────────────────────────────────────────


def create_mcp_server(
    registry: ToolRegistry,
    dispatcher: JamfDispatcher,
    sanitizer: OutputSanitizer,
    settings: Settings,
    write_queue: ToolWriteQueue | None = None,
) -> FastMCP:
    """Create a FastMCP server with all tools from the registry.

    Args:
        registry:    Loaded ``ToolRegistry`` (from YAML config).
        dispatcher:  ``JamfDispatcher`` for upstream HTTP calls.
        sanitizer:   ``OutputSanitizer`` applied to every result.
        settings:    Application settings (write guardrails).
        write_queue: Queue shared by all tools; built from *settings*
                     when omitted.

    Returns:
        A configured ``FastMCP`` instance ready for SSE/HTTP transport.
    """
    mcp = FastMCP(name="jamf-mcp-gateway")
    ctx = ToolContext(
        dispatcher=dispatcher,
        sanitizer=sanitizer,
        write_queue=write_queue or create_tool_write_queue(settings),
        settings=settings,
    )

    for tool_def in registry.list_all():
        factory = _HANDLER_FACTORIES.get(tool_def.name)
        if factory is None:
            raise ValueError(
                f"No handler factory for tool '{tool_def.name}'. Available: {sorted(_HANDLER_FACTORIES.keys())}"
            )
        handler = factory(ctx)
        mcp.tool(
            name=tool_def.name,
            description=tool_def.description,
            tags=set(tool_def.tags),
            annotations=ToolAnnotations(
                readOnlyHint=not tool_def.write_like,
                destructiveHint=tool_def.write_like,
            ),
        )(handler)

    return mcp
