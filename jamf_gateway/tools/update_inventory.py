"""update_inventory tool handler.

Sends the UpdateInventory MDM command to one computer.  Write tool:
requires ``JAMF_WRITE_ENABLED=true`` and ``confirm=true``.
"""

from jamf_gateway.models.schemas import UpdateInventoryInput
from jamf_gateway.tools.base import ToolContext

TOOL_NAME = "update_inventory"


def create_handler(ctx: ToolContext):
    """Return an async handler with a typed signature for FastMCP schema generation."""

    async def update_inventory(computer_id: str, confirm: bool = False) -> dict:
        """Ask a computer to submit fresh inventory."""
        args = {"computer_id": computer_id, "confirm": confirm}

        async def run() -> dict:
            validated = ctx.validate(UpdateInventoryInput, args)
            ctx.require_write(TOOL_NAME, validated.confirm)
            result = await ctx.dispatcher.dispatch(
                TOOL_NAME,
                path_params={"computer_id": validated.computer_id},
            )
            return {
                "computer_id": validated.computer_id,
                "status_code": result.status_code,
                "response": ctx.sanitizer.sanitize(result.body),
            }

        return await ctx.run(TOOL_NAME, args, run)

    return update_inventory
