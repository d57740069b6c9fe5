"""delete_computer tool handler.

Removes a computer record from inventory.  Write tool: requires
``JAMF_WRITE_ENABLED=true`` and ``confirm=true``.
"""

from jamf_gateway.models.schemas import DeleteComputerInput
from jamf_gateway.tools.base import ToolContext

TOOL_NAME = "delete_computer"


def create_handler(ctx: ToolContext):
    """Return an async handler with a typed signature for FastMCP schema generation."""

    async def delete_computer(computer_id: str, confirm: bool = False) -> dict:
        """Delete a computer record from Jamf Pro."""
        args = {"computer_id": computer_id, "confirm": confirm}

        async def run() -> dict:
            validated = ctx.validate(DeleteComputerInput, args)
            ctx.require_write(TOOL_NAME, validated.confirm)
            result = await ctx.dispatcher.dispatch(
                TOOL_NAME,
                path_params={"computer_id": validated.computer_id},
            )
            return {"computer_id": validated.computer_id, "deleted": True, "status_code": result.status_code}

        return await ctx.run(TOOL_NAME, args, run)

    return delete_computer
