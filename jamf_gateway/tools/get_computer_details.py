"""get_computer_details tool handler."""

from jamf_gateway.models.schemas import GetComputerDetailsInput
from jamf_gateway.tools.base import ToolContext

TOOL_NAME = "get_computer_details"


def create_handler(ctx: ToolContext):
    """Return an async handler with a typed signature for FastMCP schema generation."""

    async def get_computer_details(computer_id: str) -> dict:
        """Get full inventory detail for one computer."""
        args = {"computer_id": computer_id}

        async def run() -> dict:
            validated = ctx.validate(GetComputerDetailsInput, args)
            result = await ctx.dispatcher.dispatch(
                TOOL_NAME,
                path_params={"computer_id": validated.computer_id},
            )
            return ctx.sanitizer.sanitize(result.body)

        return await ctx.run(TOOL_NAME, args, run)

    return get_computer_details
