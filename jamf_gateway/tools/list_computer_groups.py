"""list_computer_groups tool handler."""

from jamf_gateway.models.schemas import ListComputerGroupsInput
from jamf_gateway.tools.base import ToolContext

TOOL_NAME = "list_computer_groups"


def create_handler(ctx: ToolContext):
    """Return an async handler with a typed signature for FastMCP schema generation."""

    async def list_computer_groups(group_type: str = "all") -> dict:
        """List computer groups (all, smart or static)."""
        args = {"group_type": group_type}

        async def run() -> dict:
            validated = ctx.validate(ListComputerGroupsInput, args)
            result = await ctx.dispatcher.dispatch(TOOL_NAME)
            groups = result.body if isinstance(result.body, list) else []
            if validated.group_type != "all":
                smart = validated.group_type == "smart"
                groups = [g for g in groups if bool(g.get("smartGroup")) == smart]
            return ctx.sanitizer.sanitize({"total": len(groups), "groups": groups})

        return await ctx.run(TOOL_NAME, args, run)

    return list_computer_groups
