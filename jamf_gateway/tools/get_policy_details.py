"""get_policy_details tool handler."""

from jamf_gateway.models.schemas import GetPolicyDetailsInput
from jamf_gateway.tools.base import ToolContext

TOOL_NAME = "get_policy_details"


def create_handler(ctx: ToolContext):
    """Return an async handler with a typed signature for FastMCP schema generation."""

    async def get_policy_details(policy_id: str) -> dict:
        """Get the full definition of one policy."""
        args = {"policy_id": policy_id}

        async def run() -> dict:
            validated = ctx.validate(GetPolicyDetailsInput, args)
            result = await ctx.dispatcher.dispatch(
                TOOL_NAME,
                path_params={"policy_id": validated.policy_id},
            )
            return ctx.sanitizer.sanitize(result.body)

        return await ctx.run(TOOL_NAME, args, run)

    return get_policy_details
