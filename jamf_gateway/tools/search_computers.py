"""search_computers tool handler.

Searches the Modern inventory endpoint by computer name, returning the
GENERAL section of each match.
"""

from jamf_gateway.models.schemas import SearchComputersInput
from jamf_gateway.tools.base import ToolContext

TOOL_NAME = "search_computers"


def create_handler(ctx: ToolContext):
    """Return an async handler with a typed signature for FastMCP schema generation."""

    async def search_computers(
        query: str = "",
        page: int = 0,
        page_size: int = 100,
    ) -> dict:
        """Search computers by name (wildcard match)."""
        args = {"query": query, "page": page, "page_size": page_size}

        async def run() -> dict:
            validated = ctx.validate(SearchComputersInput, args)
            result = await ctx.dispatcher.dispatch(TOOL_NAME, params=validated.to_params())
            return ctx.sanitizer.sanitize(result.body)

        return await ctx.run(TOOL_NAME, args, run)

    return search_computers
