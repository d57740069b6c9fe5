"""list_policies tool handler.

The Classic endpoint returns every policy; ``category`` and ``limit`` are
applied locally.
"""

from jamf_gateway.models.schemas import ListPoliciesInput
from jamf_gateway.tools.base import ToolContext

TOOL_NAME = "list_policies"


def _filter_policies(body: dict, validated: ListPoliciesInput) -> dict:
    policies = body.get("policies", []) if isinstance(body, dict) else []
    if validated.category:
        wanted = validated.category.lower()
        policies = [
            p for p in policies
            if str((p.get("category") or {}).get("name", "")).lower() == wanted
        ]
    return {"total": len(policies), "policies": policies[: validated.limit]}


def create_handler(ctx: ToolContext):
    """Return an async handler with a typed signature for FastMCP schema generation."""

    async def list_policies(limit: int = 100, category: str = "") -> dict:
        """List policies, optionally filtered by category name."""
        args = {"limit": limit, "category": category}

        async def run() -> dict:
            validated = ctx.validate(ListPoliciesInput, args)
            result = await ctx.dispatcher.dispatch(TOOL_NAME)
            return ctx.sanitizer.sanitize(_filter_policies(result.body, validated))

        return await ctx.run(TOOL_NAME, args, run)

    return list_policies
