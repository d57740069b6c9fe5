"""skill_batch_inventory_update tool handler.

Compound write: sends UpdateInventory to many computers.  The skill's
name carries no write verb, so the queue recognises it by its
``confirm=true`` argument.  Each per-device command re-enters the write
queue as ``update_inventory``; because the skill already holds the lock,
those nested calls pass straight through instead of deadlocking.

Devices go out in chunks of ``max_concurrent`` and each chunk finishes
before the next starts.  Every device retries under a key unique to this
batch, so one unreachable device cannot trip the breaker of another,
while each attempt also passes the ``computer-commands`` category
breaker.  Once that category circuit opens, the remaining devices fail
fast with ``CIRCUIT_OPEN`` and never reach Jamf Pro.
"""

import logging
import uuid

from jamf_gateway.core.errors import JamfGatewayError
from jamf_gateway.models.schemas import BatchInventoryUpdateInput
from jamf_gateway.resilience.executor import BatchItemResult, batch_retry_with_breaker
from jamf_gateway.tools import update_inventory
from jamf_gateway.tools.base import ToolContext

TOOL_NAME = "skill_batch_inventory_update"

logger = logging.getLogger(__name__)


def _make_operation(ctx: ToolContext, category: str, computer_id: str):
    command = update_inventory.TOOL_NAME
    command_args = {"computer_id": computer_id, "confirm": True}
    resilience = ctx.dispatcher.resilience

    async def send():
        return await resilience.circuit_breakers.get(category).execute(
            lambda: ctx.dispatcher.send(command, path_params={"computer_id": computer_id})
        )

    async def operation():
        return await ctx.write_queue.maybe_run_write_locked(command, command_args, send)

    return operation


def _describe_failure(error: BaseException) -> dict:
    if isinstance(error, JamfGatewayError):
        return {"error": error.message, "code": error.error_code}
    return {"error": str(error) or type(error).__name__, "code": "INTERNAL_ERROR"}


async def _run_in_chunks(ctx: ToolContext, computer_ids: list[str], chunk_size: int) -> list[BatchItemResult]:
    category = ctx.dispatcher.get_route(update_inventory.TOOL_NAME).category
    resilience = ctx.dispatcher.resilience
    key_prefix = f"batch-inventory-{uuid.uuid4().hex[:8]}"

    outcomes: list[BatchItemResult] = []
    try:
        for start in range(0, len(computer_ids), chunk_size):
            chunk = computer_ids[start:start + chunk_size]
            outcomes.extend(
                await batch_retry_with_breaker(
                    [_make_operation(ctx, category, cid) for cid in chunk],
                    resilience,
                    key_prefix=f"{key_prefix}-{start}",
                )
            )
    finally:
        for key in [k for k in resilience.circuit_breakers if k.startswith(f"{key_prefix}-")]:
            resilience.reset(key)
    return outcomes


def create_handler(ctx: ToolContext):
    """Return an async handler with a typed signature for FastMCP schema generation."""

    async def skill_batch_inventory_update(
        computer_ids: list[str],
        max_concurrent: int = 5,
        confirm: bool = False,
    ) -> dict:
        """Send UpdateInventory to several computers; failures are reported per device."""
        args = {"computer_ids": computer_ids, "max_concurrent": max_concurrent, "confirm": confirm}

        async def run() -> dict:
            validated = ctx.validate(BatchInventoryUpdateInput, args)
            ctx.require_write(TOOL_NAME, validated.confirm)

            outcomes = await _run_in_chunks(ctx, validated.computer_ids, validated.max_concurrent)

            results = []
            for computer_id, outcome in zip(validated.computer_ids, outcomes):
                if outcome.success:
                    results.append({"computer_id": computer_id, "success": True})
                else:
                    results.append({"computer_id": computer_id, "success": False, **_describe_failure(outcome.error)})

            succeeded = sum(1 for r in results if r["success"])
            logger.info(
                "Batch inventory update: %d/%d succeeded",
                succeeded,
                len(results),
            )
            return {
                "total": len(results),
                "succeeded": succeeded,
                "failed": len(results) - succeeded,
                "results": results,
            }

        return await ctx.run(TOOL_NAME, args, run)

    return skill_batch_inventory_update
