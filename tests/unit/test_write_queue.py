"""Tests for write-like classification, the FIFO semaphore and ToolWriteQueue."""

from __future__ import annotations

import asyncio

import pytest

from jamf_gateway.core.config import Settings
from jamf_gateway.write_queue import (
    Semaphore,
    ToolWriteQueue,
    create_tool_write_queue,
    current_write_depth,
    is_write_like_tool_name,
)

# ── Classification ──────────────────────────────────────────────────────


class TestIsWriteLikeToolName:
    @pytest.mark.parametrize(
        "name",
        [
            "updateFoo",
            "update_inventory",
            "delete_computer",
            "createPolicy",
            "DeployPackage",
            "skill_deploy_policy",
            "send_mdm_command",
            "clone_configuration",
            "  retry_failed_commands  ",
        ],
    )
    def test_write_verbs_match(self, name):
        assert is_write_like_tool_name(name) is True

    @pytest.mark.parametrize(
        "name",
        [
            "getFoo",
            "search_computers",
            "list_policies",
            "skill_batch_inventory_update",
            "",
            None,
        ],
    )
    def test_read_names_do_not_match(self, name):
        assert is_write_like_tool_name(name) is False

    def test_namespace_prefix_only_stripped_once(self):
        assert is_write_like_tool_name("skill_skill_update") is False

    def test_custom_prefixes(self):
        assert is_write_like_tool_name("wipe_device", prefixes=("wipe",)) is True
        assert is_write_like_tool_name("update_inventory", prefixes=("wipe",)) is False

    def test_custom_namespace_prefix(self):
        assert is_write_like_tool_name("ops.update_x", namespace_prefix="ops.") is True


class TestIsWriteLike:
    def test_confirm_true_marks_compound_skill_as_write(self):
        queue = ToolWriteQueue()
        assert queue.is_write_like("skill_batch_inventory_update", {"confirm": True}) is True

    @pytest.mark.parametrize("args", [None, {}, {"confirm": False}, {"confirm": "true"}, {"confirm": 1}, ["confirm"]])
    def test_confirm_must_be_literal_true(self, args):
        queue = ToolWriteQueue()
        assert queue.is_write_like("skill_batch_inventory_update", args) is False

    def test_name_heuristic_ignores_args(self):
        queue = ToolWriteQueue()
        assert queue.is_write_like("update_inventory", {"confirm": False}) is True


# ── Semaphore ───────────────────────────────────────────────────────────


class TestSemaphore:
    async def test_acquire_within_capacity(self):
        sem = Semaphore(2)
        r1 = await sem.acquire()
        r2 = await sem.acquire()
        assert sem.in_use == 2
        r1()
        r2()
        assert sem.in_use == 0

    def test_capacity_clamped_to_one(self):
        assert Semaphore(0).max_concurrency == 1
        assert Semaphore(-3).max_concurrency == 1

    async def test_release_is_idempotent(self):
        sem = Semaphore(1)
        release = await sem.acquire()
        release()
        release()
        assert sem.in_use == 0
        other = await sem.acquire()
        assert sem.in_use == 1
        other()

    async def test_waiters_served_in_fifo_order(self):
        sem = Semaphore(1)
        first = await sem.acquire()
        order: list[int] = []

        async def waiter(n: int):
            release = await sem.acquire()
            order.append(n)
            release()

        tasks = []
        for n in range(4):
            tasks.append(asyncio.create_task(waiter(n)))
            await asyncio.sleep(0)
        assert sem.waiting == 4

        first()
        await asyncio.gather(*tasks)
        assert order == [0, 1, 2, 3]
        assert sem.in_use == 0

    async def test_late_caller_cannot_overtake_queue(self):
        sem = Semaphore(1)
        first = await sem.acquire()
        order: list[str] = []

        async def take(label: str):
            release = await sem.acquire()
            order.append(label)
            release()

        queued = asyncio.create_task(take("queued"))
        await asyncio.sleep(0)
        first()
        late = asyncio.create_task(take("late"))
        await asyncio.gather(queued, late)
        assert order == ["queued", "late"]

    async def test_cancelled_waiter_is_skipped(self):
        sem = Semaphore(1)
        first = await sem.acquire()

        cancelled = asyncio.create_task(sem.acquire())
        await asyncio.sleep(0)
        survivor = asyncio.create_task(sem.acquire())
        await asyncio.sleep(0)

        cancelled.cancel()
        with pytest.raises(asyncio.CancelledError):
            await cancelled

        first()
        release = await asyncio.wait_for(survivor, timeout=1)
        assert sem.in_use == 1
        release()
        assert sem.in_use == 0

    async def test_cancel_after_handoff_passes_slot_on(self):
        sem = Semaphore(1)
        first = await sem.acquire()

        handed = asyncio.create_task(sem.acquire())
        await asyncio.sleep(0)
        survivor = asyncio.create_task(sem.acquire())
        await asyncio.sleep(0)

        # Hand-off resolves the waiter, then the task is cancelled before resuming.
        first()
        handed.cancel()
        with pytest.raises(asyncio.CancelledError):
            await handed

        release = await asyncio.wait_for(survivor, timeout=1)
        assert sem.in_use == 1
        release()
        assert sem.in_use == 0


# ── ToolWriteQueue ──────────────────────────────────────────────────────


class _Tracker:
    """Records how many tracked operations run at once."""

    def __init__(self) -> None:
        self.active = 0
        self.max_active = 0

    async def run(self, duration: float = 0.02, result=None):
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(duration)
            return result
        finally:
            self.active -= 1


class TestToolWriteQueue:
    async def test_writes_never_overlap_with_concurrency_one(self):
        queue = ToolWriteQueue(concurrency=1)
        tracker = _Tracker()

        await asyncio.gather(
            *(queue.maybe_run_write_locked("update_inventory", {}, tracker.run) for _ in range(5))
        )
        assert tracker.max_active == 1

    async def test_concurrency_two_allows_two_writes(self):
        queue = ToolWriteQueue(concurrency=2)
        tracker = _Tracker()

        await asyncio.gather(
            *(queue.maybe_run_write_locked("delete_computer", {}, tracker.run) for _ in range(6))
        )
        assert tracker.max_active == 2

    async def test_returns_fn_result(self):
        queue = ToolWriteQueue()

        async def fn():
            return {"deleted": True}

        assert await queue.maybe_run_write_locked("delete_computer", {}, fn) == {"deleted": True}

    async def test_reads_proceed_while_write_holds_lock(self):
        queue = ToolWriteQueue()
        write_started = asyncio.Event()
        finish_write = asyncio.Event()

        async def slow_write():
            write_started.set()
            await finish_write.wait()
            return "written"

        async def read():
            return "read"

        write = asyncio.create_task(queue.maybe_run_write_locked("update_inventory", {}, slow_write))
        await write_started.wait()

        assert await asyncio.wait_for(
            queue.maybe_run_write_locked("search_computers", {}, read), timeout=1
        ) == "read"

        finish_write.set()
        assert await write == "written"

    async def test_nested_write_does_not_deadlock(self):
        queue = ToolWriteQueue(concurrency=1)

        async def inner():
            assert current_write_depth() == 1
            return "inner-done"

        async def outer():
            return await queue.maybe_run_write_locked("update_inventory", {}, inner)

        result = await asyncio.wait_for(
            queue.maybe_run_write_locked("skill_batch_inventory_update", {"confirm": True}, outer),
            timeout=1,
        )
        assert result == "inner-done"
        assert queue.semaphore.in_use == 0

    async def test_nested_writes_in_child_tasks_pass_through(self):
        queue = ToolWriteQueue(concurrency=1)
        tracker = _Tracker()

        async def outer():
            return await asyncio.gather(
                *(queue.maybe_run_write_locked("update_inventory", {}, tracker.run) for _ in range(3))
            )

        await asyncio.wait_for(
            queue.maybe_run_write_locked("skill_batch_inventory_update", {"confirm": True}, outer),
            timeout=1,
        )
        # Nested calls share the outer lock, so they may run side by side.
        assert tracker.max_active == 3

    async def test_depth_is_restored_after_write(self):
        queue = ToolWriteQueue()

        async def fn():
            return current_write_depth()

        assert await queue.maybe_run_write_locked("update_inventory", {}, fn) == 1
        assert current_write_depth() == 0

    async def test_unrelated_calls_do_not_see_depth(self):
        queue = ToolWriteQueue()
        inside = asyncio.Event()
        release_outer = asyncio.Event()

        async def holder():
            inside.set()
            await release_outer.wait()

        outer = asyncio.create_task(queue.maybe_run_write_locked("update_inventory", {}, holder))
        await inside.wait()

        assert current_write_depth() == 0
        other = asyncio.create_task(queue.maybe_run_write_locked("delete_computer", {}, holder))
        await asyncio.sleep(0.01)
        assert not other.done()
        assert queue.semaphore.waiting == 1

        release_outer.set()
        await asyncio.wait_for(asyncio.gather(outer, other), timeout=1)

    async def test_lock_released_when_fn_raises(self):
        queue = ToolWriteQueue()

        async def boom():
            raise RuntimeError("Jamf said no")

        with pytest.raises(RuntimeError, match="Jamf said no"):
            await queue.maybe_run_write_locked("update_inventory", {}, boom)
        assert queue.semaphore.in_use == 0
        assert current_write_depth() == 0

        async def ok():
            return "ok"

        assert await asyncio.wait_for(queue.maybe_run_write_locked("update_inventory", {}, ok), timeout=1) == "ok"

    async def test_disabled_queue_bypasses_lock(self):
        queue = ToolWriteQueue(enabled=False)
        tracker = _Tracker()

        await asyncio.gather(
            *(queue.maybe_run_write_locked("update_inventory", {}, tracker.run) for _ in range(3))
        )
        assert tracker.max_active == 3

    async def test_disabled_queue_does_not_set_depth(self):
        queue = ToolWriteQueue(enabled=False)

        async def fn():
            return current_write_depth()

        assert await queue.maybe_run_write_locked("update_inventory", {}, fn) == 0

    async def test_writes_complete_in_arrival_order(self):
        queue = ToolWriteQueue()
        order: list[int] = []

        def make(n: int):
            async def fn():
                await asyncio.sleep(0.005)
                order.append(n)

            return fn

        tasks = []
        for n in range(5):
            tasks.append(asyncio.create_task(queue.maybe_run_write_locked("update_inventory", {}, make(n))))
            await asyncio.sleep(0)
        await asyncio.gather(*tasks)
        assert order == [0, 1, 2, 3, 4]

    async def test_logs_acquire_and_release(self, caplog):
        queue = ToolWriteQueue()

        async def fn():
            return None

        with caplog.at_level("INFO", logger="jamf_gateway.write_queue"):
            await queue.maybe_run_write_locked("delete_computer", {}, fn)
        assert "Acquired write lock for delete_computer" in caplog.text
        assert "Released write lock for delete_computer" in caplog.text


class TestCreateToolWriteQueue:
    def test_built_from_settings(self):
        settings = Settings(
            WRITE_QUEUE_ENABLED=False,
            WRITE_CONCURRENCY=3,
            WRITE_TOOL_PREFIXES=["wipe"],
            SKILL_TOOL_PREFIX="ops_",
        )
        queue = create_tool_write_queue(settings)
        assert queue.enabled is False
        assert queue.concurrency == 3
        assert queue.semaphore.max_concurrency == 3
        assert queue.is_write_like("ops_wipe_device") is True
        assert queue.is_write_like("update_inventory") is False

    def test_concurrency_clamped(self):
        queue = create_tool_write_queue(Settings(WRITE_CONCURRENCY=0))
        assert queue.concurrency == 1
