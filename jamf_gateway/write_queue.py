"""Write serialization queue for mutating tool calls.

Jamf Pro has no per-resource locking or optimistic concurrency, so two
agent-issued writes racing against the same object can silently clobber
each other.  ``ToolWriteQueue`` forces write-like tool invocations through
a bounded FIFO semaphore while reads keep full concurrency.

A write that internally invokes other write-shaped tools (a skill calling
base tools) must not wait on its own lock.  The ambient ``write_depth``
context variable marks the current call chain as already holding the
lock; it is request-scoped, so unrelated concurrent calls never see it.
"""

from __future__ import annotations

import asyncio
import contextvars
import logging
import time
from collections import deque
from collections.abc import Awaitable, Callable, Iterable, Mapping
from typing import TYPE_CHECKING, Any, TypeVar

from jamf_gateway.core.config import DEFAULT_WRITE_TOOL_PREFIXES

if TYPE_CHECKING:
    from jamf_gateway.core.config import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

WRITE_PREFIXES: tuple[str, ...] = tuple(DEFAULT_WRITE_TOOL_PREFIXES)
SKILL_PREFIX = "skill_"

_write_depth: contextvars.ContextVar[int] = contextvars.ContextVar("jamf_write_depth", default=0)


def current_write_depth() -> int:
    """Return 1 inside a write-locked call chain, 0 otherwise."""
    return _write_depth.get()


def is_write_like_tool_name(
    name: str,
    prefixes: Iterable[str] = WRITE_PREFIXES,
    namespace_prefix: str = SKILL_PREFIX,
) -> bool:
    """Return ``True`` if *name* starts with a mutating verb.

    The namespace prefix (``skill_``) is stripped first and matching is
    case-insensitive.  Compound skills such as ``batch_inventory_update``
    do not match here; they are caught by their ``confirm`` flag instead.
    """
    n = str(name or "").strip()
    if not n:
        return False

    if namespace_prefix and n.startswith(namespace_prefix):
        n = n[len(namespace_prefix):]
    lower = n.lower()
    return any(lower.startswith(p.lower()) for p in prefixes)


def _confirm_requested(tool_args: Any) -> bool:
    return isinstance(tool_args, Mapping) and tool_args.get("confirm") is True


class Semaphore:
    """Counting semaphore with strict FIFO hand-off.

    ``acquire()`` returns a release callable.  When a holder releases while
    others wait, the slot passes directly to the oldest waiter, so the
    number of holders never exceeds ``max_concurrency`` and a late caller
    cannot overtake the queue.

    Args:
        max_concurrency: Maximum simultaneous holders (clamped to >= 1).
    """

    def __init__(self, max_concurrency: int = 1) -> None:
        self._max = max(1, int(max_concurrency))
        self._current = 0
        self._waiters: deque[asyncio.Future[None]] = deque()

    @property
    def max_concurrency(self) -> int:
        return self._max

    @property
    def in_use(self) -> int:
        return self._current

    @property
    def waiting(self) -> int:
        return sum(1 for w in self._waiters if not w.done())

    async def acquire(self) -> Callable[[], None]:
        if self._current < self._max and not self.waiting:
            self._current += 1
            return self._make_release()

        waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            await waiter
        except asyncio.CancelledError:
            if waiter.done() and not waiter.cancelled():
                # Slot was already handed to us; pass it on.
                self._release()
            else:
                try:
                    self._waiters.remove(waiter)
                except ValueError:
                    pass
            raise
        return self._make_release()

    def _make_release(self) -> Callable[[], None]:
        released = False

        def release() -> None:
            nonlocal released
            if released:
                return
            released = True
            self._release()

        return release

    def _release(self) -> None:
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                # Hand-off: the slot stays counted and moves to the waiter.
                waiter.set_result(None)
                return
        self._current = max(0, self._current - 1)


class ToolWriteQueue:
    """Serializes write-like tool invocations.

    Args:
        enabled:          When ``False`` every call bypasses the queue.
        concurrency:      Writes allowed to run at once (default 1).
        prefixes:         Verb prefixes that mark a tool name as a write.
        namespace_prefix: Dispatch prefix stripped before matching.
    """

    def __init__(
        self,
        enabled: bool = True,
        concurrency: int = 1,
        prefixes: Iterable[str] = WRITE_PREFIXES,
        namespace_prefix: str = SKILL_PREFIX,
    ) -> None:
        self.enabled = enabled
        self.concurrency = max(1, int(concurrency))
        self.prefixes = tuple(prefixes)
        self.namespace_prefix = namespace_prefix
        self._semaphore = Semaphore(self.concurrency)

    @property
    def semaphore(self) -> Semaphore:
        return self._semaphore

    def is_write_like(self, tool_name: str, tool_args: Any = None) -> bool:
        """Classify a call by name heuristic or an explicit ``confirm=True``."""
        return (
            is_write_like_tool_name(tool_name, self.prefixes, self.namespace_prefix)
            or _confirm_requested(tool_args)
        )

    async def maybe_run_write_locked(
        self,
        tool_name: str,
        tool_args: Any,
        fn: Callable[[], Awaitable[T]],
    ) -> T:
        """Await *fn*, holding the write lock if the call is write-like."""
        if not self.enabled:
            return await fn()

        if _write_depth.get() >= 1:
            return await fn()

        if not self.is_write_like(tool_name, tool_args):
            return await fn()

        release = await self._semaphore.acquire()
        started = time.monotonic()
        logger.info("Acquired write lock for %s (concurrency=%d)", tool_name, self.concurrency)

        token = _write_depth.set(1)
        try:
            return await fn()
        finally:
            _write_depth.reset(token)
            elapsed_ms = (time.monotonic() - started) * 1000
            release()
            logger.info("Released write lock for %s after %.1fms", tool_name, elapsed_ms)


def create_tool_write_queue(settings: Settings) -> ToolWriteQueue:
    """Build the process write queue from operator configuration."""
    return ToolWriteQueue(
        enabled=settings.WRITE_QUEUE_ENABLED,
        concurrency=settings.WRITE_CONCURRENCY,
        prefixes=settings.WRITE_TOOL_PREFIXES,
        namespace_prefix=settings.SKILL_TOOL_PREFIX,
    )
