"""
Concurrency Infrastructure.

Bounded fan-out and tracked background tasks for the sync core.

Helpers:
    gather_bounded   - run coroutines concurrently under a semaphore inside a
                       TaskGroup; results come back in submission order
    BackgroundTasks  - fire-and-forget work that is still owned: strong
                       references are kept, failures are logged, and
                       shutdown can drain whatever is still running

Usage:
    from qnote.sync.core.concurrency import BackgroundTasks, gather_bounded

    results = await gather_bounded([push(n) for n in notes], limit=8)

    background = BackgroundTasks("public-copy")
    background.spawn(remote.unpublish_note(public_id), name="unpublish")
    ...
    await background.drain()
"""

import asyncio
from collections.abc import Awaitable, Coroutine, Iterable
from typing import Any, TypeVar

from qnote.sync.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


async def gather_bounded(
    coros: Iterable[Coroutine[Any, Any, T]],
    limit: int,
) -> list[T]:
    """Run coroutines with at most ``limit`` in flight at once.

    Uses a TaskGroup, so an exception in one coroutine cancels the rest
    and propagates. Callers that must not fail together should return
    results instead of raising.

    Args:
        coros: Coroutines to run
        limit: Maximum number running concurrently

    Returns:
        Results in the order the coroutines were given
    """
    semaphore = asyncio.Semaphore(limit)

    async def _run(coro: Awaitable[T]) -> T:
        async with semaphore:
            return await coro

    async with asyncio.TaskGroup() as group:
        tasks = [group.create_task(_run(coro)) for coro in coros]

    return [task.result() for task in tasks]


class BackgroundTasks:
    """Owner for fire-and-forget tasks.

    The event loop only keeps weak references to tasks, so spawned work
    must be held somewhere until it finishes.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._tasks: set[asyncio.Task] = set()

    def __len__(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any], name: str | None = None) -> asyncio.Task:
        """Schedule a coroutine on the running loop and track it."""
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Background task failed",
                extra={"group": self.name, "task": task.get_name(), "error": str(exc)},
            )

    async def drain(self) -> None:
        """Wait until every tracked task, including ones spawned meanwhile, is done."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def cancel_all(self) -> None:
        """Cancel tracked tasks and wait for them to finish."""
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*list(self._tasks), return_exceptions=True)
        self._tasks.clear()
