"""Fire-and-forget tasks whose failure must never reach the caller.

Decade counters and notification records are written after a memory is
created. They are scheduled here instead of awaited: the runner keeps a
strong reference to every task until it finishes and logs any failure.
"""
import asyncio
import logging
from typing import Awaitable, Set

logger = logging.getLogger(__name__)


class BestEffortRunner:

    def __init__(self) -> None:
        self._tasks: Set[asyncio.Task] = set()  # type: ignore[type-arg]

    def schedule(self, coro: Awaitable[object], label: str) -> asyncio.Task:  # type: ignore[type-arg]
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)

        def _done(t: asyncio.Task) -> None:  # type: ignore[type-arg]
            self._tasks.discard(t)
            if t.cancelled():
                logger.warning("Side effect cancelled: %s", label)
                return
            exc = t.exception()
            if exc is not None:
                logger.error("Side effect failed (%s): %s", label, exc)
            else:
                logger.debug("Side effect done: %s", label)

        task.add_done_callback(_done)
        return task

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every scheduled task to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
