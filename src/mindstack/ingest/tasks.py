"""Fire-and-forget background task runner.

Submitted coroutines run as named asyncio tasks, at most ``max_concurrent``
at a time. Failures go to the log only; the submitter never sees them.
Strong references are held until each task finishes so the event loop
does not garbage-collect running work.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

logger = logging.getLogger(__name__)


class TaskRunner:
    def __init__(self, max_concurrent: int = 4) -> None:
        self._max_concurrent = max(1, max_concurrent)
        self._semaphore = asyncio.Semaphore(self._max_concurrent)
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def submit(self, coro: Coroutine[Any, Any, Any], *, name: str) -> asyncio.Task:
        """Schedule *coro* on the running loop and return immediately."""
        task = asyncio.get_running_loop().create_task(self._guarded(coro, name), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _guarded(self, coro: Coroutine[Any, Any, Any], name: str) -> None:
        async with self._semaphore:
            try:
                await coro
            except asyncio.CancelledError:
                logger.warning("Background task %s cancelled", name)
                raise
            except Exception:
                logger.exception("Background task %s failed", name)

    async def drain(self) -> None:
        """Wait for every outstanding task to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
