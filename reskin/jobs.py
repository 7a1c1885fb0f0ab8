"""Supervised runner for fire-and-forget background jobs.

Jobs are coroutines spawned on the running event loop. Every job is wrapped
so that an escaping exception is logged instead of surfacing as an
unretrieved task exception; callers that must wait (tests, the CLI) use
``drain()``.
"""

import asyncio
import logging
from typing import Awaitable

logger = logging.getLogger(__name__)


class BackgroundJobs:
    """Tracks spawned jobs until they finish."""

    def __init__(self):
        self._tasks: set[asyncio.Task] = set()

    @property
    def active_count(self) -> int:
        return len(self._tasks)

    def spawn(self, job: Awaitable[None], *, label: str) -> asyncio.Task:
        """Schedule a job; returns immediately."""
        task = asyncio.get_running_loop().create_task(self._supervise(job, label), name=label)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.debug(f"Spawned job {label}")
        return task

    async def _supervise(self, job: Awaitable[None], label: str) -> None:
        try:
            await job
        except asyncio.CancelledError:
            logger.warning(f"Job {label} was cancelled")
            raise
        except Exception:
            logger.error(f"Background job {label} failed", exc_info=True)

    async def drain(self) -> None:
        """Wait until every spawned job (including ones spawned meanwhile) finishes."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
