"""
Tracked background work.

Request handlers hand slow follow-up work (bank sync after a webhook, goal
e-mails) to the runner instead of awaiting it. Tasks are kept in a set until
they finish, failures are logged, and drain() waits for everything still in
flight (used at shutdown and in tests).
"""

import asyncio
import logging
from typing import Awaitable, Set

logger = logging.getLogger(__name__)


class BackgroundTaskRunner:
    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()
        self.failed_count = 0

    def spawn(self, coro: Awaitable, name: str) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        task.set_name(name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning("task.cancelled", extra={"fields": {"task": task.get_name()}})
            return
        error = task.exception()
        if error is not None:
            self.failed_count += 1
            logger.error(
                "task.failed",
                exc_info=(type(error), error, error.__traceback__),
                extra={"fields": {"task": task.get_name()}}
            )

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for all in-flight tasks; failures are already logged."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


task_runner = BackgroundTaskRunner()
