# src/tradewatch/infrastructure/sched/supervisor.py
"""
Supervisor for detached (fire-and-forget) tasks.

Detached work such as position refreshes must never block the poll path, but
its failures must not vanish either: every failure is logged and pushed onto
`errors`, which callers can drain or inspect.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Coroutine, List, Set

log = logging.getLogger(__name__)


@dataclass
class TaskFailure:
    name: str
    error: BaseException
    at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class TaskSupervisor:

    def __init__(self, max_errors: int = 1000):
        self._tasks: Set[asyncio.Task] = set()
        self.errors: "asyncio.Queue[TaskFailure]" = asyncio.Queue(maxsize=max_errors)
        self.failure_count = 0

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine, name: str) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is None:
            return
        self.failure_count += 1
        log.warning("Detached task %s failed: %s", task.get_name(), error)
        failure = TaskFailure(name=task.get_name(), error=error)
        if self.errors.full():
            # Keep the newest failures.
            self.errors.get_nowait()
        self.errors.put_nowait(failure)

    def drain_errors(self) -> List[TaskFailure]:
        failures = []
        while not self.errors.empty():
            failures.append(self.errors.get_nowait())
        return failures

    async def join(self, timeout: float = None) -> None:
        """Wait for in-flight detached tasks; cancel whatever is left after `timeout`."""
        if not self._tasks:
            return
        pending = list(self._tasks)
        done, still_running = await asyncio.wait(pending, timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            await asyncio.gather(*still_running, return_exceptions=True)
