"""Tracking for detached ("fire-and-forget") coroutines.

Spawned tasks are never awaited by the flow that started them. Their
failures are logged, not propagated. ``wait_idle`` lets tests and teardown
observe completion without changing that contract.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Coroutine, Optional, Set

from .logging_utils import log_event


class DetachedTasks:
    def __init__(self, *, logger: Optional[logging.Logger] = None) -> None:
        self._logger = logger or logging.getLogger(__name__)
        self._tasks: Set[asyncio.Task[Any]] = set()
        self._closed = False

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def spawn(
        self, coro: Coroutine[Any, Any, Any], *, name: str
    ) -> Optional[asyncio.Task[Any]]:
        if self._closed:
            coro.close()
            log_event(
                self._logger, logging.DEBUG, "tasks.spawn_after_close", name=name
            )
            return None
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(lambda done: self._on_done(done, name))
        return task

    def _on_done(self, task: asyncio.Task[Any], name: str) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log_event(
                self._logger,
                logging.WARNING,
                "tasks.detached_failed",
                name=name,
                exc=exc,
            )

    async def wait_idle(self) -> None:
        """Wait until every detached task (including ones spawned meanwhile) ends."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        self._closed = True
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
