"""Timer plumbing shared by the channel clients.

Clients never call ``loop.call_later`` themselves; they get a
:data:`Scheduler` so tests can record and fire timers by hand.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any, Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


Scheduler = Callable[[float, Callable[[], None]], TimerHandle]


def loop_scheduler(loop: asyncio.AbstractEventLoop) -> Scheduler:
    """Scheduler backed by ``loop.call_later``."""

    def schedule(delay: float, callback: Callable[[], None]) -> TimerHandle:
        return loop.call_later(delay, callback)

    return schedule


class BackgroundTasks:
    """Fire-and-forget tasks that are still cancelled on teardown."""

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger
        self._tasks: set[asyncio.Task[Any]] = set()

    def __len__(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any], *, name: str | None = None) -> asyncio.Task[Any]:
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._done)
        return task

    def _done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._logger.debug("Background task %s failed", task.get_name(), exc_info=exc)

    async def cancel_all(self) -> None:
        tasks = list(self._tasks)
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
