"""Cancellable timers for debounce and autosave, backed by the running asyncio loop."""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Callable, Protocol

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class TimerScheduler(Protocol):
    """schedule(delay, fn) -> handle; cancel(handle)."""

    def schedule(self, delay: float, fn: Callable[[], Any]) -> TimerHandle: ...

    def cancel(self, handle: TimerHandle | None) -> None: ...


class AsyncioScheduler:
    """
    TimerScheduler on top of loop.call_later.

    Coroutine callbacks are wrapped in a task when the timer fires; the tasks
    are tracked so close() can cancel anything still running.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self._loop = loop
        self._tasks: set[asyncio.Task] = set()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop or asyncio.get_running_loop()

    def schedule(self, delay: float, fn: Callable[[], Any]) -> asyncio.TimerHandle:
        return self.loop.call_later(max(delay, 0), self._fire, fn)

    def cancel(self, handle: TimerHandle | None) -> None:
        if handle is not None:
            handle.cancel()

    def _fire(self, fn: Callable[[], Any]) -> None:
        result = fn()
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("timers: scheduled callback failed", exc_info=task.exception())

    def close(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()
