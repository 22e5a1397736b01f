"""
Editor core test configuration.

ManualScheduler replaces real loop timers so debounce and autosave tests
advance a virtual clock instead of sleeping.
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Callable

import pytest


class ManualHandle:
    def __init__(self, due: float, fn: Callable[[], Any]):
        self.due = due
        self.fn = fn
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """TimerScheduler driven by advance() instead of the event loop clock."""

    def __init__(self):
        self.now = 0.0
        self._timers: list[ManualHandle] = []

    def schedule(self, delay: float, fn: Callable[[], Any]) -> ManualHandle:
        handle = ManualHandle(self.now + delay, fn)
        self._timers.append(handle)
        return handle

    def cancel(self, handle: ManualHandle | None) -> None:
        if handle is not None:
            handle.cancel()

    @property
    def pending(self) -> list[ManualHandle]:
        return [h for h in self._timers if not h.cancelled]

    async def advance(self, seconds: float) -> None:
        """Fire every timer due within the window, in due order."""
        target = self.now + seconds
        while True:
            due = sorted((h for h in self.pending if h.due <= target), key=lambda h: h.due)
            if not due:
                break
            handle = due[0]
            self._timers.remove(handle)
            self.now = handle.due
            result = handle.fn()
            if inspect.isawaitable(result):
                await result
        self.now = target
        # Let tasks started by fired callbacks begin running.
        await asyncio.sleep(0)


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()
