"""
Keyed debouncing for asyncio callbacks.

Each key has at most one pending call. Scheduling again for the same key
cancels the pending call and restarts the delay.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable, Hashable


class Debouncer:
    def __init__(self) -> None:
        self._pending: dict[Hashable, asyncio.Task] = {}

    def schedule(
        self,
        key: Hashable,
        delay: float,
        callback: Callable[[], Awaitable[None] | None],
    ) -> asyncio.Task:
        """Run `callback` after `delay` seconds unless rescheduled or cancelled."""
        self.cancel(key)
        task = asyncio.ensure_future(self._run(key, delay, callback))
        self._pending[key] = task
        return task

    def cancel(self, key: Hashable) -> bool:
        task = self._pending.pop(key, None)
        if task is None:
            return False
        task.cancel()
        return True

    def cancel_all(self) -> None:
        for key in list(self._pending):
            self.cancel(key)

    def is_pending(self, key: Hashable) -> bool:
        return key in self._pending

    async def _run(
        self,
        key: Hashable,
        delay: float,
        callback: Callable[[], Awaitable[None] | None],
    ) -> None:
        await asyncio.sleep(delay)
        if self._pending.get(key) is asyncio.current_task():
            del self._pending[key]
        result = callback()
        if inspect.isawaitable(result):
            await result
