"""Cancellable scheduled tasks used by presence, typing and call handling."""
from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Hashable

logger = logging.getLogger(__name__)

TimerCallback = Callable[[], Awaitable[None] | None]


class KeyedTimers:
    """One pending delayed callback per key.

    Scheduling a key again replaces the pending callback. A cancelled timer
    never fires, so a reconnect that cancels a pending "offline" timer cannot
    be overwritten by it later.
    """

    def __init__(self, name: str) -> None:
        self._name = name
        self._tasks: dict[Hashable, asyncio.Task[None]] = {}

    def schedule(self, key: Hashable, delay: float, callback: TimerCallback) -> None:
        self.cancel(key)
        self._tasks[key] = asyncio.create_task(
            self._run(key, delay, callback), name=f"{self._name}-{key}",
        )

    def cancel(self, key: Hashable) -> bool:
        task = self._tasks.pop(key, None)
        if task is None:
            return False
        task.cancel()
        return True

    def pending(self, key: Hashable) -> bool:
        return key in self._tasks

    def cancel_all(self) -> None:
        for key in list(self._tasks):
            self.cancel(key)

    async def _run(self, key: Hashable, delay: float, callback: TimerCallback) -> None:
        await asyncio.sleep(delay)
        if self._tasks.get(key) is asyncio.current_task():
            del self._tasks[key]
        try:
            result = callback()
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Timer %s[%s] failed", self._name, key)


class PeriodicTask:
    """Background loop that calls ``func`` every ``interval`` seconds."""

    def __init__(self, name: str, interval: float, func: Callable[[], Any]) -> None:
        self._name = name
        self._interval = interval
        self._func = func
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name=self._name)
        logger.info("%s started (interval=%.1fs)", self._name, self._interval)

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("%s stopped", self._name)

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                result = self._func()
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("%s iteration failed", self._name)
