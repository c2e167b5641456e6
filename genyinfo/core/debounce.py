"""Trailing-edge debouncer for async actions."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

from loguru import logger


class Debouncer:
    """
    Coalesce bursts of triggers into a single call of ``action``.

    ``schedule()`` pushes one pending deadline to ``now + delay``; the action
    runs once the deadline passes with no further trigger.  Triggers are
    never queued or counted.
    """

    def __init__(self, delay: float, action: Callable[[], Awaitable[None]]) -> None:
        self._delay = delay
        self._action = action
        self._deadline: float | None = None
        self._waiter: asyncio.Task[None] | None = None
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def pending(self) -> bool:
        return self._deadline is not None

    def schedule(self) -> None:
        loop = asyncio.get_running_loop()
        self._deadline = loop.time() + self._delay
        if self._waiter is None or self._waiter.done():
            self._waiter = loop.create_task(self._wait())
            self._tasks.add(self._waiter)
            self._waiter.add_done_callback(self._tasks.discard)

    def cancel(self) -> None:
        self._deadline = None
        if self._waiter is not None and not self._waiter.done():
            self._waiter.cancel()
        self._waiter = None

    async def join(self) -> None:
        """Wait until no call is pending or running."""
        while True:
            tasks = [t for t in self._tasks if not t.done()]
            if not tasks:
                return
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _wait(self) -> None:
        loop = asyncio.get_running_loop()
        while self._deadline is not None:
            remaining = self._deadline - loop.time()
            if remaining <= 0:
                break
            await asyncio.sleep(remaining)
        if self._deadline is None:
            return
        self._deadline = None
        # a trigger during the action starts a new waiter
        self._waiter = None
        try:
            await self._action()
        except Exception as e:
            logger.error(f"Debounced action failed: {e}")
