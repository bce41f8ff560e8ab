"""Process-wide bound on in-flight forwards."""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, TypeVar

T = TypeVar("T")


class ConcurrencyGate:
    """Admits at most ``limit`` tasks at a time.

    Waiters park on an ``asyncio.Semaphore`` and are woken when a slot frees
    up; there is no wait timeout and no FIFO guarantee.  ``active`` and
    ``peak`` are only touched between awaits on the event loop thread.
    """

    def __init__(self, limit: int) -> None:
        if limit < 1:
            raise ValueError(f"concurrency limit must be >= 1, got {limit}")
        self._limit = limit
        self._semaphore = asyncio.Semaphore(limit)
        self._active = 0
        self._peak = 0

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def active(self) -> int:
        """Number of tasks currently holding a slot."""
        return self._active

    @property
    def peak(self) -> int:
        """Highest ``active`` value observed since creation."""
        return self._peak

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        """Hold one slot for the duration of the ``async with`` block."""
        async with self._semaphore:
            self._active += 1
            self._peak = max(self._peak, self._active)
            try:
                yield
            finally:
                self._active -= 1

    async def run(self, task: Callable[[], Awaitable[T]]) -> T:
        """Wait for a slot, then await ``task()`` while holding it.

        The slot is released however the task exits, including when it
        raises or the caller is cancelled.
        """
        async with self.slot():
            return await task()
