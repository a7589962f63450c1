"""
Permit pool: process-wide admission control for outbound requests.

Every per-match fetch holds one permit for the duration of its network
call. The pool is created once and shared by all pollers, so the total
number of in-flight detail requests never exceeds its size regardless of
how many sports are polled.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from oddsrelay.models.errors import ShutdownRequested


class PermitPool:
    """
    Bounded counting semaphore that also watches a shutdown event.

    Waiters blocked in ``acquire`` are released with ShutdownRequested as
    soon as the shutdown event is set.

    Usage:
        pool = PermitPool(size=20, shutdown=shutdown_event)
        async with pool.slot():
            response = await client.get(url)
    """

    def __init__(self, size: int, shutdown: Optional[asyncio.Event] = None):
        if size < 1:
            raise ValueError("permit pool size must be >= 1")
        self.size = size
        self._semaphore = asyncio.Semaphore(size)
        self._shutdown = shutdown
        self._in_use = 0
        self.peak_in_use = 0

    @property
    def in_use(self) -> int:
        return self._in_use

    async def acquire(self) -> None:
        if self._shutdown is None:
            await self._semaphore.acquire()
            self._mark_acquired()
            return

        if self._shutdown.is_set():
            raise ShutdownRequested("shutdown in progress")

        acquire_task = asyncio.ensure_future(self._semaphore.acquire())
        stop_task = asyncio.ensure_future(self._shutdown.wait())
        try:
            done, _ = await asyncio.wait(
                {acquire_task, stop_task},
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            self._abandon(acquire_task)
            raise
        finally:
            stop_task.cancel()

        if acquire_task in done:
            self._mark_acquired()
            return

        self._abandon(acquire_task)
        raise ShutdownRequested("shutdown while waiting for a permit")

    def release(self) -> None:
        self._in_use -= 1
        self._semaphore.release()

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        await self.acquire()
        try:
            yield
        finally:
            self.release()

    def _abandon(self, acquire_task: asyncio.Future) -> None:
        """Give up a pending semaphore acquire without leaking its permit."""
        if not acquire_task.done():
            # Semaphore.acquire hands the permit back when cancelled
            acquire_task.cancel()
        elif not acquire_task.cancelled() and acquire_task.exception() is None:
            self._semaphore.release()

    def _mark_acquired(self) -> None:
        self._in_use += 1
        if self._in_use > self.peak_in_use:
            self.peak_in_use = self._in_use
