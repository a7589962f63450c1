"""
Distribution Channel.

Bounded FIFO of completed batches between the pollers (producers) and the
relay (consumer). Publishing blocks while the channel is full, so a slow
consumer throttles polling instead of losing batches. With several
consumers each batch goes to whichever receives first.
"""

import asyncio

import structlog

from oddsrelay.models.schemas import Batch, SportMode

logger = structlog.get_logger()


class BatchChannel:
    """Fixed-capacity queue of (SportMode, Batch) items."""

    def __init__(self, capacity: int = 100):
        if capacity < 1:
            raise ValueError("channel capacity must be >= 1")
        self.capacity = capacity
        self._queue: asyncio.Queue[tuple[SportMode, Batch]] = asyncio.Queue(maxsize=capacity)
        self.published = 0

    async def publish(self, sport_mode: SportMode, batch: Batch) -> None:
        """Hand a batch over. Waits while the channel is full."""
        if self._queue.full():
            logger.warning(
                "Channel full, publisher waiting",
                sport_mode=str(sport_mode),
                capacity=self.capacity,
            )
        await self._queue.put((sport_mode, batch))
        self.published += 1

    async def receive(self) -> tuple[SportMode, Batch]:
        """Oldest pending batch. Waits while the channel is empty."""
        item = await self._queue.get()
        self._queue.task_done()
        return item

    def qsize(self) -> int:
        return self._queue.qsize()

    def full(self) -> bool:
        return self._queue.full()
