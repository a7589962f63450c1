"""
Sport Poller.

One poller per (sport, mode) pair. Each cycle:
1. Listing: list the sport's matches (filtered to 24h, no esports)
2. FetchingBatch: fetch + process every match concurrently, wait for all
3. Publishing: hand the batch to the distribution channel (may block)
4. Sleeping: live or pre-match interval, cut short by shutdown

A failed match only leaves a hole in the batch. A failed listing skips
publishing for that cycle. Nothing stops the loop except shutdown.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import structlog

from config.settings import PollingSettings
from oddsrelay.engine.processor import MatchProcessor
from oddsrelay.feeds.kambi import KambiClient
from oddsrelay.models.errors import (
    FetchError,
    FetchNotFound,
    ListingFailure,
    MalformedEvent,
    ShutdownRequested,
)
from oddsrelay.models.schemas import Batch, RawEvent, SportMode
from oddsrelay.relay.channel import BatchChannel

logger = structlog.get_logger()


class PollerState(str, Enum):
    """Where a poller is in its cycle."""
    LISTING = "listing"
    FETCHING_BATCH = "fetching_batch"
    PUBLISHING = "publishing"
    SLEEPING = "sleeping"
    STOPPED = "stopped"


@dataclass
class PollerStats:
    """Counters for one poller."""
    cycles: int = 0
    published: int = 0
    listing_failures: int = 0
    match_failures: int = 0
    not_found: int = 0
    last_batch_size: int = 0


def interval_for(sport_mode: SportMode, polling: PollingSettings) -> float:
    """Sleep between cycles: short for live, long for pre-match."""
    if sport_mode.is_live:
        return polling.live_update_interval
    return polling.prematch_update_interval


class SportPoller:
    """
    Continuous update loop for one sport mode.

    The permit pool (inside the client) and the channel are shared with
    every other poller; the batch map and its lock belong to one cycle.
    """

    def __init__(
        self,
        sport_mode: SportMode,
        client: KambiClient,
        processor: MatchProcessor,
        channel: BatchChannel,
        shutdown: asyncio.Event,
        interval: float,
    ):
        self.sport_mode = sport_mode
        self.client = client
        self.processor = processor
        self.channel = channel
        self.shutdown = shutdown
        self.interval = interval

        self.state = PollerState.SLEEPING
        self.stats = PollerStats()
        self.logger = logger.bind(
            component="sport_poller",
            sport=sport_mode.sport,
            mode=sport_mode.mode.value,
        )

    # =========================================================================
    # Main Loop
    # =========================================================================

    async def run(self) -> None:
        """Poll until the shutdown event is set."""
        self.logger.info("Starting poller", interval=self.interval)

        while not self.shutdown.is_set():
            try:
                await self.run_cycle()
            except Exception as e:
                # Keep polling whatever happens inside a cycle
                self.logger.error("Cycle failed", error=str(e), exc_info=True)
            await self._sleep()

        self.state = PollerState.STOPPED
        self.logger.info("Poller stopped", cycles=self.stats.cycles)

    async def run_cycle(self) -> Optional[Batch]:
        """
        Run one listing -> fetch -> publish cycle.

        Returns:
            The published batch, or None when the listing failed
        """
        self.stats.cycles += 1
        self.state = PollerState.LISTING
        self.logger.info("Updating matches")

        try:
            events = await self.client.list_matches(self.sport_mode)
        except ListingFailure as e:
            self.stats.listing_failures += 1
            self.logger.warning("Listing failed, skipping cycle", error=str(e))
            return None

        self.state = PollerState.FETCHING_BATCH
        batch = await self.fetch_batch(events)

        self.state = PollerState.PUBLISHING
        await self.channel.publish(self.sport_mode, batch)
        self.stats.published += 1
        self.stats.last_batch_size = len(batch)

        self.logger.info("Updated matches", listed=len(events), published=len(batch))
        return batch

    # =========================================================================
    # Fan-out
    # =========================================================================

    async def fetch_batch(self, events: list[RawEvent]) -> Batch:
        """
        Fetch and process every listed match concurrently.

        Waits for all units; no unit is cancelled once launched.
        """
        batch: Batch = {}
        lock = asyncio.Lock()
        tasks: list[asyncio.Task] = []

        for event in events:
            if self.shutdown.is_set():
                self.logger.info("Shutdown requested, not launching more fetches")
                break
            tasks.append(asyncio.create_task(self._fetch_one(event.id, batch, lock)))

        if tasks:
            results = await asyncio.gather(*tasks, return_exceptions=True)
            for result in results:
                if isinstance(result, Exception):
                    self.stats.match_failures += 1
                    self.logger.error("Unexpected match failure", error=repr(result))

        return batch

    async def _fetch_one(self, match_id: int, batch: Batch, lock: asyncio.Lock) -> None:
        try:
            payload = await self.client.fetch_match(match_id)
            record = self.processor.process(payload)
        except FetchNotFound:
            self.stats.not_found += 1
            self.logger.debug("Match gone", match_id=match_id)
            return
        except (FetchError, MalformedEvent) as e:
            self.stats.match_failures += 1
            self.logger.warning("Match skipped", match_id=match_id, error=str(e))
            return
        except ShutdownRequested:
            return

        async with lock:
            batch[str(record.event_id)] = record

    async def _sleep(self) -> None:
        self.state = PollerState.SLEEPING
        try:
            await asyncio.wait_for(self.shutdown.wait(), timeout=self.interval)
        except asyncio.TimeoutError:
            pass
