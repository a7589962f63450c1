"""
Kambi Odds Relay - Main Entry Point.

Runs one poller per configured sport mode:
1. List live / upcoming matches of the sport
2. Fetch every match under the shared permit pool
3. Normalize bet offers into canonical codes
4. Publish the cycle's batch to websocket subscribers

Usage:
    python -m oddsrelay.main

Environment Variables (see config/settings.py, nested with "__"):
    SPORTS_TO_PARSE                  - JSON list of {"sport", "mode"} pairs
    POLLING__MATCHES_PER_BATCH       - concurrent detail requests (permit pool)
    POLLING__LIVE_UPDATE_INTERVAL    - seconds between live cycles
    UPSTREAM__API_COUNTRY_CODE       - Kambi offering code, e.g. ubnl
    RELAY__WEBSOCKET_PORT            - relay port
"""

import asyncio
import signal
from pathlib import Path
from typing import Optional

import structlog

from config.settings import Settings
from oddsrelay.engine.poller import SportPoller, interval_for
from oddsrelay.engine.processor import MatchProcessor
from oddsrelay.feeds.kambi import KambiClient
from oddsrelay.feeds.permits import PermitPool
from oddsrelay.relay.channel import BatchChannel
from oddsrelay.relay.server import RelayServer
from oddsrelay.utils.logging import MatchAuditLog, close_logging, setup_logging

logger = structlog.get_logger()

# Extra time granted to in-flight fetch barriers on shutdown
SHUTDOWN_GRACE_SECONDS = 5.0


def create_data_dir(path: str) -> Path:
    data_dir = Path(path)
    if data_dir.exists():
        logger.info("Directory already exists", path=str(data_dir))
    else:
        data_dir.mkdir(parents=True)
        logger.info("Directory created", path=str(data_dir))
    return data_dir


class OddsRelay:
    """
    Application orchestrator.

    Owns the process-wide shared objects (permit pool, channel, HTTP
    client) and hands them to every poller.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.logger = logger.bind(component="odds_relay")

        sport_modes = settings.sports_to_parse
        capacity = settings.polling.channel_capacity
        if capacity < len(sport_modes):
            raise ValueError(
                f"channel capacity {capacity} is smaller than the number of pollers ({len(sport_modes)})"
            )

        self._shutdown_event = asyncio.Event()
        self.permits = PermitPool(settings.polling.matches_per_batch, shutdown=self._shutdown_event)
        self.channel = BatchChannel(capacity)
        self.client = KambiClient(
            settings.upstream,
            self.permits,
            timeout=settings.polling.timeout_on_external_service,
        )
        self.processor = MatchProcessor(audit=MatchAuditLog(settings.path_to_data))
        self.pollers = [
            SportPoller(
                sport_mode=sm,
                client=self.client,
                processor=self.processor,
                channel=self.channel,
                shutdown=self._shutdown_event,
                interval=interval_for(sm, settings.polling),
            )
            for sm in sport_modes
        ]
        self.relay = RelayServer(
            self.channel,
            host=settings.relay.websocket_host,
            port=settings.relay.websocket_port,
            broadcast_interval=settings.relay.broadcast_interval,
        )

        self._tasks: list[asyncio.Task] = []

    async def start(self) -> None:
        """Start pollers and relay, then wait for shutdown."""
        self.logger.info(
            "Starting odds relay",
            sport_modes=[str(p.sport_mode) for p in self.pollers],
            permits=self.permits.size,
            channel_capacity=self.channel.capacity,
        )

        create_data_dir(self.settings.path_to_data)
        await self.client.start()
        await self.relay.start()

        self._tasks = [
            asyncio.create_task(poller.run(), name=f"poller:{poller.sport_mode}")
            for poller in self.pollers
        ]

        await self._shutdown_event.wait()
        await self.stop()

    async def stop(self) -> None:
        """Let in-flight cycles finish, then tear everything down."""
        self.logger.info("Shutting down...")
        self._shutdown_event.set()

        if self._tasks:
            grace = self.settings.polling.timeout_on_external_service + SHUTDOWN_GRACE_SECONDS
            _, pending = await asyncio.wait(self._tasks, timeout=grace)
            for task in pending:
                # Typically blocked publishing into a full channel
                self.logger.warning("Cancelling poller", task=task.get_name())
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
            self._tasks = []

        await self.relay.stop()
        await self.client.close()
        self.logger.info("Odds relay stopped")

    def shutdown(self) -> None:
        """Trigger graceful shutdown."""
        if not self._shutdown_event.is_set():
            self._shutdown_event.set()
            self.logger.info("Shutdown signal set")


async def run(settings: Optional[Settings] = None) -> None:
    settings = settings or Settings()
    app = OddsRelay(settings)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, app.shutdown)

    await app.start()


def main():
    """Main entry point."""
    settings = Settings()
    setup_logging(settings.log_level, settings.log_file or None)

    try:
        asyncio.run(run(settings))
    except KeyboardInterrupt:
        pass
    finally:
        close_logging()


if __name__ == "__main__":
    main()
