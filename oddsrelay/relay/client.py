"""
Relay client.

Connects to the relay, logs how many matches every message carries and
reconnects after a fixed delay when the connection drops.

Usage:
    python -m oddsrelay.relay.client [ws://parser:6003/ws]

Environment Variables:
    RELAY_URI - relay address when no argument is given
"""

import asyncio
import os
import sys

import orjson
import structlog
from websockets.asyncio.client import connect
from websockets.exceptions import ConnectionClosed, WebSocketException

from oddsrelay.utils.logging import setup_logging

logger = structlog.get_logger()

DEFAULT_URI = "ws://parser:6003/ws"
RECONNECT_DELAY = 5.0


async def consume(uri: str, stop_event: asyncio.Event, reconnect_delay: float = RECONNECT_DELAY) -> None:
    """Read batches from the relay until ``stop_event`` is set."""
    log = logger.bind(component="relay_client", uri=uri)

    while not stop_event.is_set():
        log.info("Attempting to connect to the server")
        try:
            async with connect(uri) as ws:
                log.info("Connected to the server")
                async for message in ws:
                    try:
                        data = orjson.loads(message)
                    except orjson.JSONDecodeError as e:
                        log.warning("Error parsing message", error=str(e))
                        continue
                    log.info("Received data", matches=len(data) if isinstance(data, dict) else 0)
                    if stop_event.is_set():
                        break
        except (OSError, ConnectionClosed, WebSocketException) as e:
            log.warning("Connection failed", error=str(e))

        if stop_event.is_set():
            break
        log.info("Reconnecting", delay=reconnect_delay)
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=reconnect_delay)
        except asyncio.TimeoutError:
            pass


def main() -> None:
    setup_logging(os.getenv("LOG_LEVEL", "INFO"))
    uri = sys.argv[1] if len(sys.argv) > 1 else os.getenv("RELAY_URI", DEFAULT_URI)
    try:
        asyncio.run(consume(uri, asyncio.Event()))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
