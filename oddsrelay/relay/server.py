"""
Websocket relay.

Serves the distribution channel to websocket subscribers on ``/ws``. Each
subscriber loop takes the next batch from the channel, sends it as one
JSON object ``{event_id: match record}`` and waits the broadcast interval.
Subscribers compete for batches; a batch is delivered once.
"""

import asyncio
from typing import Optional
from urllib.parse import urlsplit

import orjson
import structlog
from websockets.asyncio.server import Server, ServerConnection, serve
from websockets.exceptions import ConnectionClosed

from oddsrelay.models.schemas import Batch
from oddsrelay.relay.channel import BatchChannel

logger = structlog.get_logger()


def encode_batch(batch: Batch) -> str:
    """Serialize a batch the way subscribers receive it."""
    return orjson.dumps(
        {key: record.model_dump(mode="json", by_alias=True) for key, record in batch.items()}
    ).decode()


class RelayServer:
    """
    Pushes batches from the channel to connected subscribers.

    Usage:
        relay = RelayServer(channel, host="0.0.0.0", port=6003)
        await relay.start()
        ...
        await relay.stop()
    """

    def __init__(
        self,
        channel: BatchChannel,
        host: str = "0.0.0.0",
        port: int = 6003,
        broadcast_interval: float = 5.0,
        path: str = "/ws",
    ):
        self.channel = channel
        self.host = host
        self.port = port
        self.broadcast_interval = broadcast_interval
        self.path = path

        self.logger = logger.bind(component="relay")
        self._server: Optional[Server] = None
        self._clients = 0

    @property
    def clients(self) -> int:
        return self._clients

    async def start(self) -> None:
        self._server = await serve(self.handler, self.host, self.port)
        if self.port == 0:
            self.port = next(iter(self._server.sockets)).getsockname()[1]
        self.logger.info("WebSocket server started", host=self.host, port=self.port, path=self.path)

    async def stop(self) -> None:
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None
        self.logger.info("WebSocket server stopped")

    async def handler(self, websocket: ServerConnection) -> None:
        if websocket.request is not None and urlsplit(websocket.request.path).path != self.path:
            await websocket.close(code=1008, reason="unknown path")
            return

        self._clients += 1
        self.logger.info("New client connected", clients=self._clients)

        # A closed connection must not stay parked in channel.receive()
        stream_task = asyncio.create_task(self.stream(websocket))
        closed_task = asyncio.create_task(websocket.wait_closed())
        try:
            await asyncio.wait({stream_task, closed_task}, return_when=asyncio.FIRST_COMPLETED)
            if stream_task.done() and not stream_task.cancelled():
                error = stream_task.exception()
                if isinstance(error, ConnectionClosed):
                    self.logger.info("Client connection closed", reason=str(error))
                elif error is not None:
                    raise error
        finally:
            stream_task.cancel()
            closed_task.cancel()
            await asyncio.gather(stream_task, closed_task, return_exceptions=True)
            self._clients -= 1
            self.logger.info("Client disconnected", clients=self._clients)

    async def stream(self, websocket) -> None:
        """Send batches to one subscriber until the connection fails."""
        while True:
            sport_mode, batch = await self.channel.receive()
            await websocket.send(encode_batch(batch))
            self.logger.debug("Batch sent", sport_mode=str(sport_mode), matches=len(batch))
            await asyncio.sleep(self.broadcast_interval)
