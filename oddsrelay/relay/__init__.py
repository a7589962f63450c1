"""Distribution of completed batches to subscribers."""

from oddsrelay.relay.channel import BatchChannel
from oddsrelay.relay.server import RelayServer, encode_batch

__all__ = [
    "BatchChannel",
    "RelayServer",
    "encode_batch",
]
