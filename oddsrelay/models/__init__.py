"""Odds relay data models and errors."""

from oddsrelay.models.schemas import (
    Mode,
    MatchStatus,
    SportMode,
    Criterion,
    PathEntry,
    RawEvent,
    RawOutcome,
    RawBetOffer,
    RawMatchPayload,
    CanonicalOutcome,
    MatchRecord,
    Batch,
)
from oddsrelay.models.errors import (
    RelayError,
    MalformedEvent,
    FetchError,
    FetchNotFound,
    FetchTransient,
    FetchTimeout,
    ListingFailure,
    ShutdownRequested,
)

__all__ = [
    "Mode",
    "MatchStatus",
    "SportMode",
    "Criterion",
    "PathEntry",
    "RawEvent",
    "RawOutcome",
    "RawBetOffer",
    "RawMatchPayload",
    "CanonicalOutcome",
    "MatchRecord",
    "Batch",
    "RelayError",
    "MalformedEvent",
    "FetchError",
    "FetchNotFound",
    "FetchTransient",
    "FetchTimeout",
    "ListingFailure",
    "ShutdownRequested",
]
