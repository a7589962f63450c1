"""
Error taxonomy of the update pipeline.

Per-match errors (MalformedEvent, FetchError subclasses) only drop that
match from the current batch. ListingFailure drops the whole cycle.
None of them stop a poller.
"""

from typing import Optional


class RelayError(Exception):
    """Base class for pipeline errors."""


class MalformedEvent(RelayError):
    """Detail payload without events, or with an unparsable start time."""


class FetchError(RelayError):
    """Per-match fetch failure."""

    def __init__(self, match_id: int, message: str, status_code: Optional[int] = None):
        super().__init__(f"match {match_id}: {message}")
        self.match_id = match_id
        self.status_code = status_code


class FetchNotFound(FetchError):
    """Upstream answered 404: the match is gone, do not retry this cycle."""


class FetchTransient(FetchError):
    """Network error, unexpected status or undecodable body. Retried next cycle."""


class FetchTimeout(FetchTransient):
    """Per-request timeout expired."""


class ListingFailure(RelayError):
    """The listing call failed; nothing is published for this cycle."""


class ShutdownRequested(RelayError):
    """Raised to a permit waiter when the shutdown signal fires."""
