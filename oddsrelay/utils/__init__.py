"""Utility modules."""

from oddsrelay.utils.logging import setup_logging, close_logging, MatchAuditLog

__all__ = [
    "setup_logging",
    "close_logging",
    "MatchAuditLog",
]
