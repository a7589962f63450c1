"""
Upstream data feeds.

- Kambi offering API (Unibet): match listings and per-match bet offers
- Permit pool bounding concurrent detail requests across all sports
"""

from oddsrelay.feeds.kambi import KambiClient
from oddsrelay.feeds.permits import PermitPool

__all__ = [
    "KambiClient",
    "PermitPool",
]
