"""
Update pipeline engine.

- classifier: raw bookmaker labels -> canonical bet-type codes
- processor: raw match payload -> MatchRecord (+ audit trail)
- poller: per-sport list / fetch / publish / sleep loop
"""

from oddsrelay.engine.classifier import classify
from oddsrelay.engine.processor import MatchProcessor
from oddsrelay.engine.poller import SportPoller, PollerState

__all__ = [
    "classify",
    "MatchProcessor",
    "SportPoller",
    "PollerState",
]
