"""
Match Processor.

Turns one raw detail payload (event + bet offers) into a MatchRecord:
- parses the start time and derives PreMatch / Live
- normalizes participant names (tennis only)
- classifies every open outcome of every non-suspended offer
- appends the record to the per-match audit trail
"""

import time
from datetime import datetime, timezone
from typing import Callable, Optional

import structlog

from oddsrelay.engine.classifier import classify
from oddsrelay.models.errors import MalformedEvent
from oddsrelay.models.schemas import (
    CanonicalOutcome,
    MatchRecord,
    MatchStatus,
    RawEvent,
    RawMatchPayload,
)
from oddsrelay.utils.logging import MatchAuditLog

logger = structlog.get_logger()

# A match counts as live once it started this long ago
LIVE_GRACE_SECONDS = 10 * 60

# Kambi scales line and odds by 1000
UPSTREAM_SCALE = 1000


def fix_name(name: str) -> str:
    """'Nadal, Rafael' -> 'Rafael Nadal'. Names without a comma are unchanged."""
    parts = name.split(",", 1)
    if len(parts) > 1:
        return f"{parts[1]} {parts[0]}".strip()
    return name


def parse_start(start: str) -> datetime:
    """Parse an ISO-8601 / RFC 3339 timestamp. Naive values are taken as UTC."""
    dt = datetime.fromisoformat(start.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def match_status(start_ts: int, now: float) -> MatchStatus:
    if start_ts <= int(now) - LIVE_GRACE_SECONDS:
        return MatchStatus.LIVE
    return MatchStatus.PREMATCH


class MatchProcessor:
    """
    Normalizes detail payloads into MatchRecords.

    Stateless apart from the audit sink; safe to share between pollers.
    """

    def __init__(
        self,
        audit: Optional[MatchAuditLog] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.audit = audit
        self.clock = clock
        self.logger = logger.bind(component="match_processor")

    def process(self, payload: RawMatchPayload) -> MatchRecord:
        """
        Build the record for one match.

        Raises:
            MalformedEvent: no event in the payload, or unparsable start time
        """
        if not payload.events:
            raise MalformedEvent("payload contains no event")
        event = payload.events[0]

        try:
            start_ts = int(parse_start(event.start).timestamp())
        except ValueError as e:
            raise MalformedEvent(f"event {event.id}: bad start time {event.start!r}") from e

        now = self.clock()
        sport = event.sport.title()
        home_team, away_team, league = self._participants(event)

        outcomes = self._outcomes(payload, event, sport)

        record = MatchRecord(
            event_id=event.id,
            match_name=f"{home_team} vs {away_team}",
            start_time=start_ts,
            home_team=home_team,
            away_team=away_team,
            sport=sport,
            league=league,
            outcomes=outcomes,
            time=int(now),
            type=match_status(start_ts, now),
        )

        if self.audit is not None:
            self.audit.append(record)

        self.logger.debug(
            "Match processed",
            event_id=event.id,
            match=record.match_name,
            status=record.type.value,
            outcomes=len(outcomes),
        )
        return record

    @staticmethod
    def _participants(event: RawEvent) -> tuple[str, str, str]:
        # Tennis lists players as "Last, First" and its groups are tournaments,
        # not leagues
        if event.sport.lower() == "tennis":
            return fix_name(event.home_name), fix_name(event.away_name), "Unknown"
        return event.home_name, event.away_name, event.group

    @staticmethod
    def _outcomes(payload: RawMatchPayload, event: RawEvent, sport: str) -> list[CanonicalOutcome]:
        path = [entry.model_dump(by_alias=True) for entry in event.path]
        result: list[CanonicalOutcome] = []

        for offer in payload.bet_offers:
            if offer.suspended:
                continue
            criterion = offer.criterion
            if criterion is None or criterion.is_empty():
                continue
            criterion_dump = criterion.model_dump(by_alias=True)

            for outcome in offer.outcomes:
                if outcome.status != "OPEN":
                    continue
                code = classify(outcome, criterion, event.home_name, event.away_name, sport)
                if code is None:
                    continue
                result.append(CanonicalOutcome(
                    type_name=criterion.english_label,
                    type=code,
                    line=outcome.line / UPSTREAM_SCALE,
                    odds=outcome.odds / UPSTREAM_SCALE,
                    bet_offer_id=outcome.bet_offer_id,
                    id=outcome.id,
                    criterion=criterion_dump,
                    path=path,
                ))

        return result
