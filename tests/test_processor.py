"""Tests for the match processor and the audit trail."""

from datetime import timedelta

import pytest

from oddsrelay.engine.processor import MatchProcessor, fix_name, match_status
from oddsrelay.models.errors import MalformedEvent
from oddsrelay.models.schemas import MatchStatus, RawMatchPayload
from oddsrelay.utils.logging import MatchAuditLog, sanitize_match_name


@pytest.fixture
def processor(clock):
    return MatchProcessor(clock=clock)


def _offer(label, outcomes, suspended=False, order=(0,)):
    return {
        "suspended": suspended,
        "criterion": {"id": 7, "label": label, "englishLabel": label, "order": list(order)},
        "outcomes": outcomes,
    }


class TestNames:

    def test_fix_name(self):
        assert fix_name("Nadal, Rafael") == "Rafael Nadal"
        assert fix_name("Serena Williams") == "Serena Williams"
        assert fix_name("Doe, John, Jr") == "John, Jr Doe"

    def test_sanitize(self):
        assert sanitize_match_name("Smith/Jones vs Brown/Green") == "SmithJones vs BrownGreen"


class TestMatchRecord:

    def test_tennis_record(self, processor, match_payload, now):
        record = processor.process(match_payload())

        assert record.event_id == 1020304
        assert record.home_team == "Rafael Nadal"
        assert record.away_team == "Novak Djokovic"
        assert record.match_name == "Rafael Nadal vs Novak Djokovic"
        assert record.sport == "Tennis"
        assert record.league == "Unknown"
        assert record.country == "Unknown"
        assert record.time == int(now)
        assert record.start_time == int(now) + 2 * 3600
        assert record.type == MatchStatus.PREMATCH
        assert [o.type for o in record.outcomes] == ["1", "2"]

    def test_football_keeps_names_and_group(self, processor, match_payload):
        record = processor.process(match_payload(sport="FOOTBALL", home="Ajax, Amsterdam", away="PSV", offers=[]))

        assert record.home_team == "Ajax, Amsterdam"
        assert record.league == "ATP Madrid"
        assert record.sport == "Football"
        assert record.outcomes == []

    def test_line_and_odds_scaled(self, processor, match_payload):
        payload = match_payload(offers=[
            _offer("Total Games", [
                {"id": 5, "betOfferId": 9, "type": "OT_OVER", "line": 22500, "odds": 1910, "status": "OPEN"},
            ]),
        ])
        outcome = processor.process(payload).outcomes[0]

        assert outcome.type == "GO"
        assert outcome.type_name == "Total Games"
        assert outcome.line == 22.5
        assert outcome.odds == 1.91
        assert outcome.bet_offer_id == 9
        assert outcome.id == 5
        assert outcome.criterion["englishLabel"] == "Total Games"
        assert outcome.path[0]["englishName"] == "Tennis"

    def test_closed_outcomes_excluded(self, processor, match_payload):
        payload = match_payload(offers=[
            _offer("Match Odds", [
                {"id": 1, "type": "OT_ONE", "odds": 1500, "status": "SUSPENDED"},
                {"id": 2, "type": "OT_TWO", "odds": 2500, "status": "OPEN"},
                {"id": 3, "type": "OT_CROSS", "odds": 9000},
            ]),
        ])
        outcomes = processor.process(payload).outcomes

        assert [o.id for o in outcomes] == [2]

    def test_suspended_offer_excluded(self, processor, match_payload):
        payload = match_payload(offers=[
            _offer("Match Odds", [
                {"id": 1, "type": "OT_ONE", "odds": 1500, "status": "OPEN"},
            ], suspended=True),
            _offer("Set Handicap", [
                {"id": 2, "type": "OT_HOME", "line": -1500, "odds": 1800, "status": "OPEN"},
            ]),
        ])
        outcomes = processor.process(payload).outcomes

        assert [(o.id, o.type) for o in outcomes] == [(2, "AH1")]

    def test_offer_without_criterion_skipped(self, processor, match_payload):
        payload = match_payload(offers=[
            {"suspended": False, "outcomes": [{"id": 1, "type": "OT_ONE", "status": "OPEN"}]},
            {"suspended": False, "criterion": {}, "outcomes": [{"id": 2, "type": "OT_ONE", "status": "OPEN"}]},
        ])
        assert processor.process(payload).outcomes == []

    def test_unclassifiable_dropped(self, processor, match_payload):
        payload = match_payload(offers=[
            _offer("Total Games: 20-21", [{"id": 1, "type": "OT_OVER", "status": "OPEN"}]),
            _offer("Set Handicap", [{"id": 2, "type": "OT_CROSS", "status": "OPEN"}]),
        ])
        assert processor.process(payload).outcomes == []


class TestStatus:

    def test_boundary(self, now):
        assert match_status(int(now) - 600, now) == MatchStatus.LIVE
        assert match_status(int(now) - 599, now) == MatchStatus.PREMATCH
        assert match_status(int(now) + 3600, now) == MatchStatus.PREMATCH

    def test_started_match_is_live(self, processor, match_payload):
        record = processor.process(match_payload(start_offset=timedelta(minutes=-45)))
        assert record.type == MatchStatus.LIVE

    def test_just_started_is_still_prematch(self, processor, match_payload):
        record = processor.process(match_payload(start_offset=timedelta(minutes=-5)))
        assert record.type == MatchStatus.PREMATCH


class TestMalformed:

    def test_no_events(self, processor):
        with pytest.raises(MalformedEvent):
            processor.process(RawMatchPayload.model_validate({"events": [], "betOffers": []}))

    @pytest.mark.parametrize("start", ["", "tomorrow", "2024-13-45T00:00:00Z"])
    def test_bad_start(self, processor, match_payload, start):
        with pytest.raises(MalformedEvent):
            processor.process(match_payload(start=start))


class TestAuditTrail:

    def test_record_appended(self, tmp_path, clock, match_payload):
        audit = MatchAuditLog(str(tmp_path))
        processor = MatchProcessor(audit=audit, clock=clock)

        first = processor.process(match_payload())
        second = processor.process(match_payload())

        path = tmp_path / "Rafael Nadal vs Novak Djokovic.jsonl"
        assert path.exists()
        records = MatchAuditLog.read(path)
        assert records == [first, second]

    def test_round_trip_keeps_scaled_values(self, tmp_path, clock, match_payload):
        audit = MatchAuditLog(str(tmp_path))
        payload = match_payload(offers=[
            _offer("Total Games", [
                {"id": 5, "betOfferId": 9, "type": "OT_UNDER", "line": 21500, "odds": 1870, "status": "OPEN"},
            ]),
        ])
        record = MatchProcessor(audit=audit, clock=clock).process(payload)

        decoded = MatchAuditLog.read(audit.path_for(record))[0]
        assert decoded.model_dump() == record.model_dump()
        assert decoded.outcomes[0].line == 21.5
        assert decoded.outcomes[0].odds == 1.87

    def test_slashes_stripped_from_file_name(self, tmp_path, clock, match_payload):
        audit = MatchAuditLog(str(tmp_path))
        payload = match_payload(sport="FOOTBALL", home="Team A/B", away="Team C")
        MatchProcessor(audit=audit, clock=clock).process(payload)

        assert (tmp_path / "Team AB vs Team C.jsonl").exists()

    def test_write_failure_does_not_abort(self, tmp_path, clock, match_payload):
        audit = MatchAuditLog(str(tmp_path / "missing" / "dir"))
        record = MatchProcessor(audit=audit, clock=clock).process(match_payload())

        assert record.event_id == 1020304
        assert not (tmp_path / "missing").exists()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
