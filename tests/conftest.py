"""Shared fixtures: raw Kambi payload builders and a fixed clock."""

from datetime import datetime, timedelta, timezone

import pytest

from oddsrelay.models.schemas import Criterion, RawMatchPayload, RawOutcome

# 2024-06-01T12:00:00Z
NOW = 1717243200.0


def iso(offset: timedelta) -> str:
    return (datetime.fromtimestamp(NOW, tz=timezone.utc) + offset).strftime("%Y-%m-%dT%H:%M:%SZ")


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def make_outcome():
    def _make(type_="OT_HOME", status="OPEN", **fields) -> RawOutcome:
        data = {
            "id": 1001,
            "betOfferId": 501,
            "type": type_,
            "line": 1500,
            "odds": 1850,
            "status": status,
        }
        data.update(fields)
        return RawOutcome.model_validate(data)
    return _make


@pytest.fixture
def make_criterion():
    def _make(english_label: str, order=(0,), **fields) -> Criterion:
        data = {"id": 1, "label": english_label, "englishLabel": english_label, "order": list(order)}
        data.update(fields)
        return Criterion.model_validate(data)
    return _make


@pytest.fixture
def match_payload():
    """Raw detail payload as served by betoffer/event/{id}.json."""
    def _make(
        sport="TENNIS",
        home="Nadal, Rafael",
        away="Djokovic, Novak",
        start_offset=timedelta(hours=2),
        start=None,
        offers=None,
        event_id=1020304,
    ) -> RawMatchPayload:
        if offers is None:
            offers = [
                {
                    "suspended": False,
                    "criterion": {"id": 1, "label": "Match Odds", "englishLabel": "Match Odds", "order": [0]},
                    "outcomes": [
                        {"id": 1, "betOfferId": 10, "type": "OT_ONE", "odds": 1500, "status": "OPEN"},
                        {"id": 2, "betOfferId": 10, "type": "OT_TWO", "odds": 2600, "status": "OPEN"},
                    ],
                },
            ]
        return RawMatchPayload.model_validate({
            "events": [{
                "id": event_id,
                "homeName": home,
                "awayName": away,
                "start": start if start is not None else iso(start_offset),
                "sport": sport,
                "group": "ATP Madrid",
                "path": [
                    {"id": 1, "name": "Tennis", "englishName": "Tennis", "termKey": "tennis"},
                    {"id": 2, "name": "ATP", "englishName": "ATP", "termKey": "atp"},
                ],
            }],
            "betOffers": offers,
        })
    return _make
