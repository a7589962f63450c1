"""Tests for the sport poller cycle."""

import asyncio
from datetime import timedelta

import pytest

from config.settings import PollingSettings
from conftest import iso
from oddsrelay.engine.poller import PollerState, SportPoller, interval_for
from oddsrelay.engine.processor import MatchProcessor
from oddsrelay.models.errors import (
    FetchNotFound,
    FetchTimeout,
    FetchTransient,
    ListingFailure,
)
from oddsrelay.models.schemas import Mode, RawEvent, RawMatchPayload, SportMode
from oddsrelay.relay.channel import BatchChannel

TENNIS_LIVE = SportMode("Tennis", Mode.LIVE)


def _event(event_id: int) -> RawEvent:
    return RawEvent.model_validate({
        "id": event_id,
        "homeName": f"Home {event_id}",
        "awayName": f"Away {event_id}",
        "start": iso(timedelta(hours=1)),
        "sport": "TENNIS",
    })


class FakeClient:
    """Stands in for KambiClient: canned listings, payloads and errors."""

    def __init__(self, listings=None, payloads=None, errors=None):
        self.listings = list(listings or [])
        self.payloads = payloads or {}
        self.errors = errors or {}
        self.fetched: list[int] = []
        self.list_calls = 0

    async def list_matches(self, sport_mode):
        self.list_calls += 1
        result = self.listings.pop(0) if len(self.listings) > 1 else self.listings[0]
        if isinstance(result, Exception):
            raise result
        return result

    async def fetch_match(self, match_id):
        self.fetched.append(match_id)
        await asyncio.sleep(0)
        if match_id in self.errors:
            raise self.errors[match_id]
        return self.payloads[match_id]


@pytest.fixture
def payloads(match_payload):
    def _make(*ids) -> dict[int, RawMatchPayload]:
        return {
            i: match_payload(home=f"Home, {i}", away=f"Away, {i}", event_id=i)
            for i in ids
        }
    return _make


def make_poller(client, channel=None, shutdown=None, interval=0.01, clock=None):
    return SportPoller(
        sport_mode=TENNIS_LIVE,
        client=client,
        processor=MatchProcessor(clock=clock) if clock else MatchProcessor(),
        channel=channel or BatchChannel(10),
        shutdown=shutdown or asyncio.Event(),
        interval=interval,
    )


class TestCycle:

    @pytest.mark.asyncio
    async def test_batch_holds_all_successful_matches(self, payloads, clock):
        events = [_event(i) for i in (1, 2, 3)]
        client = FakeClient(listings=[events], payloads=payloads(1, 2, 3))
        channel = BatchChannel(10)
        poller = make_poller(client, channel=channel, clock=clock)

        batch = await poller.run_cycle()

        assert set(batch) == {"1", "2", "3"}
        assert batch["2"].home_team == "2 Home"
        sport_mode, published = await channel.receive()
        assert sport_mode == TENNIS_LIVE
        assert published is batch
        assert poller.state == PollerState.PUBLISHING

    @pytest.mark.asyncio
    async def test_failed_matches_leave_holes(self, payloads, clock, match_payload):
        events = [_event(i) for i in (1, 2, 3, 4, 5, 6)]
        found = payloads(1, 5)
        found[6] = match_payload(event_id=6, start="garbage")
        client = FakeClient(
            listings=[events],
            payloads=found,
            errors={
                2: FetchNotFound(2, "not found", status_code=404),
                3: FetchTransient(3, "HTTP 503", status_code=503),
                4: FetchTimeout(4, "timeout"),
            },
        )
        poller = make_poller(client, clock=clock)

        batch = await poller.run_cycle()

        assert set(batch) == {"1", "5"}
        assert sorted(client.fetched) == [1, 2, 3, 4, 5, 6]
        assert poller.stats.not_found == 1
        assert poller.stats.match_failures == 3

    @pytest.mark.asyncio
    async def test_unexpected_error_is_contained(self, payloads, clock):
        client = FakeClient(
            listings=[[_event(1), _event(2)]],
            payloads=payloads(1),
            errors={2: RuntimeError("bug")},
        )
        poller = make_poller(client, clock=clock)

        batch = await poller.run_cycle()

        assert set(batch) == {"1"}
        assert poller.stats.match_failures == 1

    @pytest.mark.asyncio
    async def test_listing_failure_publishes_nothing(self):
        client = FakeClient(listings=[ListingFailure("HTTP 500")])
        channel = BatchChannel(10)
        poller = make_poller(client, channel=channel)

        assert await poller.run_cycle() is None
        assert channel.qsize() == 0
        assert client.fetched == []
        assert poller.stats.listing_failures == 1

    @pytest.mark.asyncio
    async def test_empty_listing_publishes_empty_batch(self):
        channel = BatchChannel(10)
        poller = make_poller(FakeClient(listings=[[]]), channel=channel)

        assert await poller.run_cycle() == {}
        assert channel.qsize() == 1

    @pytest.mark.asyncio
    async def test_no_launch_after_shutdown(self, payloads):
        shutdown = asyncio.Event()
        shutdown.set()
        client = FakeClient(listings=[[_event(1), _event(2)]], payloads=payloads(1, 2))
        poller = make_poller(client, shutdown=shutdown)

        batch = await poller.fetch_batch([_event(1), _event(2)])

        assert batch == {}
        assert client.fetched == []

    @pytest.mark.asyncio
    async def test_cycles_published_in_order(self, payloads, clock):
        client = FakeClient(
            listings=[[_event(1)], [_event(2)]],
            payloads=payloads(1, 2),
        )
        channel = BatchChannel(10)
        poller = make_poller(client, channel=channel, clock=clock)

        await poller.run_cycle()
        await poller.run_cycle()

        first = (await channel.receive())[1]
        second = (await channel.receive())[1]
        assert list(first) == ["1"]
        assert list(second) == ["2"]


class TestRunLoop:

    @pytest.mark.asyncio
    async def test_stops_on_shutdown(self, payloads, clock):
        shutdown = asyncio.Event()
        channel = BatchChannel(10)
        client = FakeClient(listings=[[_event(1)]], payloads=payloads(1))
        poller = make_poller(client, channel=channel, shutdown=shutdown, interval=60, clock=clock)

        task = asyncio.create_task(poller.run())
        await asyncio.wait_for(channel.receive(), timeout=1)
        shutdown.set()
        await asyncio.wait_for(task, timeout=1)

        assert poller.state == PollerState.STOPPED
        assert poller.stats.cycles == 1

    @pytest.mark.asyncio
    async def test_keeps_polling_after_failed_cycle(self, payloads, clock):
        shutdown = asyncio.Event()
        channel = BatchChannel(10)
        client = FakeClient(
            listings=[RuntimeError("boom"), ListingFailure("HTTP 502"), [_event(1)]],
            payloads=payloads(1),
        )
        poller = make_poller(client, channel=channel, shutdown=shutdown, interval=0.01, clock=clock)

        task = asyncio.create_task(poller.run())
        _, batch = await asyncio.wait_for(channel.receive(), timeout=2)
        shutdown.set()
        await asyncio.wait_for(task, timeout=1)

        assert list(batch) == ["1"]
        assert client.list_calls >= 3
        assert poller.stats.listing_failures == 1


class TestInterval:

    def test_live_and_prematch(self):
        polling = PollingSettings(live_update_interval=7, prematch_update_interval=90)

        assert interval_for(SportMode("Tennis", Mode.LIVE), polling) == 7
        assert interval_for(SportMode("Tennis", Mode.PREMATCH), polling) == 90


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
