"""
Kambi Offering API Feed.

Kambi powers the Unibet sportsbook. Two calls are used:
- listView/{sport}/.../{in-play|matches}.json: events of one sport
- betoffer/event/{id}.json: one event with all its bet offers

Bodies are JSON, usually gzip-encoded. Lines and odds are integers
scaled by 1000.
"""

import asyncio
import gzip
import ssl
import time
import zlib
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

import certifi
import httpx
import orjson
import structlog
from pydantic import ValidationError

from config.settings import UpstreamSettings
from oddsrelay.feeds.permits import PermitPool
from oddsrelay.models.errors import (
    FetchNotFound,
    FetchTimeout,
    FetchTransient,
    ListingFailure,
)
from oddsrelay.models.schemas import RawEvent, RawMatchPayload, SportMode

logger = structlog.get_logger()

GZIP_MAGIC = b"\x1f\x8b"

# Listing window: only matches starting within this horizon are fetched
LISTING_HORIZON = timedelta(hours=24)

ESPORT_MARKER = "esport"


def decode_body(content: bytes) -> Any:
    """
    Decode a JSON body, decompressing it first if it is still gzipped.

    httpx already undoes ``Content-Encoding: gzip``; this covers bodies
    served compressed without the header.

    Raises:
        ValueError: either layer failed to decode
    """
    if content[:2] == GZIP_MAGIC:
        try:
            content = gzip.decompress(content)
        except (OSError, EOFError, zlib.error) as e:
            raise ValueError(f"bad gzip body: {e}") from e
    return orjson.loads(content)


def is_listable(event: RawEvent, sport: str, horizon_end: datetime) -> bool:
    """
    Listing filter: right sport, starts before ``horizon_end``, not esports.

    An unparsable start time does not exclude the event here; the match
    processor rejects it later.
    """
    if event.sport.lower() != sport.lower():
        return False
    if ESPORT_MARKER in event.home_name.lower() or ESPORT_MARKER in event.away_name.lower():
        return False
    try:
        start = datetime.fromisoformat(event.start.replace("Z", "+00:00"))
    except ValueError:
        return True
    if start.tzinfo is None:
        start = start.replace(tzinfo=timezone.utc)
    return start < horizon_end


class KambiClient:
    """
    HTTP client for the Kambi offering API.

    ``fetch_match`` is the bounded fetcher: it holds one permit of the
    shared pool for the whole network call.

    Usage:
        client = KambiClient(settings.upstream, permits, timeout=10.0)
        await client.start()
        events = await client.list_matches(SportMode("Tennis", Mode.LIVE))
        payload = await client.fetch_match(events[0].id)
        await client.close()
    """

    def __init__(
        self,
        upstream: UpstreamSettings,
        permits: PermitPool,
        timeout: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.upstream = upstream
        self.permits = permits
        self.timeout = timeout
        self.clock = clock

        self.logger = logger.bind(feed="kambi")

        self._http_client = http_client
        self._owns_client = http_client is None

        # Health
        self._requests = 0
        self._error_count = 0

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> None:
        """Create the HTTP client if none was injected."""
        if self._http_client is None:
            ssl_context = ssl.create_default_context(cafile=certifi.where())
            self._http_client = httpx.AsyncClient(verify=ssl_context, timeout=self.timeout)
            self._owns_client = True

    async def close(self) -> None:
        if self._http_client and self._owns_client:
            await self._http_client.aclose()
        self._http_client = None

    @property
    def error_count(self) -> int:
        return self._error_count

    # =========================================================================
    # Request building
    # =========================================================================

    def _headers(self) -> dict[str, str]:
        country = self.upstream.country_code
        return {
            "Accept": "application/json, text/javascript, */*; q=0.01",
            "Accept-Encoding": "gzip, deflate",
            "Accept-Language": "en-US;q=0.7,en;q=0.3",
            "Origin": f"https://www.unibet.{country}",
            "Referer": f"https://www.unibet.{country}/",
            "Sec-Fetch-Dest": "empty",
            "Sec-Fetch-Mode": "cors",
            "Sec-Fetch-Site": "cross-site",
            "User-Agent": self.upstream.user_agent,
        }

    def _base_params(self) -> dict[str, str]:
        return {
            "lang": self.upstream.lang,
            "market": self.upstream.market,
            "client_id": self.upstream.client_id,
            "channel_id": self.upstream.channel_id,
            "ncid": str(int(self.clock() * 1000)),  # cache buster
        }

    def listing_request(self, sport_mode: SportMode) -> tuple[str, dict[str, str]]:
        """URL and query parameters of the listing call for one sport mode."""
        params = self._base_params()
        params["useCombined"] = "true"
        if sport_mode.is_live:
            params["useCombinedLive"] = "true"
            template = self.upstream.url_list_live
        else:
            template = self.upstream.url_list_matches
        url = template.format(root=self.upstream.root, sport=sport_mode.sport.lower())
        return url, params

    def match_request(self, match_id: int) -> tuple[str, dict[str, str]]:
        params = self._base_params()
        params["includeParticipants"] = "true"
        url = self.upstream.url_fetch_match.format(root=self.upstream.root, match_id=match_id)
        return url, params

    async def _get(self, url: str, params: dict[str, str]) -> httpx.Response:
        """
        GET with one deadline for the whole exchange, body included.

        httpx timeouts apply per phase and per read; this bounds the total.

        Raises:
            TimeoutError: the deadline expired
            httpx.HTTPError: transport failure
        """
        async with asyncio.timeout(self.timeout):
            return await self._http_client.get(
                url, params=params, headers=self._headers(), timeout=self.timeout
            )

    # =========================================================================
    # API Calls
    # =========================================================================

    async def list_matches(self, sport_mode: SportMode) -> list[RawEvent]:
        """
        List the matches of one sport mode worth fetching.

        Returns:
            Events of the right sport, starting within 24 hours, esports excluded

        Raises:
            ListingFailure: request, status or body decoding failed
        """
        if self._http_client is None:
            raise ListingFailure("client not started")

        url, params = self.listing_request(sport_mode)
        self._requests += 1
        try:
            response = await self._get(url, params)
        except TimeoutError as e:
            self._error_count += 1
            raise ListingFailure(f"{sport_mode}: timeout after {self.timeout}s") from e
        except httpx.HTTPError as e:
            self._error_count += 1
            raise ListingFailure(f"{sport_mode}: {type(e).__name__}: {e}") from e

        if response.status_code != 200:
            self._error_count += 1
            raise ListingFailure(f"{sport_mode}: HTTP {response.status_code}")

        try:
            data = decode_body(response.content)
        except ValueError as e:
            self._error_count += 1
            raise ListingFailure(f"{sport_mode}: undecodable body: {e}") from e

        envelopes = data.get("events") if isinstance(data, dict) else None
        if not isinstance(envelopes, list):
            self._error_count += 1
            raise ListingFailure(f"{sport_mode}: no events array in listing")

        horizon_end = datetime.fromtimestamp(self.clock(), tz=timezone.utc) + LISTING_HORIZON
        events: list[RawEvent] = []
        for envelope in envelopes:
            raw = envelope.get("event") if isinstance(envelope, dict) else None
            if not isinstance(raw, dict):
                continue
            try:
                event = RawEvent.model_validate(raw)
            except ValidationError as e:
                self.logger.debug("Skipping unparsable listing entry", error=str(e))
                continue
            if is_listable(event, sport_mode.sport, horizon_end):
                events.append(event)

        self.logger.info(
            "Listed matches",
            sport=sport_mode.sport,
            mode=sport_mode.mode.value,
            listed=len(envelopes),
            kept=len(events),
        )
        return events

    async def fetch_match(self, match_id: int) -> RawMatchPayload:
        """
        Fetch one match with its bet offers, holding a permit meanwhile.

        Raises:
            FetchNotFound: upstream answered 404
            FetchTimeout: the per-request timeout expired
            FetchTransient: any other network, status or decoding failure
            ShutdownRequested: shutdown fired while waiting for a permit
        """
        if self._http_client is None:
            raise FetchTransient(match_id, "client not started")

        url, params = self.match_request(match_id)

        async with self.permits.slot():
            self._requests += 1
            try:
                response = await self._get(url, params)
            except (TimeoutError, httpx.TimeoutException) as e:
                self._error_count += 1
                raise FetchTimeout(match_id, f"timeout after {self.timeout}s") from e
            except httpx.HTTPError as e:
                self._error_count += 1
                raise FetchTransient(match_id, f"{type(e).__name__}: {e}") from e

        if response.status_code == 404:
            raise FetchNotFound(match_id, "not found", status_code=404)
        if not 200 <= response.status_code < 300:
            self._error_count += 1
            raise FetchTransient(
                match_id, f"HTTP {response.status_code}", status_code=response.status_code
            )

        try:
            payload = RawMatchPayload.model_validate(decode_body(response.content))
        except ValueError as e:
            self._error_count += 1
            raise FetchTransient(match_id, f"undecodable body: {e}") from e

        return payload
