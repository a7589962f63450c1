"""
Odds relay data models and schemas.

Defines the core data structures for:
- Polling identities (sport + live/pre-match mode)
- Raw Kambi payloads (events, bet offers, outcomes)
- Normalized match records published to subscribers

Raw entities keep unknown upstream keys in pydantic's extra bag
(``model_extra``) so new fields survive decoding without being typed.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class Mode(str, Enum):
    """Polling mode of a sport."""
    LIVE = "Live"
    PREMATCH = "PreMatch"


class MatchStatus(str, Enum):
    """Lifecycle status computed at capture time."""
    PREMATCH = "PreMatch"
    LIVE = "Live"


@dataclass(frozen=True)
class SportMode:
    """One polling identity: a sport and its mode."""
    sport: str
    mode: Mode

    @property
    def is_live(self) -> bool:
        return self.mode == Mode.LIVE

    def __str__(self) -> str:
        return f"{self.sport}/{self.mode.value}"


# =============================================================================
# Raw upstream entities
# =============================================================================

class _Raw(BaseModel):
    """Base for upstream entities: camelCase aliases, extras kept."""
    model_config = ConfigDict(extra="allow", populate_by_name=True, frozen=True)

    @property
    def extra(self) -> dict[str, Any]:
        return dict(self.model_extra or {})


class Criterion(_Raw):
    """Market description shared by the outcomes of one bet offer."""
    id: Optional[int] = None
    label: str = ""
    english_label: str = Field(default="", alias="englishLabel")
    order: list[Any] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.model_fields_set and not self.model_extra


class PathEntry(_Raw):
    """One navigation level (sport, country, league...)."""
    id: Optional[int] = None
    name: str = ""
    english_name: str = Field(default="", alias="englishName")
    term_key: str = Field(default="", alias="termKey")


class RawEvent(_Raw):
    """Event envelope as served by the detail and listing calls."""
    id: int
    home_name: str = Field(default="", alias="homeName")
    away_name: str = Field(default="", alias="awayName")
    start: str = ""
    sport: str = ""
    group: str = ""
    path: list[PathEntry] = Field(default_factory=list)


class RawOutcome(_Raw):
    """
    One selection of a bet offer.

    ``line`` and ``odds`` are scaled by 1000 upstream.
    """
    id: Optional[int] = None
    bet_offer_id: Optional[int] = Field(default=None, alias="betOfferId")
    type: str = ""
    line: float = 0.0
    odds: float = 0.0
    label: str = ""
    english_label: str = Field(default="", alias="englishLabel")
    participant: str = ""
    status: str = ""
    criterion: Optional[Criterion] = None

    @property
    def short_label(self) -> str:
        if self.label:
            return self.label
        return self.criterion.label if self.criterion else ""

    @property
    def label_in_english(self) -> str:
        if self.english_label:
            return self.english_label
        return self.criterion.english_label if self.criterion else ""

    @property
    def participant_name(self) -> str:
        if self.participant:
            return self.participant
        if self.criterion:
            value = (self.criterion.model_extra or {}).get("participant")
            return value if isinstance(value, str) else ""
        return ""


class RawBetOffer(_Raw):
    """A market: suspension flag plus its outcomes."""
    suspended: bool = False
    outcomes: list[RawOutcome] = Field(default_factory=list)
    criterion: Optional[Criterion] = None


class RawMatchPayload(_Raw):
    """Body of the per-match detail call."""
    events: list[RawEvent] = Field(default_factory=list)
    bet_offers: list[RawBetOffer] = Field(default_factory=list, alias="betOffers")


# =============================================================================
# Normalized output
# =============================================================================

class CanonicalOutcome(BaseModel):
    """A classified outcome with upstream numbers already scaled."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    type_name: str          # Original English criterion label
    type: str               # Canonical code, e.g. "1HAH2"
    line: float
    odds: float
    bet_offer_id: Optional[int] = Field(default=None, alias="betOfferId")
    id: Optional[int] = None
    criterion: dict[str, Any] = Field(default_factory=dict)
    path: list[dict[str, Any]] = Field(default_factory=list)


class MatchRecord(BaseModel):
    """
    One normalized match as captured in a single fetch.

    Field names follow the published JSON format.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    event_id: int
    match_name: str
    start_time: int         # unix seconds
    home_team: str
    away_team: str
    sport: str
    league: str
    country: str = "Unknown"
    outcomes: list[CanonicalOutcome] = Field(default_factory=list)
    time: int               # capture time, unix seconds
    type: MatchStatus

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


# One poll cycle's results for one sport mode, keyed by str(event_id)
Batch = dict[str, MatchRecord]
