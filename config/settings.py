"""
Configuration settings for the Kambi odds relay.
Uses pydantic-settings for validation and environment variable loading.
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from oddsrelay.models.schemas import Mode, SportMode


class UpstreamSettings(BaseSettings):
    """Settings for the Kambi offering API (the backend behind Unibet)."""

    api_base: str = "https://eu-offering-api.kambicdn.com/offering/v2018/"
    api_country_code: str = "ubnl"
    country_code: str = "nl"  # Used for Origin / Referer headers

    lang: str = "en_GB"
    market: str = "NL"
    client_id: str = "2"
    channel_id: str = "1"

    user_agent: str = (
        "Mozilla/5.0 (X11; Linux x86_64; rv:128.0) Gecko/20100101 Firefox/128.0"
    )

    # URL templates: {root} = api_base + api_country_code
    url_fetch_match: str = "{root}/betoffer/event/{match_id}.json"
    url_list_live: str = "{root}/listView/{sport}/all/all/all/in-play.json"
    url_list_matches: str = "{root}/listView/{sport}/all/all/all/matches.json"

    @property
    def root(self) -> str:
        return self.api_base.rstrip("/") + "/" + self.api_country_code


class PollingSettings(BaseSettings):
    """Polling cadence and outbound admission control."""

    live_update_interval: float = 10.0  # seconds
    prematch_update_interval: float = 120.0  # seconds

    # Applied to every upstream request
    timeout_on_external_service: float = 10.0  # seconds

    # Permit pool size, shared by all pollers
    matches_per_batch: int = Field(default=20, ge=1)

    # Must be >= number of sport modes or a slow consumer can stall a poller
    channel_capacity: int = Field(default=100, ge=1)

    @field_validator(
        "live_update_interval", "prematch_update_interval", "timeout_on_external_service"
    )
    @classmethod
    def _positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be positive")
        return v


class RelaySettings(BaseSettings):
    """Websocket relay settings."""

    websocket_host: str = "0.0.0.0"
    websocket_port: int = 6003
    broadcast_interval: float = 5.0  # seconds between pushes per subscriber


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore"
    )

    # JSON list in the environment, e.g.
    # SPORTS_TO_PARSE='[{"sport": "Tennis", "mode": "Live"}]'
    sports_to_parse: list[SportMode] = Field(
        default_factory=lambda: [
            SportMode("Tennis", Mode.LIVE),
            SportMode("Tennis", Mode.PREMATCH),
            SportMode("Football", Mode.LIVE),
            SportMode("Football", Mode.PREMATCH),
        ],
        description="Sport/mode pairs, one poller each",
    )

    path_to_data: str = Field(default="./odds_data", description="Directory for per-match audit files")
    log_level: str = "INFO"
    log_file: str = Field(default="", description="Optional file receiving a copy of the log")

    # Sub-settings
    upstream: UpstreamSettings = Field(default_factory=UpstreamSettings)
    polling: PollingSettings = Field(default_factory=PollingSettings)
    relay: RelaySettings = Field(default_factory=RelaySettings)

    @field_validator("sports_to_parse")
    @classmethod
    def _unique_modes(cls, v: list[SportMode]) -> list[SportMode]:
        if len(set(v)) != len(v):
            raise ValueError("duplicate sport/mode pair")
        return v


# Global settings instance
settings = Settings()
