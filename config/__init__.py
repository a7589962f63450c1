"""Configuration module."""

from config.settings import settings, Settings, UpstreamSettings, PollingSettings, RelaySettings

__all__ = [
    "settings",
    "Settings",
    "UpstreamSettings",
    "PollingSettings",
    "RelaySettings",
]
