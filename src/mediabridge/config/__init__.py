"""MediaBridge configuration.

Usage:
    from mediabridge.config import Settings, load_settings
"""

from __future__ import annotations

from pathlib import Path

from mediabridge.config.models import (
    AggregationSettings,
    CacheSettings,
    LoggingSettings,
    MatchingSettings,
    PrioritySettings,
    Settings,
)


def load_settings(config_path: str | Path | None = None) -> Settings:
    """Load settings from a TOML file, or from the environment alone."""
    if config_path is None:
        return Settings()
    return Settings.from_toml_file(config_path)


__all__ = [
    "AggregationSettings",
    "CacheSettings",
    "LoggingSettings",
    "MatchingSettings",
    "PrioritySettings",
    "Settings",
    "load_settings",
]
