"""Configuration domain models."""

from mediabridge.config.models.aggregation_settings import (
    AggregationSettings,
    PrioritySettings,
)
from mediabridge.config.models.app_settings import LoggingSettings
from mediabridge.config.models.cache_settings import CacheSettings
from mediabridge.config.models.matching_settings import MatchingSettings
from mediabridge.config.models.settings import Settings

__all__ = [
    "AggregationSettings",
    "CacheSettings",
    "LoggingSettings",
    "MatchingSettings",
    "PrioritySettings",
    "Settings",
]
