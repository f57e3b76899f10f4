"""
MediaBridge Constants

Default thresholds, weights, time-to-live values and provider identifiers.
Runtime values come from ``mediabridge.config``; these are only the defaults
the settings models start from.
"""

from __future__ import annotations

from typing import ClassVar

# Time units in seconds
BASE_MINUTE = 60
BASE_HOUR = 60 * BASE_MINUTE
BASE_DAY = 24 * BASE_HOUR

# Size units in bytes
BASE_KIB = 1024
BASE_MIB = 1024 * BASE_KIB


class ProviderIds:
    """Known provider identifiers."""

    TMDB = "tmdb"
    ANILIST = "anilist"
    JIKAN = "jikan"
    KITSU = "kitsu"
    SIMKL = "simkl"
    MAL = "mal"
    MYANIMELIST = "myanimelist"


class ValidationConstants:
    """Validation constants for matching domain models."""

    MIN_CONFIDENCE_SCORE = 0.0
    MAX_CONFIDENCE_SCORE = 1.0

    MIN_VALID_YEAR = 1900


class MatchingDefaults:
    """Confidence calculation defaults."""

    ACCEPTANCE_THRESHOLD = 0.75
    TITLE_WEIGHT = 0.8
    YEAR_EXACT_BONUS = 0.1
    YEAR_ADJACENT_BONUS = 0.05
    YEAR_MISMATCH_PENALTY = 0.1
    YEAR_TOLERANCE = 3
    TYPE_BONUS = 0.1

    TITLE_ALGORITHM = "levenshtein"


class CacheDefaults:
    """ProviderCache defaults."""

    TTL_SECONDS = 7 * BASE_DAY
    MAX_SIZE_BYTES = 10 * BASE_MIB
    KEY_SEPARATOR = "|"

    # Persistence file format version
    FILE_FORMAT_VERSION = 1


class AggregationDefaults:
    """DataAggregator and pagination defaults."""

    PROVIDER_TIMEOUT = 10.0
    MAX_CONCURRENCY = 8
    PAGE_SIZE = 50
    SEASON_COMPLETENESS_THRESHOLD = 0.9

    # Chapter list completeness weights
    CHAPTER_DATE_WEIGHT = 0.5
    CHAPTER_PAGE_WEIGHT = 0.3


class PriorityDefaults:
    """Provider priority lists per data type."""

    EPISODE_THUMBNAIL: ClassVar[list[str]] = [
        ProviderIds.TMDB,
        ProviderIds.JIKAN,
        ProviderIds.MAL,
        ProviderIds.MYANIMELIST,
        ProviderIds.ANILIST,
        ProviderIds.KITSU,
        ProviderIds.SIMKL,
    ]
    IMAGE_QUALITY: ClassVar[list[str]] = EPISODE_THUMBNAIL
    ANIME_METADATA: ClassVar[list[str]] = [
        ProviderIds.JIKAN,
        ProviderIds.MAL,
        ProviderIds.MYANIMELIST,
        ProviderIds.ANILIST,
        ProviderIds.KITSU,
        ProviderIds.SIMKL,
    ]
    MANGA_CHAPTER: ClassVar[list[str]] = [ProviderIds.KITSU, ProviderIds.ANILIST]
    CHARACTER: ClassVar[list[str]] = [
        ProviderIds.ANILIST,
        ProviderIds.JIKAN,
        ProviderIds.KITSU,
    ]


class LoggingDefaults:
    """Logging defaults."""

    LEVEL = "INFO"


class CLIDefaults:
    """CLI presentation defaults."""

    APP_NAME = "mediabridge"
    MAX_TABLE_EPISODES = 20
