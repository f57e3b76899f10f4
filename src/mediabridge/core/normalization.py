"""Title normalization for cross-provider matching.

Two levels of normalization are provided:

1. ``normalize_title`` is used for similarity scoring. Besides case,
   punctuation and whitespace it strips release-year and season suffixes,
   so "Attack on Titan (2013)" and "attack on titan" compare equal.
2. ``normalize_key_component`` is used for cache keys. It only folds case,
   punctuation and whitespace, so different seasons of a show never share
   a cache entry.
"""

from __future__ import annotations

import logging
import re
import unicodedata

from mediabridge.core.models import MediaType
from mediabridge.shared.constants import CacheDefaults

logger = logging.getLogger(__name__)

# Compile patterns once at module level
_YEAR_BRACKET_PATTERN = re.compile(r"[\(\[\-]\s*\d{4}\s*[\)\]]?")
_TRAILING_YEAR_PATTERN = re.compile(r"\s+\d{4}\s*$")
_SEASON_PATTERNS = (
    re.compile(r"\s+season\s+\d+"),
    re.compile(r"\s+s\d+\b"),
    re.compile(r"\s+\d+(?:st|nd|rd|th)\s+season"),
)
# Anything that is not a letter, digit or whitespace in any script
_PUNCTUATION_PATTERN = re.compile(r"[^\w\s]|_")
_WHITESPACE_PATTERN = re.compile(r"\s+")


def _fold(text: str) -> str:
    return unicodedata.normalize("NFKC", text).casefold()


def _strip_punctuation(text: str) -> str:
    text = _PUNCTUATION_PATTERN.sub(" ", text)
    return _WHITESPACE_PATTERN.sub(" ", text).strip()


def normalize_title(title: str | None) -> str:
    """Normalize a title for similarity comparison.

    Args:
        title: Raw title from any provider

    Returns:
        Lowercased title without year/season suffixes, punctuation or
        redundant whitespace. Empty string for empty input.

    Examples:
        >>> normalize_title("Attack on Titan (2013)")
        'attack on titan'
        >>> normalize_title("Spy x Family Season 2")
        'spy x family'
        >>> normalize_title("Mob Psycho 100 II: 2nd Season")
        'mob psycho 100 ii'
    """
    if not title:
        return ""

    text = _fold(title)
    text = _YEAR_BRACKET_PATTERN.sub(" ", text)
    text = _TRAILING_YEAR_PATTERN.sub("", text)
    # season suffixes are matched against punctuation-free text
    text = _strip_punctuation(text)
    for pattern in _SEASON_PATTERNS:
        text = pattern.sub("", text)

    return _WHITESPACE_PATTERN.sub(" ", text).strip()


def normalize_key_component(value: str | None) -> str:
    """Case-fold and strip punctuation/whitespace for cache key use."""
    if not value:
        return ""
    return _strip_punctuation(_fold(value))


def titles_equal(first: str | None, second: str | None) -> bool:
    """Whether two titles are identical after normalization.

    Titles that normalize to nothing never compare equal.
    """
    normalized_first = normalize_title(first)
    return bool(normalized_first) and normalized_first == normalize_title(second)


def build_cache_key(
    title: str,
    media_type: MediaType | str,
    provider_id: str,
) -> str:
    """Derive the match-set cache key for a query.

    Example:
        >>> build_cache_key("Attack on Titan!", MediaType.ANIME, "TMDB")
        'attack on titan|anime|tmdb'
    """
    type_value = media_type.value if isinstance(media_type, MediaType) else media_type
    key = CacheDefaults.KEY_SEPARATOR.join(
        (
            normalize_key_component(title),
            type_value,
            provider_id.strip().casefold(),
        )
    )
    logger.debug("Built cache key: %s", key)
    return key
