"""Media Domain Models.

Immutable query/result value objects for the matcher (frozen dataclasses
validated in ``__post_init__``) and the mutable record dataclasses that
provider callbacks hand back to the aggregator.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import ConfigDict

from mediabridge.shared.constants import ValidationConstants

_YEAR_PREFIX_PATTERN = re.compile(r"^(\d{4})")


class MediaType(str, Enum):
    """Media categories understood by every provider."""

    ANIME = "anime"
    MANGA = "manga"
    NOVEL = "novel"
    MOVIE = "movie"
    TV_SHOW = "tvShow"
    CARTOON = "cartoon"
    DOCUMENTARY = "documentary"
    LIVESTREAM = "livestream"
    NSFW = "nsfw"

    @property
    def is_video(self) -> bool:
        return self in _VIDEO_TYPES

    @property
    def is_reading(self) -> bool:
        return self in _READING_TYPES

    @property
    def category(self) -> str:
        """Coarse grouping used for type compatibility ("video", "reading", "other")."""
        if self.is_video:
            return "video"
        if self.is_reading:
            return "reading"
        return "other"


_VIDEO_TYPES = frozenset(
    {
        MediaType.ANIME,
        MediaType.MOVIE,
        MediaType.TV_SHOW,
        MediaType.CARTOON,
        MediaType.DOCUMENTARY,
        MediaType.LIVESTREAM,
    }
)
_READING_TYPES = frozenset({MediaType.MANGA, MediaType.NOVEL})


def _unique_titles(*titles: str | None) -> list[str]:
    seen: set[str] = set()
    result: list[str] = []
    for title in titles:
        if title and title.strip() and title not in seen:
            seen.add(title)
            result.append(title)
    return result


def year_from_date(value: str | None) -> int | None:
    """Extract the leading year from an ISO-like date string."""
    if not value:
        return None
    match = _YEAR_PREFIX_PATTERN.match(value.strip())
    return int(match.group(1)) if match else None


@dataclass(frozen=True)
class MediaIdentity:
    """Matching query built from the primary provider's record.

    Attributes:
        title: Main title as shown by the primary provider
        media_type: Media category of the primary record
        primary_provider_id: Provider the record came from (never searched)
        english_title: Optional English title
        romaji_title: Optional romanized title
        native_title: Optional native-script title
        release_year: Optional release year used for proximity bonus
        synonyms: Additional known titles

    Example:
        >>> identity = MediaIdentity(
        ...     title="Attack on Titan",
        ...     media_type=MediaType.TV_SHOW,
        ...     primary_provider_id="tmdb",
        ...     release_year=2013,
        ... )
        >>> identity.all_titles
        ['Attack on Titan']

    Raises:
        ValueError: If title or provider id is empty, or the year is invalid
    """

    title: str
    media_type: MediaType
    primary_provider_id: str
    english_title: str | None = None
    romaji_title: str | None = None
    native_title: str | None = None
    release_year: int | None = None
    synonyms: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not self.title or not self.title.strip():
            raise ValueError("Title cannot be empty or whitespace")

        if not self.primary_provider_id or not self.primary_provider_id.strip():
            raise ValueError("Primary provider id cannot be empty")

        if not isinstance(self.media_type, MediaType):
            object.__setattr__(self, "media_type", MediaType(self.media_type))

        if not isinstance(self.synonyms, tuple):
            object.__setattr__(self, "synonyms", tuple(self.synonyms))

        if (
            self.release_year is not None
            and self.release_year < ValidationConstants.MIN_VALID_YEAR
        ):
            msg = f"Year {self.release_year} is too old (must be >= {ValidationConstants.MIN_VALID_YEAR})"
            raise ValueError(msg)

    @property
    def all_titles(self) -> list[str]:
        """Main title followed by every distinct alternate title."""
        return _unique_titles(
            self.title,
            self.english_title,
            self.romaji_title,
            self.native_title,
            *self.synonyms,
        )

    @classmethod
    def from_details(
        cls, details: MediaDetails, provider_id: str | None = None
    ) -> MediaIdentity:
        """Build the matching query for a provider's details record."""
        return cls(
            title=details.title,
            media_type=details.media_type,
            primary_provider_id=provider_id or details.source_id or "",
            english_title=details.english_title,
            romaji_title=details.romaji_title,
            native_title=details.native_title,
            release_year=details.release_year,
        )


@dataclass(frozen=True)
class ProviderMatch:
    """Best acceptable candidate found on one alternate provider.

    Attributes:
        provider_id: Alternate provider the candidate came from
        matched_media_id: Provider-local id of the candidate
        confidence: Match confidence (0.0-1.0)
        matched_title: Candidate title as reported by the provider

    Raises:
        ValueError: If title is empty or confidence is out of range
    """

    provider_id: str
    matched_media_id: str
    confidence: float
    matched_title: str

    def __post_init__(self) -> None:
        if not self.matched_title or not self.matched_title.strip():
            raise ValueError("Matched title cannot be empty or whitespace")

        if not (
            ValidationConstants.MIN_CONFIDENCE_SCORE
            <= self.confidence
            <= ValidationConstants.MAX_CONFIDENCE_SCORE
        ):
            msg = (
                f"Confidence score {self.confidence} must be between "
                f"{ValidationConstants.MIN_CONFIDENCE_SCORE} and {ValidationConstants.MAX_CONFIDENCE_SCORE}"
            )
            raise ValueError(msg)


# Provider records. Provider ids are frequently numeric, so numbers are
# accepted wherever a string id is expected.
_RECORD_CONFIG = ConfigDict(coerce_numbers_to_str=True)


@dataclass
class MediaCandidate:
    """Search hit returned by a provider's search callback."""

    __pydantic_config__ = _RECORD_CONFIG

    id: str
    title: str
    english_title: str | None = None
    romaji_title: str | None = None
    native_title: str | None = None
    synonyms: list[str] = field(default_factory=list)
    media_type: MediaType | None = None
    release_year: int | None = None
    cover_image: str | None = None

    @property
    def all_titles(self) -> list[str]:
        return _unique_titles(
            self.title,
            self.english_title,
            self.romaji_title,
            self.native_title,
            *self.synonyms,
        )


@dataclass
class Character:
    __pydantic_config__ = _RECORD_CONFIG

    name: str
    id: str | None = None
    native_name: str | None = None
    image: str | None = None
    role: str | None = None


@dataclass
class Staff:
    __pydantic_config__ = _RECORD_CONFIG

    name: str
    id: str | None = None
    native_name: str | None = None
    image: str | None = None
    role: str | None = None


@dataclass
class Recommendation:
    __pydantic_config__ = _RECORD_CONFIG

    id: str
    title: str
    cover_image: str | None = None
    rating: float | None = None


@dataclass
class MediaDetails:
    """Full media record as returned by a provider's details callback."""

    __pydantic_config__ = _RECORD_CONFIG

    id: str
    title: str
    media_type: MediaType
    english_title: str | None = None
    romaji_title: str | None = None
    native_title: str | None = None
    cover_image: str = ""
    banner_image: str | None = None
    description: str | None = None
    status: str | None = None
    rating: float | None = None
    average_score: float | None = None
    mean_score: float | None = None
    popularity: float | None = None
    favorites: int | None = None
    genres: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    start_date: str | None = None
    end_date: str | None = None
    episodes: int | None = None
    chapters: int | None = None
    volumes: int | None = None
    duration: int | None = None
    season: str | None = None
    season_year: int | None = None
    is_adult: bool = False
    site_url: str | None = None
    source_id: str | None = None
    source_name: str | None = None
    characters: list[Character] = field(default_factory=list)
    staff: list[Staff] = field(default_factory=list)
    recommendations: list[Recommendation] = field(default_factory=list)

    @property
    def release_year(self) -> int | None:
        return self.season_year or year_from_date(self.start_date)

    @classmethod
    def stub(
        cls,
        media_id: str,
        title: str,
        media_type: MediaType,
        provider_id: str,
    ) -> MediaDetails:
        """Minimal record standing in for a provider whose fetch failed."""
        return cls(
            id=media_id,
            title=title,
            media_type=media_type,
            source_id=provider_id,
        )


@dataclass
class AggregatedMediaDetails(MediaDetails):
    """MediaDetails merged from the primary and every matched provider.

    Attributes:
        contributing_providers: Primary first, then every match provider
            that supplied at least one field, in supplied order
        data_source_attribution: Logical field name -> non-primary provider
            whose value won
        match_confidences: Provider id -> confidence of the match used
    """

    contributing_providers: list[str] = field(default_factory=list)
    data_source_attribution: dict[str, str] = field(default_factory=dict)
    match_confidences: dict[str, float] = field(default_factory=dict)


@dataclass
class EpisodeData:
    """Supplemental episode fields contributed by a non-canonical provider."""

    thumbnail: str | None = None
    description: str | None = None
    air_date: str | None = None

    def is_empty(self) -> bool:
        return not (self.thumbnail or self.description or self.air_date)


@dataclass
class Episode:
    __pydantic_config__ = _RECORD_CONFIG

    id: str
    number: int | None = None
    title: str | None = None
    thumbnail: str | None = None
    description: str | None = None
    air_date: str | None = None
    duration: int | None = None
    season_number: int | None = None
    alternative_data: dict[str, EpisodeData] = field(default_factory=dict)

    @property
    def key(self) -> tuple[int | None, int | None]:
        """De-duplication key across providers."""
        return (self.season_number, self.number)

    @property
    def resolved_thumbnail(self) -> str | None:
        """Own thumbnail, else the first one found in the side-table."""
        if self.thumbnail:
            return self.thumbnail
        for data in self.alternative_data.values():
            if data.thumbnail:
                return data.thumbnail
        return None


@dataclass
class Chapter:
    __pydantic_config__ = _RECORD_CONFIG

    id: str
    number: float | None = None
    title: str | None = None
    release_date: str | None = None
    page_count: int | None = None


@dataclass
class EpisodePage:
    """One display group of episodes: a season or a fixed-size page."""

    label: str
    episodes: list[Episode]
    season_number: int | None = None
    page_number: int | None = None


class PaginationMode(str, Enum):
    SEASON = "season"
    PAGE = "page"


@dataclass
class EpisodePagination:
    mode: PaginationMode
    pages: list[EpisodePage]

    @property
    def total_episodes(self) -> int:
        return sum(len(page.episodes) for page in self.pages)

    def summary(self) -> dict[str, Any]:
        return {
            "mode": self.mode.value,
            "groups": [
                {"label": page.label, "episodes": len(page.episodes)}
                for page in self.pages
            ],
        }
