"""Aggregation and provider priority configuration models."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from mediabridge.shared.constants import AggregationDefaults, PriorityDefaults


class AggregationSettings(BaseModel):
    """Provider fan-out and episode pagination configuration."""

    provider_timeout: float = Field(
        default=AggregationDefaults.PROVIDER_TIMEOUT,
        gt=0.0,
        description="Seconds allowed for each provider callback",
    )
    max_concurrency: int = Field(
        default=AggregationDefaults.MAX_CONCURRENCY,
        ge=1,
        description="Maximum provider callbacks in flight at once",
    )
    page_size: int = Field(
        default=AggregationDefaults.PAGE_SIZE,
        ge=1,
        description="Episodes per page when season grouping is rejected",
    )
    season_completeness_threshold: float = Field(
        default=AggregationDefaults.SEASON_COMPLETENESS_THRESHOLD,
        ge=0.0,
        le=1.0,
        description="Share of episodes that must carry a season number",
    )


class PrioritySettings(BaseModel):
    """Provider priority lists, highest priority first."""

    episode_thumbnail: list[str] = Field(
        default_factory=lambda: list(PriorityDefaults.EPISODE_THUMBNAIL)
    )
    image_quality: list[str] = Field(
        default_factory=lambda: list(PriorityDefaults.IMAGE_QUALITY)
    )
    anime_metadata: list[str] = Field(
        default_factory=lambda: list(PriorityDefaults.ANIME_METADATA)
    )
    manga_chapter: list[str] = Field(
        default_factory=lambda: list(PriorityDefaults.MANGA_CHAPTER)
    )
    character: list[str] = Field(
        default_factory=lambda: list(PriorityDefaults.CHARACTER)
    )

    @field_validator(
        "episode_thumbnail",
        "image_quality",
        "anime_metadata",
        "manga_chapter",
        "character",
    )
    @classmethod
    def normalize_provider_ids(cls, value: list[str]) -> list[str]:
        """Lowercase ids and drop duplicates, keeping first position."""
        seen: set[str] = set()
        result: list[str] = []
        for provider_id in value:
            normalized = provider_id.strip().lower()
            if normalized and normalized not in seen:
                seen.add(normalized)
                result.append(normalized)
        return result


__all__ = ["AggregationSettings", "PrioritySettings"]
