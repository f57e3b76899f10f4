"""Episode and chapter reconciliation across providers.

Pure merge functions used by ``DataAggregator`` once every provider's
list has been fetched.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import replace

from mediabridge.core.aggregation.priority import DataType, ProviderPriorityConfig
from mediabridge.core.models import Chapter, Episode, EpisodeData
from mediabridge.shared.constants import AggregationDefaults

logger = logging.getLogger(__name__)

_SIZE_SUFFIX_PATTERN = re.compile(
    r"[_-]?(small|medium|large|original|l|m|s)\.(jpg|jpeg|png|webp)$",
    re.IGNORECASE,
)
_EXTENSION_PATTERN = re.compile(r"\.(jpg|jpeg|png|webp)$", re.IGNORECASE)


def normalize_image_url(url: str) -> str:
    """Strip query string, size suffix and extension, then lowercase.

    Example:
        >>> normalize_image_url("https://cdn.example/cover/123_large.jpg?v=2")
        'https://cdn.example/cover/123'
    """
    normalized = url.strip().split("?", 1)[0]
    normalized = _SIZE_SUFFIX_PATTERN.sub("", normalized)
    normalized = _EXTENSION_PATTERN.sub("", normalized)
    return normalized.lower()


def is_fallback_cover(thumbnail: str | None, cover_images: Iterable[str | None]) -> bool:
    """Whether an episode thumbnail is just a size variant of the media cover."""
    if not thumbnail:
        return False
    normalized = normalize_image_url(thumbnail)
    return any(cover and normalize_image_url(cover) == normalized for cover in cover_images)


def _has_thumbnail(episode: Episode, cover_images: Sequence[str]) -> bool:
    return bool(episode.thumbnail) and not is_fallback_cover(episode.thumbnail, cover_images)


def _episode_sort_key(episode: Episode) -> tuple[int, int]:
    return (episode.season_number or 0, episode.number or 0)


def merge_episode_lists(
    episodes_by_provider: Mapping[str, Sequence[Episode]],
    cover_images: Iterable[str | None] = (),
) -> list[Episode]:
    """Merge per-provider episode lists keyed by (season, number).

    The first provider in mapping order to supply a key owns the canonical
    record. Later providers only add their thumbnail/description/air date to
    the canonical record's ``alternative_data`` side-table, and only for
    fields the canonical record lacks. A thumbnail that merely repeats the
    media cover counts as lacking.

    Args:
        episodes_by_provider: Provider id -> episodes, in contribution order
        cover_images: Media cover URLs used for fallback-thumbnail detection

    Returns:
        Episodes sorted by (season or 0, number), one per key
    """
    covers = [cover for cover in cover_images if cover]
    merged: dict[tuple[int | None, int | None], Episode] = {}
    owners: dict[tuple[int | None, int | None], str] = {}
    skipped = 0

    for provider_id, episodes in episodes_by_provider.items():
        for episode in episodes:
            if episode.number is None:
                skipped += 1
                continue

            key = episode.key
            canonical = merged.get(key)
            if canonical is None:
                merged[key] = replace(
                    episode, alternative_data=dict(episode.alternative_data)
                )
                owners[key] = provider_id
                continue

            if owners[key] == provider_id:
                # duplicate within one provider's own list
                continue

            supplement = EpisodeData(
                thumbnail=(
                    episode.thumbnail
                    if not _has_thumbnail(canonical, covers)
                    and _has_thumbnail(episode, covers)
                    else None
                ),
                description=episode.description if not canonical.description else None,
                air_date=episode.air_date if not canonical.air_date else None,
            )
            if supplement.is_empty():
                continue

            existing = canonical.alternative_data.get(provider_id)
            if existing is None:
                canonical.alternative_data[provider_id] = supplement
            else:
                canonical.alternative_data[provider_id] = EpisodeData(
                    thumbnail=existing.thumbnail or supplement.thumbnail,
                    description=existing.description or supplement.description,
                    air_date=existing.air_date or supplement.air_date,
                )

    if skipped:
        logger.debug("Skipped %d episodes without a number", skipped)

    return sorted(merged.values(), key=_episode_sort_key)


def chapter_list_score(chapters: Sequence[Chapter]) -> float:
    """Completeness score: count plus bonuses for dated and paged chapters."""
    dated = sum(1 for chapter in chapters if chapter.release_date)
    paged = sum(1 for chapter in chapters if chapter.page_count is not None)
    return (
        len(chapters)
        + dated * AggregationDefaults.CHAPTER_DATE_WEIGHT
        + paged * AggregationDefaults.CHAPTER_PAGE_WEIGHT
    )


def merge_chapter_lists(
    primary_provider_id: str,
    chapters_by_provider: Mapping[str, Sequence[Chapter]],
    priority: ProviderPriorityConfig | None = None,
) -> list[Chapter]:
    """Merge per-provider chapter lists.

    The primary's list and numbering are kept; missing release dates,
    page counts and titles are filled from the first other provider with
    the same chapter number. Without primary chapters the most complete
    list wins, ties broken by manga chapter priority.
    """
    priority = priority or ProviderPriorityConfig()
    primary_chapters = list(chapters_by_provider.get(primary_provider_id, ()))

    if not primary_chapters:
        return _select_best_chapter_list(primary_provider_id, chapters_by_provider, priority)

    indexes: dict[str, dict[float, Chapter]] = {
        provider_id: {
            chapter.number: chapter
            for chapter in reversed(chapters)
            if chapter.number is not None
        }
        for provider_id, chapters in chapters_by_provider.items()
        if provider_id != primary_provider_id
    }

    merged: list[Chapter] = []
    for chapter in primary_chapters:
        enhanced = replace(chapter)
        if chapter.number is not None:
            for provider_id, index in indexes.items():
                other = index.get(chapter.number)
                if other is None:
                    continue
                if not enhanced.release_date and other.release_date:
                    enhanced.release_date = other.release_date
                    logger.debug(
                        "Chapter %s release date filled from %s", chapter.number, provider_id
                    )
                if enhanced.page_count is None and other.page_count is not None:
                    enhanced.page_count = other.page_count
                if not enhanced.title and other.title:
                    enhanced.title = other.title
        merged.append(enhanced)

    return merged


def _select_best_chapter_list(
    primary_provider_id: str,
    chapters_by_provider: Mapping[str, Sequence[Chapter]],
    priority: ProviderPriorityConfig,
) -> list[Chapter]:
    candidates = [
        provider_id
        for provider_id, chapters in chapters_by_provider.items()
        if provider_id != primary_provider_id and chapters
    ]
    if not candidates:
        return []

    ranked = priority.sort_providers_by_priority(candidates, DataType.MANGA_CHAPTER)
    best_provider = max(
        ranked,
        # max keeps the first of equal scores, i.e. the higher priority one
        key=lambda provider_id: chapter_list_score(chapters_by_provider[provider_id]),
    )
    logger.info(
        "Primary provider has no chapters; using %d chapters from %s",
        len(chapters_by_provider[best_provider]),
        best_provider,
    )
    return list(chapters_by_provider[best_provider])
