"""Season/page grouping for aggregated episode lists.

Season grouping is only used when nearly every episode carries a season
number; otherwise the list is cut into fixed-size pages, since partial
season data looks broken to the consumer.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Sequence

from mediabridge.core.models import Episode, EpisodePage, EpisodePagination, PaginationMode
from mediabridge.shared.constants import AggregationDefaults

logger = logging.getLogger(__name__)


def _page_sort_key(episode: Episode) -> tuple[bool, int, int]:
    # numberless episodes go last
    return (episode.number is None, episode.number or 0, episode.season_number or 0)


def group_by_season(episodes: Sequence[Episode]) -> dict[int, list[Episode]]:
    """Season number -> episodes sorted by number. Seasonless episodes are excluded."""
    groups: dict[int, list[Episode]] = defaultdict(list)
    for episode in episodes:
        if episode.season_number is not None:
            groups[episode.season_number].append(episode)
    return {
        season: sorted(groups[season], key=lambda e: e.number or 0)
        for season in sorted(groups)
    }


def paginate_fixed(episodes: Sequence[Episode], page_size: int) -> list[EpisodePage]:
    """Split episodes into sequential pages of ``page_size``."""
    if page_size < 1:
        msg = f"page_size must be at least 1, got {page_size}"
        raise ValueError(msg)

    pages: list[EpisodePage] = []
    for index, offset in enumerate(range(0, len(episodes), page_size), start=1):
        chunk = list(episodes[offset : offset + page_size])
        numbers = [episode.number for episode in chunk if episode.number is not None]
        first = min(numbers) if numbers else offset + 1
        last = max(numbers) if numbers else offset + len(chunk)
        pages.append(
            EpisodePage(
                label=f"Episodes {first}-{last}",
                episodes=chunk,
                page_number=index,
            )
        )
    return pages


def paginate_episodes(
    episodes: Sequence[Episode],
    page_size: int = AggregationDefaults.PAGE_SIZE,
    season_threshold: float = AggregationDefaults.SEASON_COMPLETENESS_THRESHOLD,
) -> EpisodePagination:
    """Group episodes by season when reliable, else into fixed pages.

    Args:
        episodes: Aggregated episode sequence
        page_size: Episodes per page for the fallback
        season_threshold: Share of episodes that must carry a season number

    Returns:
        EpisodePagination in SEASON or PAGE mode

    Example:
        >>> pagination = paginate_episodes(episodes_with_seasons_for_40_percent)
        >>> pagination.mode
        <PaginationMode.PAGE: 'page'>
    """
    if not episodes:
        return EpisodePagination(mode=PaginationMode.PAGE, pages=[])

    seasons = group_by_season(episodes)
    seasoned_count = sum(len(group) for group in seasons.values())

    if seasons and seasoned_count >= season_threshold * len(episodes):
        logger.debug(
            "Season grouping adopted: %d/%d episodes carry seasons",
            seasoned_count,
            len(episodes),
        )
        return EpisodePagination(
            mode=PaginationMode.SEASON,
            pages=[
                EpisodePage(
                    label=f"Season {season}",
                    episodes=group,
                    season_number=season,
                )
                for season, group in seasons.items()
            ],
        )

    logger.debug(
        "Season grouping rejected (%d/%d episodes carry seasons); paging by %d",
        seasoned_count,
        len(episodes),
        page_size,
    )
    ordered = sorted(episodes, key=_page_sort_key)
    return EpisodePagination(
        mode=PaginationMode.PAGE,
        pages=paginate_fixed(ordered, page_size),
    )
