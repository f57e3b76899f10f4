"""Cross-provider data aggregation: details merge, episode/chapter reconciliation, paging."""

from mediabridge.core.aggregation.aggregator import DataAggregator, ImageSelection
from mediabridge.core.aggregation.episodes import (
    is_fallback_cover,
    merge_chapter_lists,
    merge_episode_lists,
    normalize_image_url,
)
from mediabridge.core.aggregation.pagination import paginate_episodes
from mediabridge.core.aggregation.priority import DataType, ProviderPriorityConfig

__all__ = [
    "DataAggregator",
    "DataType",
    "ImageSelection",
    "ProviderPriorityConfig",
    "is_fallback_cover",
    "merge_chapter_lists",
    "merge_episode_lists",
    "normalize_image_url",
    "paginate_episodes",
]
