"""
Core matching, caching and aggregation engine for MediaBridge.
"""

from .aggregation import DataAggregator, ProviderPriorityConfig, paginate_episodes
from .cache import ProviderCache
from .matching import CrossProviderMatcher
from .models import (
    AggregatedMediaDetails,
    Chapter,
    Episode,
    MediaCandidate,
    MediaDetails,
    MediaIdentity,
    MediaType,
    ProviderMatch,
)
from .registry import ContentProvider, ProviderDescriptor, ProviderRegistry
from .statistics import StatisticsCollector

__all__ = [
    "AggregatedMediaDetails",
    "Chapter",
    "ContentProvider",
    "CrossProviderMatcher",
    "DataAggregator",
    "Episode",
    "MediaCandidate",
    "MediaDetails",
    "MediaIdentity",
    "MediaType",
    "ProviderCache",
    "ProviderDescriptor",
    "ProviderMatch",
    "ProviderPriorityConfig",
    "ProviderRegistry",
    "StatisticsCollector",
    "paginate_episodes",
]
