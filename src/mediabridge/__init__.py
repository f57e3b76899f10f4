"""
MediaBridge - Cross-provider media identity resolution and aggregation

Finds the same title across independent media providers, scores the
candidates, caches the match sets and merges metadata and episode/chapter
lists into one record.
"""

__version__ = "0.1.0"

from .core import (
    CrossProviderMatcher,
    DataAggregator,
    MediaIdentity,
    MediaType,
    ProviderCache,
    ProviderMatch,
    ProviderRegistry,
)

__all__ = [
    "CrossProviderMatcher",
    "DataAggregator",
    "MediaIdentity",
    "MediaType",
    "ProviderCache",
    "ProviderMatch",
    "ProviderRegistry",
]
