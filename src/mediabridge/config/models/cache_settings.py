"""Cache configuration model.

TTL, size bound and optional persistence file for the match-set cache.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field

from mediabridge.shared.constants import CacheDefaults


class CacheSettings(BaseModel):
    """ProviderCache configuration."""

    enabled: bool = Field(default=True, description="Enable match-set caching")
    ttl_seconds: int = Field(
        default=CacheDefaults.TTL_SECONDS,
        gt=0,
        description="Cache time-to-live in seconds",
    )
    max_size_bytes: int = Field(
        default=CacheDefaults.MAX_SIZE_BYTES,
        gt=0,
        description="Maximum total serialized size of cached match sets",
    )
    path: Path | None = Field(
        default=None,
        description="JSON file the cache is loaded from and saved to",
    )


__all__ = ["CacheSettings"]
