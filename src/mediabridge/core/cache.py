"""Match-set cache for cross-provider lookups.

Maps a normalized (title, media type, primary provider) key to the match
set computed for it, so repeated lookups skip the provider fan-out.
Entries expire after a time-to-live; the total serialized size is bounded
with least-recently-accessed eviction. When a path is configured the cache
is loaded from and written through to a JSON file (orjson).
"""

from __future__ import annotations

import logging
import os
import time
from collections import OrderedDict
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import TYPE_CHECKING

import orjson
from pydantic import BaseModel, Field, ValidationError

from mediabridge.core.models import ProviderMatch
from mediabridge.core.statistics import StatisticsCollector
from mediabridge.shared.constants import CacheDefaults
from mediabridge.shared.conversion import RecordConverter
from mediabridge.shared.errors import ErrorCode, create_cache_error
from mediabridge.shared.logging import log_operation_error, log_operation_success

if TYPE_CHECKING:
    from mediabridge.config.models import CacheSettings

logger = logging.getLogger(__name__)


class CacheEntry(BaseModel):
    """One cached match set with its bookkeeping.

    Attributes:
        key: Normalized query key
        matches: Provider id -> ProviderMatch snapshot
        created_at: Epoch seconds when the entry was stored
        last_accessed_at: Epoch seconds of the last read or write
        size_bytes: Serialized JSON size of ``matches``
    """

    key: str = Field(..., min_length=1, description="Normalized query key")
    matches: dict[str, ProviderMatch] = Field(default_factory=dict)
    created_at: float = Field(..., ge=0, description="Insertion time (epoch seconds)")
    last_accessed_at: float = Field(..., ge=0, description="Last access (epoch seconds)")
    size_bytes: int = Field(default=0, ge=0, description="Serialized size in bytes")

    def is_expired(self, ttl_seconds: float, now: float) -> bool:
        return now - self.created_at >= ttl_seconds


def _serialized_size(matches: Mapping[str, ProviderMatch]) -> int:
    payload = {
        provider_id: RecordConverter.to_dict(match)
        for provider_id, match in matches.items()
    }
    return len(RecordConverter.to_json_bytes(payload))


class ProviderCache:
    """Time-boxed, size-bounded key/value store of match sets.

    Args:
        ttl_seconds: Entry lifetime; expired entries read as misses
        max_size_bytes: Upper bound on the summed serialized entry sizes
        path: Optional JSON persistence file
        enabled: When False every lookup misses and writes are ignored
        statistics: Optional collector for hit/miss counters
        clock: Time source in epoch seconds

    Example:
        >>> cache = ProviderCache()
        >>> cache.put("attack on titan|tvShow|tmdb", {})
        >>> cache.get("attack on titan|tvShow|tmdb")
        {}
        >>> cache.get_entry_count()
        1
    """

    def __init__(
        self,
        ttl_seconds: float = CacheDefaults.TTL_SECONDS,
        max_size_bytes: int = CacheDefaults.MAX_SIZE_BYTES,
        path: str | Path | None = None,
        *,
        enabled: bool = True,
        statistics: StatisticsCollector | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if ttl_seconds <= 0:
            msg = f"ttl_seconds must be positive, got {ttl_seconds}"
            raise ValueError(msg)
        if max_size_bytes <= 0:
            msg = f"max_size_bytes must be positive, got {max_size_bytes}"
            raise ValueError(msg)

        self.ttl_seconds = ttl_seconds
        self.max_size_bytes = max_size_bytes
        self.path = Path(path) if path is not None else None
        self.enabled = enabled
        self.statistics = statistics
        self._clock = clock
        # insertion order doubles as least-recently-accessed order
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._total_size = 0

        if self.path is not None and self.path.exists():
            self.load()

    @classmethod
    def from_settings(
        cls,
        settings: CacheSettings,
        statistics: StatisticsCollector | None = None,
        path: str | Path | None = None,
    ) -> ProviderCache:
        """Build from a ``CacheSettings`` model; ``path`` overrides its path."""
        return cls(
            ttl_seconds=settings.ttl_seconds,
            max_size_bytes=settings.max_size_bytes,
            path=path if path is not None else settings.path,
            enabled=settings.enabled,
            statistics=statistics,
        )

    def get(self, key: str) -> dict[str, ProviderMatch] | None:
        """Cached match set for ``key``, or None on a miss or expiry."""
        if not self.enabled:
            return None

        entry = self._entries.get(key)
        now = self._clock()
        if entry is not None and entry.is_expired(self.ttl_seconds, now):
            logger.debug("Cache entry expired: %s", key)
            self._discard(key)
            self._persist()
            entry = None

        if entry is None:
            logger.debug("Cache miss: %s", key)
            if self.statistics is not None:
                self.statistics.record_cache_lookup(hit=False)
            return None

        entry.last_accessed_at = now
        self._entries.move_to_end(key)
        logger.debug("Cache hit: %s (%d matches)", key, len(entry.matches))
        if self.statistics is not None:
            self.statistics.record_cache_lookup(hit=True)
        return dict(entry.matches)

    def put(self, key: str, matches: Mapping[str, ProviderMatch]) -> None:
        """Store ``matches`` under ``key``, evicting old entries to fit."""
        if not self.enabled:
            return

        size = _serialized_size(matches)
        if size > self.max_size_bytes:
            logger.warning(
                "Match set for %s (%d bytes) exceeds cache size limit of %d bytes; not cached",
                key,
                size,
                self.max_size_bytes,
            )
            return

        self._discard(key)
        evicted = self._evict_for(size)

        now = self._clock()
        self._entries[key] = CacheEntry(
            key=key,
            matches=dict(matches),
            created_at=now,
            last_accessed_at=now,
            size_bytes=size,
        )
        self._total_size += size
        logger.debug("Cached %d matches for %s (%d bytes)", len(matches), key, size)

        if self.statistics is not None:
            self.statistics.record_cache_write(evicted)
        self._persist()

    def remove(self, key: str) -> bool:
        """Drop one entry. Returns whether it existed."""
        removed = self._discard(key)
        if removed:
            self._persist()
        return removed

    def clear_all(self) -> None:
        count = len(self._entries)
        self._entries.clear()
        self._total_size = 0
        logger.info("Cleared %d cache entries", count)
        self._persist()

    def clear_expired(self) -> int:
        """Remove every expired entry. Returns the number removed."""
        now = self._clock()
        expired = [
            key
            for key, entry in self._entries.items()
            if entry.is_expired(self.ttl_seconds, now)
        ]
        for key in expired:
            self._discard(key)
        if expired:
            logger.info("Removed %d expired cache entries", len(expired))
            self._persist()
        return len(expired)

    def get_cache_size(self) -> int:
        """Summed serialized size of all entries, in bytes."""
        return self._total_size

    def get_entry_count(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def entries(self) -> list[CacheEntry]:
        """Entries from least to most recently accessed."""
        return list(self._entries.values())

    def _discard(self, key: str) -> bool:
        entry = self._entries.pop(key, None)
        if entry is None:
            return False
        self._total_size -= entry.size_bytes
        return True

    def _evict_for(self, incoming_size: int) -> int:
        evicted = 0
        while self._entries and self._total_size + incoming_size > self.max_size_bytes:
            key, entry = self._entries.popitem(last=False)
            self._total_size -= entry.size_bytes
            evicted += 1
            logger.debug("Evicted least recently used cache entry: %s", key)
        return evicted

    def load(self) -> int:
        """Replace the in-memory state with the persistence file's content.

        Unreadable files degrade to an empty cache; invalid or expired
        entries are dropped.

        Returns:
            Number of entries loaded
        """
        if self.path is None:
            return 0

        start = time.perf_counter()
        try:
            raw = orjson.loads(self.path.read_bytes())
        except (OSError, orjson.JSONDecodeError) as e:
            error = create_cache_error(
                ErrorCode.CACHE_READ_FAILED,
                f"Failed to read cache file {self.path}: {e}",
                path=str(self.path),
                operation="load_cache",
                original_error=e,
            )
            log_operation_error(logger, error, level=logging.WARNING)
            return 0

        raw_entries = raw.get("entries", []) if isinstance(raw, dict) else []
        self._entries.clear()
        self._total_size = 0
        now = self._clock()
        dropped = 0
        for raw_entry in raw_entries:
            try:
                entry = CacheEntry.model_validate(raw_entry)
            except ValidationError:
                dropped += 1
                continue
            if entry.is_expired(self.ttl_seconds, now):
                dropped += 1
                continue
            self._entries[entry.key] = entry
            self._total_size += entry.size_bytes

        # the configured bound may be smaller than the one the file was written with
        self._evict_for(0)

        if dropped:
            logger.info("Dropped %d invalid or expired cache entries on load", dropped)
        log_operation_success(
            logger,
            "load_cache",
            (time.perf_counter() - start) * 1000,
            result_info={"entries": len(self._entries), "dropped": dropped},
        )
        return len(self._entries)

    def save(self) -> None:
        """Write the cache to its persistence file.

        Failures are logged; the in-memory state is kept.
        """
        if self.path is None:
            return

        payload = {
            "version": CacheDefaults.FILE_FORMAT_VERSION,
            "entries": [entry.model_dump(mode="json") for entry in self._entries.values()],
        }
        temp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            temp_path.write_bytes(orjson.dumps(payload))
            os.replace(temp_path, self.path)
        except OSError as e:
            error = create_cache_error(
                ErrorCode.CACHE_WRITE_FAILED,
                f"Failed to write cache file {self.path}: {e}",
                path=str(self.path),
                operation="save_cache",
                original_error=e,
            )
            log_operation_error(logger, error, level=logging.WARNING)

    def _persist(self) -> None:
        if self.path is not None:
            self.save()
