"""
Statistics Collection Module

Counters for cache effectiveness, provider call outcomes and matching
results, shared by the cache, matcher and aggregator.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class ProviderCallMetrics:
    """Outcome counters for one provider."""

    successes: int = 0
    failures: int = 0
    timeouts: int = 0
    total_time_ms: float = 0.0

    @property
    def calls(self) -> int:
        return self.successes + self.failures + self.timeouts

    @property
    def average_time_ms(self) -> float:
        return self.total_time_ms / self.calls if self.calls else 0.0


@dataclass
class PerformanceMetrics:
    """Container for aggregate metrics."""

    # Cache metrics
    cache_hits: int = 0
    cache_misses: int = 0
    cache_writes: int = 0
    cache_evictions: int = 0

    # Matching metrics
    match_requests: int = 0
    matches_found: int = 0
    candidates_rejected: int = 0
    malformed_candidates: int = 0

    # Aggregation metrics
    aggregations: int = 0

    providers: dict[str, ProviderCallMetrics] = field(
        default_factory=lambda: defaultdict(ProviderCallMetrics)
    )

    @property
    def cache_hit_ratio(self) -> float:
        lookups = self.cache_hits + self.cache_misses
        return self.cache_hits / lookups if lookups else 0.0


class StatisticsCollector:
    """Central aggregator for cache, provider and matching metrics."""

    def __init__(self) -> None:
        self.metrics = PerformanceMetrics()
        self.session_start = datetime.now(timezone.utc)

    def record_cache_lookup(self, hit: bool) -> None:
        if hit:
            self.metrics.cache_hits += 1
        else:
            self.metrics.cache_misses += 1

    def record_cache_write(self, evicted: int = 0) -> None:
        self.metrics.cache_writes += 1
        self.metrics.cache_evictions += evicted

    def record_provider_call(
        self,
        provider_id: str,
        outcome: str,
        duration_ms: float = 0.0,
    ) -> None:
        """Record one provider callback.

        Args:
            provider_id: Provider the call went to
            outcome: "success", "failure" or "timeout"
            duration_ms: Wall time of the call
        """
        provider_metrics = self.metrics.providers[provider_id]
        if outcome == "success":
            provider_metrics.successes += 1
        elif outcome == "timeout":
            provider_metrics.timeouts += 1
        else:
            provider_metrics.failures += 1
        provider_metrics.total_time_ms += duration_ms

    def record_match_request(self, matches_found: int) -> None:
        self.metrics.match_requests += 1
        self.metrics.matches_found += matches_found

    def record_rejected_candidate(self, *, malformed: bool = False) -> None:
        if malformed:
            self.metrics.malformed_candidates += 1
        else:
            self.metrics.candidates_rejected += 1

    def record_aggregation(self) -> None:
        self.metrics.aggregations += 1

    def reset(self) -> None:
        self.metrics = PerformanceMetrics()
        self.session_start = datetime.now(timezone.utc)
        logger.debug("Statistics reset")

    def get_summary(self) -> dict[str, Any]:
        """Snapshot of all counters as plain data."""
        return {
            "session_start": self.session_start.isoformat(),
            "cache": {
                "hits": self.metrics.cache_hits,
                "misses": self.metrics.cache_misses,
                "writes": self.metrics.cache_writes,
                "evictions": self.metrics.cache_evictions,
                "hit_ratio": round(self.metrics.cache_hit_ratio, 3),
            },
            "matching": {
                "requests": self.metrics.match_requests,
                "matches_found": self.metrics.matches_found,
                "candidates_rejected": self.metrics.candidates_rejected,
                "malformed_candidates": self.metrics.malformed_candidates,
            },
            "aggregations": self.metrics.aggregations,
            "providers": {
                provider_id: {
                    "successes": provider_metrics.successes,
                    "failures": provider_metrics.failures,
                    "timeouts": provider_metrics.timeouts,
                    "average_time_ms": round(provider_metrics.average_time_ms, 1),
                }
                for provider_id, provider_metrics in sorted(
                    self.metrics.providers.items()
                )
            },
        }
