"""Cross-provider matching.

Finds the same title on alternate providers for a media item discovered
on a primary provider. The flow is:

1. Consult the match-set cache (hit returns without any provider call)
2. Fan out the injected search callback across every registered provider
   able to serve the media type, each query retyped for that provider
3. Score every candidate and keep the best one per provider, if it
   reaches the acceptance threshold
4. Cache and return the provider id -> ProviderMatch mapping

A provider that fails or times out simply contributes no match.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

from mediabridge.config.models import AggregationSettings, MatchingSettings
from mediabridge.core.concurrency import ProviderCallGuard
from mediabridge.core.models import MediaCandidate, MediaIdentity, MediaType, ProviderMatch
from mediabridge.core.normalization import build_cache_key
from mediabridge.core.registry import ProviderRegistry
from mediabridge.core.scoring import ConfidenceCalculator
from mediabridge.shared.conversion import RecordConverter
from mediabridge.shared.errors import (
    ErrorCode,
    ErrorContext,
    MalformedCandidateError,
    TypeCoercionError,
)
from mediabridge.shared.logging import log_operation_start, log_operation_success

if TYPE_CHECKING:
    from collections.abc import Sequence

    from mediabridge.config.models import Settings
    from mediabridge.core.cache import ProviderCache
    from mediabridge.core.registry import SearchFunction
    from mediabridge.core.statistics import StatisticsCollector

logger = logging.getLogger(__name__)


class CrossProviderMatcher:
    """Resolves a MediaIdentity to its best match on each alternate provider.

    Args:
        registry: Provider registry deciding fan-out targets and query types
        settings: Acceptance threshold and confidence weights
        aggregation_settings: Per-call timeout and concurrency limit
        calculator: Confidence calculator (built from ``settings`` if omitted)
        statistics: Optional statistics collector

    Example:
        >>> matcher = CrossProviderMatcher()
        >>> matches = await matcher.find_matches(identity, search, cache)
        >>> sorted(matches)
        ['anilist', 'jikan']
    """

    def __init__(
        self,
        registry: ProviderRegistry | None = None,
        settings: MatchingSettings | None = None,
        aggregation_settings: AggregationSettings | None = None,
        calculator: ConfidenceCalculator | None = None,
        statistics: StatisticsCollector | None = None,
    ) -> None:
        self.registry = registry or ProviderRegistry.default()
        self.settings = settings or MatchingSettings()
        aggregation_settings = aggregation_settings or AggregationSettings()
        self.calculator = calculator or ConfidenceCalculator.from_settings(self.settings)
        self.statistics = statistics
        self.guard = ProviderCallGuard(
            timeout=aggregation_settings.provider_timeout,
            max_concurrency=aggregation_settings.max_concurrency,
            statistics=statistics,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        registry: ProviderRegistry | None = None,
        statistics: StatisticsCollector | None = None,
    ) -> CrossProviderMatcher:
        return cls(
            registry=registry,
            settings=settings.matching,
            aggregation_settings=settings.aggregation,
            statistics=statistics,
        )

    @property
    def acceptance_threshold(self) -> float:
        return self.settings.acceptance_threshold

    @staticmethod
    def cache_key(identity: MediaIdentity) -> str:
        return build_cache_key(
            identity.title, identity.media_type, identity.primary_provider_id
        )

    async def find_matches(
        self,
        identity: MediaIdentity,
        search_function: SearchFunction,
        cache: ProviderCache | None = None,
    ) -> dict[str, ProviderMatch]:
        """Find the best acceptable match on every alternate provider.

        Args:
            identity: Primary media identity (its provider is never searched)
            search_function: ``(query, provider_id, media_type) -> candidates``
            cache: Match-set cache; None disables caching

        Returns:
            Provider id -> ProviderMatch, in fan-out order. Providers with no
            acceptable candidate are absent; an empty mapping is a valid result.
        """
        key = self.cache_key(identity)
        if cache is not None:
            cached = cache.get(key)
            if cached is not None:
                logger.info(
                    "Using cached matches for '%s' (%d providers)",
                    identity.title,
                    len(cached),
                )
                return cached

        start = time.perf_counter()
        provider_ids = self.registry.providers_for(
            identity.media_type, exclude={identity.primary_provider_id}
        )
        log_operation_start(
            logger,
            "find_matches",
            context={
                "title": identity.title,
                "media_type": identity.media_type.value,
                "providers": provider_ids,
            },
        )

        query_types = {
            provider_id: self.registry.query_type(provider_id, identity.media_type)
            for provider_id in provider_ids
        }
        outcomes = await self.guard.run_all(
            {
                provider_id: self._search_call(
                    search_function, identity.title, provider_id, query_types[provider_id]
                )
                for provider_id in provider_ids
            },
            operation="search",
        )

        matches: dict[str, ProviderMatch] = {}
        for provider_id, outcome in outcomes.items():
            if not outcome.ok:
                continue
            match = self._best_match(
                provider_id,
                identity,
                outcome.value or [],
                query_types[provider_id],
            )
            if match is not None:
                matches[provider_id] = match

        all_failed = bool(outcomes) and not any(o.ok for o in outcomes.values())
        if cache is not None:
            if all_failed:
                logger.warning(
                    "Every provider search failed for '%s'; result not cached",
                    identity.title,
                )
            else:
                cache.put(key, matches)

        if self.statistics is not None:
            self.statistics.record_match_request(len(matches))

        log_operation_success(
            logger,
            "find_matches",
            (time.perf_counter() - start) * 1000,
            result_info={
                "matched": sorted(matches),
                "searched": len(provider_ids),
            },
        )
        logger.info(
            "Found %d cross-provider matches for '%s'", len(matches), identity.title
        )
        return matches

    def invalidate_cached_matches(
        self,
        identity: MediaIdentity,
        cache: ProviderCache,
    ) -> bool:
        """Drop the cached match set for ``identity``. Returns whether one existed."""
        removed = cache.remove(self.cache_key(identity))
        if removed:
            logger.info("Invalidated cached matches for '%s'", identity.title)
        return removed

    @staticmethod
    def _search_call(
        search_function: SearchFunction,
        query: str,
        provider_id: str,
        media_type: MediaType,
    ) -> Any:
        async def call() -> Sequence[Any]:
            return await search_function(query, provider_id, media_type)

        return call

    def _coerce_candidate(self, provider_id: str, raw: Any) -> MediaCandidate:
        """Convert a raw search hit, rejecting records without a usable title.

        Raises:
            MalformedCandidateError: If the record lacks required fields
        """
        try:
            candidate = RecordConverter.to_record(raw, MediaCandidate, lenient=True)
        except TypeCoercionError as e:
            raise MalformedCandidateError(
                ErrorCode.MALFORMED_CANDIDATE,
                f"Malformed candidate from '{provider_id}': {e.message}",
                ErrorContext(operation="score_candidates", provider_id=provider_id),
                original_error=e,
            ) from e

        if not candidate.title or not candidate.title.strip():
            raise MalformedCandidateError(
                ErrorCode.MISSING_REQUIRED_FIELD,
                f"Candidate {candidate.id!r} from '{provider_id}' has no title",
                ErrorContext(operation="score_candidates", provider_id=provider_id),
            )
        return candidate

    def _best_match(
        self,
        provider_id: str,
        identity: MediaIdentity,
        raw_candidates: Sequence[Any],
        query_type: MediaType,
    ) -> ProviderMatch | None:
        best_candidate: MediaCandidate | None = None
        best_confidence = -1.0

        for raw in raw_candidates:
            try:
                candidate = self._coerce_candidate(provider_id, raw)
            except MalformedCandidateError as e:
                logger.debug("Skipping candidate: %s", e)
                if self.statistics is not None:
                    self.statistics.record_rejected_candidate(malformed=True)
                continue

            confidence = self.calculator.calculate(identity, candidate, query_type)
            if confidence > best_confidence:
                best_candidate = candidate
                best_confidence = confidence

        if best_candidate is None:
            logger.debug("No candidates from %s for '%s'", provider_id, identity.title)
            return None

        if best_confidence < self.acceptance_threshold:
            logger.debug(
                "Best candidate from %s ('%s', %.3f) below threshold %.2f",
                provider_id,
                best_candidate.title,
                best_confidence,
                self.acceptance_threshold,
            )
            if self.statistics is not None:
                self.statistics.record_rejected_candidate()
            return None

        logger.debug(
            "Matched %s -> %s ('%s', confidence %.3f)",
            identity.title,
            provider_id,
            best_candidate.title,
            best_confidence,
        )
        return ProviderMatch(
            provider_id=provider_id,
            matched_media_id=best_candidate.id,
            confidence=best_confidence,
            matched_title=best_candidate.title,
        )
