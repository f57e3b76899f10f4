"""Data aggregation across matched providers.

``DataAggregator`` takes the primary provider's record plus the match set
produced by ``CrossProviderMatcher``, fetches the matched providers' data
through injected callbacks and merges everything into one result.

Merge policy for media details, applied primary first and then by
descending match confidence (ties follow the anime metadata priority):

- description: the longest non-empty value wins
- rating/score/popularity fields: the higher value wins
- episode/chapter/volume counts: the higher count wins
- genres/tags: case-insensitive union, first occurrence order kept
- characters/staff: union by normalized name, the more complete record
  keeps the slot of the first occurrence; equally complete characters
  from alternate providers go to the higher character priority
- recommendations: union by title, the higher rating wins
- cover/banner: primary first, then image quality priority
- other scalars: filled from the first provider that has them

Every field won by a non-primary provider is recorded in
``data_source_attribution``.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, fields
from typing import TYPE_CHECKING, Any, TypeVar

from mediabridge.config.models import AggregationSettings, PrioritySettings
from mediabridge.core.aggregation.episodes import merge_chapter_lists, merge_episode_lists
from mediabridge.core.aggregation.pagination import paginate_episodes
from mediabridge.core.aggregation.priority import DataType, ProviderPriorityConfig
from mediabridge.core.concurrency import ProviderCallGuard
from mediabridge.core.models import (
    AggregatedMediaDetails,
    Chapter,
    Character,
    Episode,
    EpisodePagination,
    MediaDetails,
    ProviderMatch,
    Recommendation,
    Staff,
)
from mediabridge.core.normalization import normalize_key_component
from mediabridge.shared.conversion import RecordConverter
from mediabridge.shared.errors import (
    TypeCoercionError,
    create_primary_provider_error,
    create_validation_error,
)
from mediabridge.shared.logging import log_operation_success

if TYPE_CHECKING:
    from mediabridge.config.models import Settings
    from mediabridge.core.registry import ChapterFetcher, DetailsFetcher, EpisodeFetcher
    from mediabridge.core.statistics import StatisticsCollector

logger = logging.getLogger(__name__)

R = TypeVar("R")

_LONGEST_TEXT_FIELDS = ("description",)
_HIGHER_VALUE_FIELDS = ("rating", "average_score", "mean_score", "popularity", "favorites")
_HIGHER_COUNT_FIELDS = ("episodes", "chapters", "volumes")
_FILL_FIELDS = (
    "english_title",
    "romaji_title",
    "native_title",
    "status",
    "start_date",
    "end_date",
    "duration",
    "season",
    "season_year",
    "site_url",
)
_STRING_LIST_FIELDS = ("genres", "tags")


@dataclass(frozen=True)
class ImageSelection:
    """Chosen cover/banner and the provider each came from."""

    cover_image: str
    cover_provider: str | None
    banner_image: str | None
    banner_provider: str | None


def _person_key(person: Character | Staff) -> str:
    return normalize_key_component(person.name) or f"id:{person.id}"


def _completeness(person: Character | Staff) -> int:
    return sum(1 for value in (person.image, person.native_name, person.role) if value)


class _DetailsMerger:
    """Accumulates provider records into one AggregatedMediaDetails."""

    def __init__(
        self,
        primary: MediaDetails,
        primary_provider_id: str,
        character_priority: Sequence[str] = (),
    ) -> None:
        values = {f.name: getattr(primary, f.name) for f in fields(MediaDetails)}
        values.update(
            genres=list(primary.genres),
            tags=list(primary.tags),
            characters=list(primary.characters),
            staff=list(primary.staff),
            recommendations=list(primary.recommendations),
            source_id=primary_provider_id,
        )
        self.result = AggregatedMediaDetails(**values)
        self.primary_provider_id = primary_provider_id
        self.contributors: set[str] = set()

        # dedup indexes seeded from the primary
        self._string_keys = {
            name: {value.casefold() for value in getattr(self.result, name)}
            for name in _STRING_LIST_FIELDS
        }
        self._character_index = self._index_people(self.result.characters)
        self._character_rank = {pid: rank for rank, pid in enumerate(character_priority)}
        self._character_sources = {key: primary_provider_id for key in self._character_index}
        self._staff_index = self._index_people(self.result.staff)
        self._recommendation_index = {
            normalize_key_component(rec.title): i
            for i, rec in enumerate(self.result.recommendations)
        }

    @staticmethod
    def _index_people(people: list[Any]) -> dict[str, int]:
        index: dict[str, int] = {}
        for position, person in enumerate(people):
            index.setdefault(_person_key(person), position)
        return index

    def _won(self, field_name: str, provider_id: str) -> None:
        self.result.data_source_attribution[field_name] = provider_id
        self.contributors.add(provider_id)

    def _added(self, field_name: str, provider_id: str) -> None:
        # list fields credit the first provider that extended them
        self.result.data_source_attribution.setdefault(field_name, provider_id)
        self.contributors.add(provider_id)

    def merge(self, details: MediaDetails, provider_id: str) -> None:
        result = self.result

        for name in _LONGEST_TEXT_FIELDS:
            incoming = getattr(details, name)
            current = getattr(result, name)
            if incoming and incoming.strip() and len(incoming) > len(current or ""):
                setattr(result, name, incoming)
                self._won(name, provider_id)

        for name in _HIGHER_VALUE_FIELDS + _HIGHER_COUNT_FIELDS:
            incoming = getattr(details, name)
            current = getattr(result, name)
            if incoming is not None and (current is None or incoming > current):
                setattr(result, name, incoming)
                self._won(name, provider_id)

        for name in _FILL_FIELDS:
            incoming = getattr(details, name)
            if incoming not in (None, "") and getattr(result, name) in (None, ""):
                setattr(result, name, incoming)
                self._won(name, provider_id)

        if details.is_adult and not result.is_adult:
            result.is_adult = True
            self._won("is_adult", provider_id)

        for name in _STRING_LIST_FIELDS:
            keys = self._string_keys[name]
            target = getattr(result, name)
            for value in getattr(details, name):
                if value and value.casefold() not in keys:
                    keys.add(value.casefold())
                    target.append(value)
                    self._added(name, provider_id)

        self._merge_people(
            "characters",
            result.characters,
            self._character_index,
            details.characters,
            provider_id,
            self._character_sources,
        )
        self._merge_people("staff", result.staff, self._staff_index, details.staff, provider_id)
        self._merge_recommendations(details.recommendations, provider_id)

    def _merge_people(
        self,
        field_name: str,
        target: list[Any],
        index: dict[str, int],
        incoming: Sequence[Any],
        provider_id: str,
        sources: dict[str, str] | None = None,
    ) -> None:
        for person in incoming:
            key = _person_key(person)
            position = index.get(key)
            if position is None:
                index[key] = len(target)
                target.append(person)
            elif self._replaces(person, target[position], provider_id, sources, key):
                target[position] = person
            else:
                continue
            if sources is not None:
                sources[key] = provider_id
            self._added(field_name, provider_id)

    def _replaces(
        self,
        person: Any,
        current: Any,
        provider_id: str,
        sources: dict[str, str] | None,
        key: str,
    ) -> bool:
        """More complete wins; equal records go to the higher character priority."""
        incoming_score, current_score = _completeness(person), _completeness(current)
        if incoming_score != current_score or sources is None:
            return incoming_score > current_score
        holder = sources.get(key, self.primary_provider_id)
        if holder == self.primary_provider_id:
            return False
        unranked = len(self._character_rank)
        return self._character_rank.get(provider_id, unranked) < self._character_rank.get(
            holder, unranked
        )

    def _merge_recommendations(
        self, incoming: Sequence[Recommendation], provider_id: str
    ) -> None:
        target = self.result.recommendations
        for recommendation in incoming:
            key = normalize_key_component(recommendation.title)
            position = self._recommendation_index.get(key)
            if position is None:
                self._recommendation_index[key] = len(target)
                target.append(recommendation)
                self._added("recommendations", provider_id)
            elif (recommendation.rating or 0) > (target[position].rating or 0):
                target[position] = recommendation
                self._added("recommendations", provider_id)

    def apply_images(self, selection: ImageSelection) -> None:
        self.result.cover_image = selection.cover_image
        self.result.banner_image = selection.banner_image
        if selection.cover_provider and selection.cover_provider != self.primary_provider_id:
            self._won("cover_image", selection.cover_provider)
        if selection.banner_provider and selection.banner_provider != self.primary_provider_id:
            self._won("banner_image", selection.banner_provider)


class DataAggregator:
    """Merges a primary provider record with its matched providers' data.

    Args:
        settings: Per-call timeout, concurrency and pagination settings
        priority: Provider priority lists
        statistics: Optional statistics collector
    """

    def __init__(
        self,
        settings: AggregationSettings | None = None,
        priority: ProviderPriorityConfig | None = None,
        statistics: StatisticsCollector | None = None,
    ) -> None:
        self.settings = settings or AggregationSettings()
        self.priority = priority or ProviderPriorityConfig.from_settings(PrioritySettings())
        self.statistics = statistics
        self.guard = ProviderCallGuard(
            timeout=self.settings.provider_timeout,
            max_concurrency=self.settings.max_concurrency,
            statistics=statistics,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        statistics: StatisticsCollector | None = None,
    ) -> DataAggregator:
        return cls(
            settings=settings.aggregation,
            priority=ProviderPriorityConfig.from_settings(settings.priority),
            statistics=statistics,
        )

    @staticmethod
    def _primary_provider_id(primary: MediaDetails, primary_provider_id: str | None) -> str:
        provider_id = primary_provider_id or primary.source_id
        if not provider_id:
            raise create_validation_error(
                "Primary record has no source provider id",
                field="source_id",
                operation="aggregate",
            )
        return provider_id

    def _ordered_by_confidence(self, matches: Mapping[str, ProviderMatch]) -> list[str]:
        # equal confidences follow the metadata priority, then the supplied order
        ranked = self.priority.sort_providers_by_priority(matches, DataType.ANIME_METADATA)
        return sorted(ranked, key=lambda provider_id: -matches[provider_id].confidence)

    async def aggregate_media_details(
        self,
        primary_details: MediaDetails | Mapping[str, Any],
        matches: Mapping[str, ProviderMatch],
        details_fetcher: DetailsFetcher,
        *,
        primary_provider_id: str | None = None,
    ) -> AggregatedMediaDetails:
        """Merge the primary details with every matched provider's details.

        Args:
            primary_details: Primary provider's record
            matches: Match set from ``CrossProviderMatcher.find_matches``
            details_fetcher: ``(media_id, provider_id) -> details``
            primary_provider_id: Defaults to ``primary_details.source_id``

        Returns:
            The merged record. A failed provider fetch is replaced by an
            empty stub and never fails the aggregation.
        """
        start = time.perf_counter()
        primary = RecordConverter.to_record(primary_details, MediaDetails)
        primary_id = self._primary_provider_id(primary, primary_provider_id)
        merger = _DetailsMerger(
            primary, primary_id, self.priority.priority_for(DataType.CHARACTER)
        )
        merger.result.match_confidences = {
            provider_id: match.confidence for provider_id, match in matches.items()
        }

        outcomes = await self.guard.run_all(
            {
                provider_id: _bind(details_fetcher, match.matched_media_id, provider_id)
                for provider_id, match in matches.items()
            },
            operation="fetch_details",
        )

        fetched: dict[str, MediaDetails] = {}
        for provider_id, outcome in outcomes.items():
            match = matches[provider_id]
            stub = MediaDetails.stub(
                match.matched_media_id, match.matched_title, primary.media_type, provider_id
            )
            if not outcome.ok or outcome.value is None:
                fetched[provider_id] = stub
                continue
            try:
                fetched[provider_id] = RecordConverter.to_record(
                    outcome.value,
                    MediaDetails,
                    lenient=True,
                    defaults={
                        "id": match.matched_media_id,
                        "title": match.matched_title,
                        "media_type": primary.media_type,
                    },
                )
            except TypeCoercionError as e:
                logger.warning(
                    "Discarding malformed details from %s: %s", provider_id, e.message
                )
                fetched[provider_id] = stub

        for provider_id in self._ordered_by_confidence(matches):
            merger.merge(fetched[provider_id], provider_id)

        merger.apply_images(self.merge_images(primary, fetched, primary_provider_id=primary_id))

        result = merger.result
        result.contributing_providers = [primary_id] + [
            provider_id
            for provider_id in matches
            if provider_id in merger.contributors and provider_id != primary_id
        ]

        if self.statistics is not None:
            self.statistics.record_aggregation()
        log_operation_success(
            logger,
            "aggregate_media_details",
            (time.perf_counter() - start) * 1000,
            result_info={
                "contributors": result.contributing_providers,
                "attributed_fields": sorted(result.data_source_attribution),
            },
        )
        logger.info(
            "Aggregated '%s' from %d providers",
            result.title,
            len(result.contributing_providers),
        )
        return result

    def merge_images(
        self,
        primary: MediaDetails,
        alternatives: Mapping[str, MediaDetails],
        *,
        primary_provider_id: str | None = None,
    ) -> ImageSelection:
        """Pick cover and banner independently.

        The primary's image wins when present, then providers in image
        quality priority order, then any remaining provider.
        """
        primary_id = primary_provider_id or primary.source_id
        ordered = self.priority.sort_providers_by_priority(
            list(alternatives), DataType.IMAGE_QUALITY
        )

        def pick(attribute: str) -> tuple[str | None, str | None]:
            value = getattr(primary, attribute)
            if value:
                return value, primary_id
            for provider_id in ordered:
                value = getattr(alternatives[provider_id], attribute)
                if value:
                    return value, provider_id
            return None, None

        cover, cover_provider = pick("cover_image")
        banner, banner_provider = pick("banner_image")
        return ImageSelection(
            cover_image=cover or "",
            cover_provider=cover_provider,
            banner_image=banner,
            banner_provider=banner_provider,
        )

    async def _fetch_lists(
        self,
        primary_media: MediaDetails,
        primary_id: str,
        matches: Mapping[str, ProviderMatch],
        fetcher: Callable[[str, str], Any],
        record_cls: type[R],
        operation: str,
        *,
        include_primary: bool = True,
    ) -> dict[str, list[R]]:
        """Fetch one list per provider; only the primary's failure raises."""
        calls = {}
        if include_primary:
            calls[primary_id] = _bind(fetcher, primary_media.id, primary_id)
        for provider_id, match in matches.items():
            if provider_id != primary_id:
                calls[provider_id] = _bind(fetcher, match.matched_media_id, provider_id)

        outcomes = await self.guard.run_all(calls, operation=operation)

        results: dict[str, list[R]] = {}
        for provider_id, outcome in outcomes.items():
            is_primary = provider_id == primary_id and include_primary
            if not outcome.ok:
                if is_primary:
                    original = outcome.error.original_error if outcome.error else None
                    raise create_primary_provider_error(
                        primary_id, operation, original
                    ) from outcome.error
                results[provider_id] = []
                continue
            results[provider_id] = self._convert_list(
                provider_id, outcome.value or [], record_cls
            )
        return results

    @staticmethod
    def _convert_list(provider_id: str, items: Sequence[Any], record_cls: type[R]) -> list[R]:
        converted: list[R] = []
        for item in items:
            try:
                converted.append(RecordConverter.to_record(item, record_cls, lenient=True))
            except TypeCoercionError as e:
                logger.debug(
                    "Skipping malformed %s from %s: %s",
                    record_cls.__name__,
                    provider_id,
                    e.message,
                )
        return converted

    async def aggregate_episodes(
        self,
        primary_media: MediaDetails | Mapping[str, Any],
        matches: Mapping[str, ProviderMatch],
        episode_fetcher: EpisodeFetcher,
        *,
        primary_provider_id: str | None = None,
        include_primary: bool = True,
    ) -> list[Episode]:
        """Merge episode lists from the primary and every matched provider.

        Contribution order is the primary, then matched providers in the
        supplied order. When the primary returns no episodes, matched
        providers are taken in episode thumbnail priority order instead.

        Raises:
            PrimaryProviderError: If the primary provider's own fetch fails
        """
        start = time.perf_counter()
        primary = RecordConverter.to_record(primary_media, MediaDetails)
        primary_id = self._primary_provider_id(primary, primary_provider_id)

        lists = await self._fetch_lists(
            primary,
            primary_id,
            matches,
            episode_fetcher,
            Episode,
            "fetch_episodes",
            include_primary=include_primary,
        )

        order = [provider_id for provider_id in matches if provider_id in lists]
        if not lists.get(primary_id):
            order = self.priority.sort_providers_by_priority(order, DataType.EPISODE_THUMBNAIL)
        if primary_id in lists:
            order.insert(0, primary_id)

        merged = merge_episode_lists(
            {provider_id: lists[provider_id] for provider_id in dict.fromkeys(order)},
            cover_images=[primary.cover_image],
        )

        log_operation_success(
            logger,
            "aggregate_episodes",
            (time.perf_counter() - start) * 1000,
            result_info={
                "episodes": len(merged),
                "per_provider": {provider_id: len(items) for provider_id, items in lists.items()},
            },
        )
        return merged

    async def aggregate_chapters(
        self,
        primary_media: MediaDetails | Mapping[str, Any],
        matches: Mapping[str, ProviderMatch],
        chapter_fetcher: ChapterFetcher,
        *,
        primary_provider_id: str | None = None,
    ) -> list[Chapter]:
        """Merge chapter lists, keeping the primary's numbering.

        Raises:
            PrimaryProviderError: If the primary provider's own fetch fails
        """
        start = time.perf_counter()
        primary = RecordConverter.to_record(primary_media, MediaDetails)
        primary_id = self._primary_provider_id(primary, primary_provider_id)

        lists = await self._fetch_lists(
            primary,
            primary_id,
            matches,
            chapter_fetcher,
            Chapter,
            "fetch_chapters",
        )
        merged = merge_chapter_lists(primary_id, lists, self.priority)

        log_operation_success(
            logger,
            "aggregate_chapters",
            (time.perf_counter() - start) * 1000,
            result_info={"chapters": len(merged)},
        )
        return merged

    def paginate(self, episodes: Sequence[Episode]) -> EpisodePagination:
        """Season or fixed-page grouping using the configured thresholds."""
        return paginate_episodes(
            episodes,
            page_size=self.settings.page_size,
            season_threshold=self.settings.season_completeness_threshold,
        )


def _bind(fetcher: Callable[[str, str], Any], media_id: str, provider_id: str) -> Any:
    async def call() -> Any:
        return await fetcher(media_id, provider_id)

    return call


__all__ = ["DataAggregator", "ImageSelection"]
