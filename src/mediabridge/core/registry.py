"""Capability-tagged content provider registry.

Providers are described by the media types they support natively and a
retyping table for related types (e.g. a movie/TV provider is searched for
anime as "tvShow"). The matcher asks the registry which providers to fan
out to and how to type each query, so adding a provider never touches
matcher or aggregator code.

The callback ports consumed by the core are also defined here:

- ``SearchFunction(query, provider_id, media_type) -> candidates``
- ``DetailsFetcher(media_id, provider_id) -> details record``
- ``EpisodeFetcher(media_id, provider_id) -> episode records``
- ``ChapterFetcher(media_id, provider_id) -> chapter records``
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from mediabridge.core.models import MediaType
from mediabridge.shared.constants import ProviderIds
from mediabridge.shared.errors import ApplicationError, ErrorCode, ErrorContext

logger = logging.getLogger(__name__)

SearchFunction = Callable[[str, str, MediaType], Awaitable[Sequence[Any]]]
DetailsFetcher = Callable[[str, str], Awaitable[Any]]
EpisodeFetcher = Callable[[str, str], Awaitable[Sequence[Any]]]
ChapterFetcher = Callable[[str, str], Awaitable[Sequence[Any]]]


@runtime_checkable
class ContentProvider(Protocol):
    """A concrete provider implementation.

    Returned records may be typed records or plain mappings; the core
    converts mappings at the boundary.
    """

    provider_id: str
    supported_types: frozenset[MediaType]

    async def search(self, query: str, media_type: MediaType) -> Sequence[Any]: ...

    async def get_details(self, media_id: str) -> Any: ...

    async def get_episodes(self, media_id: str) -> Sequence[Any]: ...

    async def get_chapters(self, media_id: str) -> Sequence[Any]: ...


@dataclass(frozen=True)
class ProviderDescriptor:
    """Declared capabilities of one provider.

    Attributes:
        provider_id: Lowercase provider identifier
        supported_types: Media types the provider serves natively
        type_mapping: Related type -> the type to query this provider with
    """

    provider_id: str
    supported_types: frozenset[MediaType]
    type_mapping: Mapping[MediaType, MediaType] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.provider_id or not self.provider_id.strip():
            raise ValueError("Provider id cannot be empty")
        object.__setattr__(self, "provider_id", self.provider_id.strip().lower())
        object.__setattr__(self, "supported_types", frozenset(self.supported_types))

        for source, target in self.type_mapping.items():
            if target not in self.supported_types:
                msg = (
                    f"Provider '{self.provider_id}' maps {source.value} to "
                    f"unsupported type {target.value}"
                )
                raise ValueError(msg)

    def query_type(self, media_type: MediaType) -> MediaType | None:
        """Type to search this provider with, or None if it cannot serve it."""
        if media_type in self.supported_types:
            return media_type
        return self.type_mapping.get(media_type)

    def supports(self, media_type: MediaType) -> bool:
        return self.query_type(media_type) is not None


_VIDEO_TO_ANIME = {
    MediaType.TV_SHOW: MediaType.ANIME,
    MediaType.CARTOON: MediaType.ANIME,
    MediaType.MOVIE: MediaType.ANIME,
    MediaType.NSFW: MediaType.ANIME,
}

DEFAULT_DESCRIPTORS: tuple[ProviderDescriptor, ...] = (
    ProviderDescriptor(
        ProviderIds.TMDB,
        frozenset(
            {
                MediaType.MOVIE,
                MediaType.TV_SHOW,
                MediaType.CARTOON,
                MediaType.DOCUMENTARY,
            }
        ),
        {MediaType.ANIME: MediaType.TV_SHOW},
    ),
    ProviderDescriptor(
        ProviderIds.ANILIST,
        frozenset({MediaType.ANIME, MediaType.MANGA, MediaType.NOVEL}),
        _VIDEO_TO_ANIME,
    ),
    ProviderDescriptor(
        ProviderIds.JIKAN,
        frozenset({MediaType.ANIME, MediaType.MANGA, MediaType.NOVEL}),
        _VIDEO_TO_ANIME,
    ),
    ProviderDescriptor(
        ProviderIds.KITSU,
        frozenset({MediaType.ANIME, MediaType.MANGA, MediaType.NOVEL}),
        _VIDEO_TO_ANIME,
    ),
    ProviderDescriptor(
        ProviderIds.SIMKL,
        frozenset({MediaType.ANIME, MediaType.MOVIE, MediaType.TV_SHOW}),
        {MediaType.CARTOON: MediaType.TV_SHOW},
    ),
)


def _provider_not_registered(provider_id: str, operation: str) -> ApplicationError:
    return ApplicationError(
        ErrorCode.PROVIDER_NOT_REGISTERED,
        f"Provider '{provider_id}' is not registered",
        ErrorContext(operation=operation, provider_id=provider_id),
    )


class ProviderRegistry:
    """Registry of provider descriptors and optional implementations.

    Registration order is the fan-out order.

    Example:
        >>> registry = ProviderRegistry.default()
        >>> registry.providers_for(MediaType.ANIME, exclude={"anilist"})
        ['tmdb', 'jikan', 'kitsu', 'simkl']
        >>> registry.query_type("tmdb", MediaType.ANIME)
        <MediaType.TV_SHOW: 'tvShow'>
    """

    def __init__(self, descriptors: Iterable[ProviderDescriptor] = ()) -> None:
        self._descriptors: dict[str, ProviderDescriptor] = {}
        self._providers: dict[str, ContentProvider] = {}
        for descriptor in descriptors:
            self.register(descriptor)

    @classmethod
    def default(cls) -> ProviderRegistry:
        """Registry with the built-in tracker/TMDB descriptors."""
        return cls(DEFAULT_DESCRIPTORS)

    def register(
        self,
        descriptor: ProviderDescriptor,
        provider: ContentProvider | None = None,
    ) -> None:
        """Add or replace a provider descriptor (and implementation)."""
        if descriptor.provider_id in self._descriptors:
            logger.debug("Replacing provider descriptor: %s", descriptor.provider_id)
        self._descriptors[descriptor.provider_id] = descriptor
        if provider is not None:
            self._providers[descriptor.provider_id] = provider

    def register_provider(
        self,
        provider: ContentProvider,
        type_mapping: Mapping[MediaType, MediaType] | None = None,
    ) -> ProviderDescriptor:
        """Register an implementation, deriving its descriptor.

        An existing descriptor's type mapping is kept unless one is given.
        """
        provider_id = provider.provider_id.strip().lower()
        existing = self._descriptors.get(provider_id)
        if type_mapping is None:
            type_mapping = existing.type_mapping if existing else {}
        # mappings onto types this implementation does not serve are dropped
        usable_mapping = {
            source: target
            for source, target in type_mapping.items()
            if target in provider.supported_types
        }
        descriptor = ProviderDescriptor(
            provider_id, provider.supported_types, usable_mapping
        )
        self.register(descriptor, provider)
        return descriptor

    def unregister(self, provider_id: str) -> None:
        key = provider_id.strip().lower()
        self._descriptors.pop(key, None)
        self._providers.pop(key, None)

    @property
    def provider_ids(self) -> list[str]:
        return list(self._descriptors)

    def __contains__(self, provider_id: object) -> bool:
        return isinstance(provider_id, str) and provider_id.strip().lower() in self._descriptors

    def get(self, provider_id: str) -> ProviderDescriptor:
        """Descriptor for ``provider_id``.

        Raises:
            ApplicationError: If the provider is not registered
        """
        try:
            return self._descriptors[provider_id.strip().lower()]
        except KeyError:
            raise _provider_not_registered(provider_id, "get_descriptor") from None

    def providers_for(
        self,
        media_type: MediaType,
        exclude: Iterable[str] | None = None,
    ) -> list[str]:
        """Provider ids able to serve ``media_type``, minus ``exclude``."""
        excluded = {provider_id.strip().lower() for provider_id in exclude or ()}
        return [
            provider_id
            for provider_id, descriptor in self._descriptors.items()
            if provider_id not in excluded and descriptor.supports(media_type)
        ]

    def query_type(self, provider_id: str, media_type: MediaType) -> MediaType:
        """Media type to query ``provider_id`` with.

        Unknown providers and unmapped types are queried unchanged.
        """
        descriptor = self._descriptors.get(provider_id.strip().lower())
        if descriptor is None:
            return media_type
        return descriptor.query_type(media_type) or media_type

    def provider(self, provider_id: str) -> ContentProvider:
        """Registered implementation for ``provider_id``.

        Raises:
            ApplicationError: If no implementation is registered
        """
        try:
            return self._providers[provider_id.strip().lower()]
        except KeyError:
            raise _provider_not_registered(provider_id, "get_provider") from None

    def search_function(self) -> SearchFunction:
        async def search(query: str, provider_id: str, media_type: MediaType) -> Sequence[Any]:
            return await self.provider(provider_id).search(query, media_type)

        return search

    def details_fetcher(self) -> DetailsFetcher:
        async def fetch_details(media_id: str, provider_id: str) -> Any:
            return await self.provider(provider_id).get_details(media_id)

        return fetch_details

    def episode_fetcher(self) -> EpisodeFetcher:
        async def fetch_episodes(media_id: str, provider_id: str) -> Sequence[Any]:
            return await self.provider(provider_id).get_episodes(media_id)

        return fetch_episodes

    def chapter_fetcher(self) -> ChapterFetcher:
        async def fetch_chapters(media_id: str, provider_id: str) -> Sequence[Any]:
            return await self.provider(provider_id).get_chapters(media_id)

        return fetch_chapters
