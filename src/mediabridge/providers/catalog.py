"""File-backed content providers.

A catalog is a JSON document describing one or more providers and the
media they serve::

    {
      "providers": {
        "tmdb": {
          "supported_types": ["movie", "tvShow"],
          "media": [
            {
              "id": "1429",
              "title": "Attack on Titan",
              "media_type": "tvShow",
              "episode_list": [{"id": "e1", "number": 1}],
              "chapter_list": []
            }
          ]
        }
      }
    }

Each media entry holds MediaDetails fields plus optional ``episode_list``
and ``chapter_list``. ``supported_types`` may be omitted for the built-in
provider ids.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path
from typing import Any

import orjson
from rapidfuzz import fuzz

from mediabridge.core.models import MediaType, year_from_date
from mediabridge.core.registry import DEFAULT_DESCRIPTORS, ProviderRegistry
from mediabridge.shared.errors import (
    DomainError,
    ErrorCode,
    ErrorContext,
    InfrastructureError,
)

logger = logging.getLogger(__name__)

_EPISODE_LIST_KEY = "episode_list"
_CHAPTER_LIST_KEY = "chapter_list"
_TITLE_KEYS = ("title", "english_title", "romaji_title", "native_title")

DEFAULT_SEARCH_CUTOFF = 60.0
DEFAULT_SEARCH_LIMIT = 10


class CatalogProvider:
    """ContentProvider serving media records held in memory.

    Args:
        provider_id: Provider identifier
        media: Media entries (MediaDetails fields plus episode/chapter lists)
        supported_types: Media types served; derived from the entries if omitted
        search_cutoff: Minimum rapidfuzz WRatio (0-100) for a search hit
    """

    def __init__(
        self,
        provider_id: str,
        media: Iterable[Mapping[str, Any]],
        supported_types: Iterable[MediaType | str] | None = None,
        search_cutoff: float = DEFAULT_SEARCH_CUTOFF,
    ) -> None:
        self.provider_id = provider_id.strip().lower()
        self._media: dict[str, dict[str, Any]] = {}
        for entry in media:
            if "id" not in entry:
                msg = f"Catalog entry for '{self.provider_id}' has no id: {entry!r}"
                raise ValueError(msg)
            self._media[str(entry["id"])] = dict(entry)

        if supported_types is None:
            supported_types = {
                entry["media_type"] for entry in self._media.values() if "media_type" in entry
            }
        self.supported_types = frozenset(MediaType(t) for t in supported_types)
        self.search_cutoff = search_cutoff

    def __len__(self) -> int:
        return len(self._media)

    def _entry(self, media_id: str) -> dict[str, Any]:
        try:
            return self._media[str(media_id)]
        except KeyError:
            raise DomainError(
                ErrorCode.MEDIA_NOT_FOUND,
                f"Media '{media_id}' not found on provider '{self.provider_id}'",
                ErrorContext(operation="catalog_lookup", provider_id=self.provider_id),
            ) from None

    async def search(self, query: str, media_type: MediaType) -> Sequence[Any]:
        """Entries of ``media_type`` whose titles resemble ``query``, best first."""
        scored: list[tuple[float, dict[str, Any]]] = []
        for entry in self._media.values():
            if entry.get("media_type") not in (None, media_type.value):
                continue
            titles = [entry[key] for key in _TITLE_KEYS if entry.get(key)]
            titles.extend(entry.get("synonyms", []))
            score = max((fuzz.WRatio(query, title) for title in titles), default=0.0)
            if score >= self.search_cutoff:
                scored.append((score, entry))

        scored.sort(key=lambda item: item[0], reverse=True)
        results = [self._candidate(entry) for _, entry in scored[:DEFAULT_SEARCH_LIMIT]]
        logger.debug(
            "Catalog %s search '%s' (%s): %d hits",
            self.provider_id,
            query,
            media_type.value,
            len(results),
        )
        return results

    @staticmethod
    def _candidate(entry: Mapping[str, Any]) -> dict[str, Any]:
        candidate = {
            key: entry[key]
            for key in ("id", *_TITLE_KEYS, "synonyms", "media_type", "cover_image")
            if key in entry
        }
        year = entry.get("season_year") or year_from_date(entry.get("start_date"))
        if year:
            candidate["release_year"] = int(year)
        return candidate

    async def get_details(self, media_id: str) -> Any:
        entry = self._entry(media_id)
        details = {
            key: value
            for key, value in entry.items()
            if key not in (_EPISODE_LIST_KEY, _CHAPTER_LIST_KEY, "synonyms")
        }
        details.setdefault("source_id", self.provider_id)
        return details

    async def get_episodes(self, media_id: str) -> Sequence[Any]:
        return list(self._entry(media_id).get(_EPISODE_LIST_KEY, []))

    async def get_chapters(self, media_id: str) -> Sequence[Any]:
        return list(self._entry(media_id).get(_CHAPTER_LIST_KEY, []))


def load_catalog(path: str | Path) -> dict[str, CatalogProvider]:
    """Read a catalog file into providers keyed by id.

    Raises:
        InfrastructureError: If the file cannot be read or parsed
    """
    path = Path(path)
    context = ErrorContext(operation="load_catalog", additional_data={"path": str(path)})
    try:
        raw = orjson.loads(path.read_bytes())
    except (OSError, orjson.JSONDecodeError) as e:
        raise InfrastructureError(
            ErrorCode.CATALOG_READ_FAILED,
            f"Failed to read catalog {path}: {e}",
            context,
            original_error=e,
        ) from e

    default_types = {
        descriptor.provider_id: descriptor.supported_types
        for descriptor in DEFAULT_DESCRIPTORS
    }
    providers: dict[str, CatalogProvider] = {}
    try:
        for provider_id, spec in raw["providers"].items():
            provider_id = provider_id.strip().lower()
            supported = spec.get("supported_types") or default_types.get(provider_id)
            providers[provider_id] = CatalogProvider(
                provider_id, spec.get("media", []), supported
            )
    except (KeyError, TypeError, AttributeError, ValueError) as e:
        raise InfrastructureError(
            ErrorCode.CATALOG_READ_FAILED,
            f"Invalid catalog structure in {path}: {e}",
            context,
            original_error=e,
        ) from e

    logger.info(
        "Loaded catalog %s: %s",
        path,
        ", ".join(f"{pid} ({len(p)} media)" for pid, p in providers.items()),
    )
    return providers


def build_registry(
    providers: Mapping[str, CatalogProvider],
    base: ProviderRegistry | None = None,
) -> ProviderRegistry:
    """Registry holding only the catalog's providers.

    Built-in type mappings are kept for providers the base registry knows.
    """
    base = base or ProviderRegistry.default()
    registry = ProviderRegistry()
    for provider_id, provider in providers.items():
        mapping = base.get(provider_id).type_mapping if provider_id in base else None
        registry.register_provider(provider, mapping)
    return registry
