"""Tests for the file-backed catalog provider."""

from __future__ import annotations

from pathlib import Path

import orjson
import pytest

from mediabridge.core.models import MediaType
from mediabridge.providers import CatalogProvider, build_registry, load_catalog
from mediabridge.shared.errors import DomainError, ErrorCode, InfrastructureError

ANILIST_MEDIA = [
    {
        "id": 16498,
        "title": "Attack on Titan",
        "romaji_title": "Shingeki no Kyojin",
        "media_type": "anime",
        "season_year": 2013,
        "synonyms": ["AoT"],
        "episode_list": [{"id": "a1", "number": 1}],
    },
    {
        "id": "53390",
        "title": "Attack on Titan",
        "media_type": "manga",
        "start_date": "2009-09-09",
        "chapter_list": [{"id": "c1", "number": 1}],
    },
    {"id": "1", "title": "Cowboy Bebop", "media_type": "anime"},
]


@pytest.fixture
def anilist() -> CatalogProvider:
    return CatalogProvider("AniList", ANILIST_MEDIA)


class TestCatalogProvider:
    """Test cases for CatalogProvider."""

    def test_derived_supported_types(self, anilist: CatalogProvider) -> None:
        assert anilist.provider_id == "anilist"
        assert anilist.supported_types == frozenset({MediaType.ANIME, MediaType.MANGA})
        assert len(anilist) == 3

    def test_entry_without_id(self) -> None:
        with pytest.raises(ValueError):
            CatalogProvider("kitsu", [{"title": "No id"}])

    @pytest.mark.asyncio
    async def test_search_filters_by_type(self, anilist: CatalogProvider) -> None:
        results = await anilist.search("Shingeki no Kyojin", MediaType.ANIME)

        assert [result["id"] for result in results] == [16498]
        assert results[0]["release_year"] == 2013
        assert "episode_list" not in results[0]

    @pytest.mark.asyncio
    async def test_search_release_year_from_start_date(self, anilist: CatalogProvider) -> None:
        results = await anilist.search("Attack on Titan", MediaType.MANGA)
        assert results[0]["release_year"] == 2009

    @pytest.mark.asyncio
    async def test_search_without_hits(self, anilist: CatalogProvider) -> None:
        assert await anilist.search("zzzzqqqq", MediaType.ANIME) == []

    @pytest.mark.asyncio
    async def test_get_details(self, anilist: CatalogProvider) -> None:
        details = await anilist.get_details("16498")

        assert details["source_id"] == "anilist"
        assert "episode_list" not in details
        assert "synonyms" not in details

    @pytest.mark.asyncio
    async def test_lists(self, anilist: CatalogProvider) -> None:
        assert await anilist.get_episodes("16498") == [{"id": "a1", "number": 1}]
        assert await anilist.get_chapters("16498") == []
        assert await anilist.get_chapters("53390") == [{"id": "c1", "number": 1}]

    @pytest.mark.asyncio
    async def test_unknown_media(self, anilist: CatalogProvider) -> None:
        with pytest.raises(DomainError) as exc_info:
            await anilist.get_details("missing")
        assert exc_info.value.code == ErrorCode.MEDIA_NOT_FOUND
        assert exc_info.value.context.provider_id == "anilist"


class TestLoadCatalog:
    """Test cases for load_catalog and build_registry."""

    def test_load_and_register(self, tmp_path: Path) -> None:
        path = tmp_path / "catalog.json"
        path.write_bytes(
            orjson.dumps(
                {
                    "providers": {
                        "TMDB": {
                            "media": [{"id": "1429", "title": "Attack on Titan", "media_type": "tvShow"}]
                        },
                        "anilist": {"media": ANILIST_MEDIA},
                    }
                }
            )
        )

        providers = load_catalog(path)
        registry = build_registry(providers)

        assert sorted(providers) == ["anilist", "tmdb"]
        # built-in supported types are used when the catalog omits them
        assert MediaType.MOVIE in providers["tmdb"].supported_types
        assert registry.provider_ids == ["tmdb", "anilist"]
        assert registry.query_type("anilist", MediaType.TV_SHOW) is MediaType.ANIME

    @pytest.mark.parametrize(
        "content",
        [b"not json", b'{"media": []}', b'{"providers": {"kitsu": {"media": [{"title": "x"}]}}}'],
    )
    def test_invalid_catalog(self, tmp_path: Path, content: bytes) -> None:
        path = tmp_path / "catalog.json"
        path.write_bytes(content)

        with pytest.raises(InfrastructureError) as exc_info:
            load_catalog(path)
        assert exc_info.value.code == ErrorCode.CATALOG_READ_FAILED

    def test_missing_catalog(self, tmp_path: Path) -> None:
        with pytest.raises(InfrastructureError):
            load_catalog(tmp_path / "absent.json")
