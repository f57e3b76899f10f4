"""Tests for DataAggregator."""

from __future__ import annotations

from typing import Any

import pytest

from mediabridge.config.models import AggregationSettings, Settings
from mediabridge.core.aggregation import DataAggregator
from mediabridge.core.models import (
    AggregatedMediaDetails,
    Episode,
    MediaDetails,
    MediaType,
    PaginationMode,
    ProviderMatch,
)
from mediabridge.shared.errors import DomainError, ErrorCode, PrimaryProviderError


def _match(provider_id: str, media_id: str, confidence: float = 1.0) -> ProviderMatch:
    return ProviderMatch(
        provider_id=provider_id,
        matched_media_id=media_id,
        confidence=confidence,
        matched_title="Attack on Titan",
    )


@pytest.fixture
def aggregator(statistics) -> DataAggregator:
    return DataAggregator(statistics=statistics)


@pytest.fixture
def primary() -> dict[str, Any]:
    return {
        "id": 1429,
        "title": "Attack on Titan",
        "media_type": "tvShow",
        "genres": ["Action", "Drama"],
        "description": "Titans.",
        "rating": 8.5,
        "episodes": 25,
        "source_id": "tmdb",
        "characters": [{"name": "Eren Yeager"}],
    }


@pytest.fixture
def anilist_details() -> dict[str, Any]:
    return {
        "id": "16498",
        "title": "Shingeki no Kyojin",
        "media_type": "anime",
        "romaji_title": "Shingeki no Kyojin",
        "genres": ["action", "Fantasy"],
        "description": "Several hundred years ago, humans were nearly exterminated by Titans.",
        "average_score": 85,
        "episodes": 25,
        "cover_image": "https://anilist.example/cover/16498.jpg",
        "banner_image": "https://anilist.example/banner/16498.jpg",
        "characters": [
            {"name": "Eren Yeager", "image": "https://anilist.example/eren.jpg", "role": "MAIN"},
            {"name": "Mikasa Ackerman"},
        ],
        "recommendations": [{"id": "1", "title": "Vinland Saga", "rating": 80}],
    }


class TestAggregateMediaDetails:
    """Test cases for aggregate_media_details."""

    @pytest.mark.asyncio
    async def test_merges_matched_provider(
        self, aggregator: DataAggregator, primary, anilist_details, recording_fetcher
    ) -> None:
        fetcher = recording_fetcher({"anilist": anilist_details})
        matches = {"anilist": _match("anilist", "16498")}

        result = await aggregator.aggregate_media_details(primary, matches, fetcher)

        assert isinstance(result, AggregatedMediaDetails)
        assert result.id == "1429"
        assert result.title == "Attack on Titan"
        assert result.source_id == "tmdb"
        assert result.description == anilist_details["description"]
        assert result.average_score == 85
        assert result.rating == 8.5
        assert result.romaji_title == "Shingeki no Kyojin"
        assert result.cover_image == anilist_details["cover_image"]
        assert fetcher.calls == [("16498", "anilist")]

        assert result.data_source_attribution["description"] == "anilist"
        assert result.data_source_attribution["cover_image"] == "anilist"
        assert "rating" not in result.data_source_attribution
        # equal counts keep the primary value
        assert "episodes" not in result.data_source_attribution
        assert result.contributing_providers == ["tmdb", "anilist"]
        assert result.match_confidences == {"anilist": 1.0}

    @pytest.mark.asyncio
    async def test_genres_are_a_case_insensitive_superset(
        self, aggregator: DataAggregator, primary, anilist_details, recording_fetcher
    ) -> None:
        result = await aggregator.aggregate_media_details(
            primary,
            {"anilist": _match("anilist", "16498")},
            recording_fetcher({"anilist": anilist_details}),
        )

        assert result.genres == ["Action", "Drama", "Fantasy"]
        assert set(primary["genres"]) <= set(result.genres)

    @pytest.mark.asyncio
    async def test_people_and_recommendations(
        self, aggregator: DataAggregator, primary, anilist_details, recording_fetcher
    ) -> None:
        primary["recommendations"] = [{"id": "9", "title": "Vinland Saga", "rating": 70}]
        result = await aggregator.aggregate_media_details(
            primary,
            {"anilist": _match("anilist", "16498")},
            recording_fetcher({"anilist": anilist_details}),
        )

        names = [character.name for character in result.characters]
        assert names == ["Eren Yeager", "Mikasa Ackerman"]
        assert result.characters[0].role == "MAIN"
        assert len(result.recommendations) == 1
        assert result.recommendations[0].rating == 80

    @pytest.mark.asyncio
    async def test_failing_provider_becomes_stub(
        self, aggregator: DataAggregator, primary, anilist_details, recording_fetcher
    ) -> None:
        """Test that a raising provider never fails the aggregation."""
        fetcher = recording_fetcher(
            {"anilist": anilist_details, "kitsu": RuntimeError("kitsu exploded")}
        )
        matches = {
            "anilist": _match("anilist", "16498"),
            "kitsu": _match("kitsu", "7442", 0.9),
        }

        result = await aggregator.aggregate_media_details(primary, matches, fetcher)

        assert result.contributing_providers == ["tmdb", "anilist"]
        assert result.match_confidences == {"anilist": 1.0, "kitsu": 0.9}
        assert "kitsu" not in result.data_source_attribution.values()

    @pytest.mark.asyncio
    async def test_invalid_optional_fields_keep_the_record(
        self, aggregator: DataAggregator, primary, anilist_details, recording_fetcher
    ) -> None:
        """Test that bad optional values are dropped instead of the whole record."""
        details = {**anilist_details, "rating": "N/A", "media_type": "TV"}
        del details["id"]
        fetcher = recording_fetcher({"anilist": details})

        result = await aggregator.aggregate_media_details(
            primary, {"anilist": _match("anilist", "16498")}, fetcher
        )

        assert result.contributing_providers == ["tmdb", "anilist"]
        assert result.description == anilist_details["description"]
        assert "Fantasy" in result.genres
        assert result.rating == 8.5

    @pytest.mark.asyncio
    async def test_higher_confidence_wins_ties(
        self, aggregator: DataAggregator, primary, recording_fetcher
    ) -> None:
        primary["description"] = None
        fetcher = recording_fetcher(
            {
                "jikan": {"id": "1", "title": "AoT", "media_type": "anime", "description": "AAAA"},
                "anilist": {"id": "2", "title": "AoT", "media_type": "anime", "description": "BBBB"},
            }
        )
        matches = {
            "jikan": _match("jikan", "1", 0.8),
            "anilist": _match("anilist", "2", 0.95),
        }

        result = await aggregator.aggregate_media_details(primary, matches, fetcher)

        assert result.description == "BBBB"
        assert result.data_source_attribution["description"] == "anilist"

    @pytest.mark.asyncio
    async def test_equal_confidence_follows_metadata_priority(
        self, aggregator: DataAggregator, primary, recording_fetcher
    ) -> None:
        fetcher = recording_fetcher(
            {
                "anilist": {"id": "2", "title": "AoT", "media_type": "anime", "english_title": "From AniList"},
                "jikan": {"id": "1", "title": "AoT", "media_type": "anime", "english_title": "From Jikan"},
            }
        )
        matches = {"anilist": _match("anilist", "2"), "jikan": _match("jikan", "1")}

        result = await aggregator.aggregate_media_details(primary, matches, fetcher)

        assert result.english_title == "From Jikan"
        assert result.data_source_attribution["english_title"] == "jikan"

    @pytest.mark.asyncio
    async def test_equal_characters_follow_character_priority(
        self, aggregator: DataAggregator, primary, recording_fetcher
    ) -> None:
        primary["characters"] = [{"name": "Eren Yeager", "role": "MAIN"}]
        fetcher = recording_fetcher(
            {
                "jikan": {
                    "id": "1",
                    "title": "AoT",
                    "media_type": "anime",
                    "characters": [
                        {"name": "Eren Yeager", "image": "https://jikan.example/eren.jpg"},
                        {"name": "Levi", "image": "https://jikan.example/levi.jpg"},
                    ],
                },
                "anilist": {
                    "id": "2",
                    "title": "AoT",
                    "media_type": "anime",
                    "characters": [{"name": "Levi", "image": "https://anilist.example/levi.jpg"}],
                },
            }
        )
        matches = {"jikan": _match("jikan", "1"), "anilist": _match("anilist", "2")}

        result = await aggregator.aggregate_media_details(primary, matches, fetcher)

        images = {character.name: character.image for character in result.characters}
        assert images == {"Eren Yeager": None, "Levi": "https://anilist.example/levi.jpg"}

    @pytest.mark.asyncio
    async def test_no_matches_returns_primary(
        self, aggregator: DataAggregator, primary, recording_fetcher, statistics
    ) -> None:
        result = await aggregator.aggregate_media_details(primary, {}, recording_fetcher({}))

        assert result.contributing_providers == ["tmdb"]
        assert result.data_source_attribution == {}
        assert result.genres == ["Action", "Drama"]
        assert statistics.metrics.aggregations == 1

    @pytest.mark.asyncio
    async def test_primary_without_source_id_is_rejected(
        self, aggregator: DataAggregator, primary, recording_fetcher
    ) -> None:
        del primary["source_id"]
        with pytest.raises(DomainError) as exc_info:
            await aggregator.aggregate_media_details(primary, {}, recording_fetcher({}))
        assert exc_info.value.code == ErrorCode.VALIDATION_ERROR

    def test_merge_images_prefers_primary_then_priority(self, aggregator: DataAggregator) -> None:
        primary = MediaDetails(
            id="1", title="AoT", media_type=MediaType.TV_SHOW, banner_image="https://tmdb/b.jpg"
        )
        alternatives = {
            "kitsu": MediaDetails(id="2", title="AoT", media_type=MediaType.ANIME, cover_image="https://kitsu/c.jpg"),
            "jikan": MediaDetails(id="3", title="AoT", media_type=MediaType.ANIME, cover_image="https://jikan/c.jpg"),
        }

        selection = aggregator.merge_images(primary, alternatives, primary_provider_id="tmdb")

        assert selection.cover_image == "https://jikan/c.jpg"
        assert selection.cover_provider == "jikan"
        assert selection.banner_image == "https://tmdb/b.jpg"
        assert selection.banner_provider == "tmdb"


class TestAggregateEpisodes:
    """Test cases for aggregate_episodes and aggregate_chapters."""

    @pytest.mark.asyncio
    async def test_episode_one_from_two_providers(
        self, aggregator: DataAggregator, primary, recording_fetcher
    ) -> None:
        fetcher = recording_fetcher(
            {
                "tmdb": [{"id": "t1", "number": 1, "title": "To You, 2000 Years Later"}],
                "anilist": [
                    {"id": "a1", "number": 1, "thumbnail": "https://anilist/e1.jpg"},
                    {"id": "a2", "number": 2},
                ],
            }
        )
        episodes = await aggregator.aggregate_episodes(
            primary, {"anilist": _match("anilist", "16498")}, fetcher
        )

        assert [episode.number for episode in episodes] == [1, 2]
        assert episodes[0].id == "t1"
        assert episodes[0].resolved_thumbnail == "https://anilist/e1.jpg"
        assert ("1429", "tmdb") in fetcher.calls

    @pytest.mark.asyncio
    async def test_empty_primary_uses_thumbnail_priority(
        self, aggregator: DataAggregator, primary, recording_fetcher
    ) -> None:
        fetcher = recording_fetcher(
            {
                "tmdb": [],
                "anilist": [{"id": "a1", "number": 1}],
                "jikan": [{"id": "j1", "number": 1}],
            }
        )
        matches = {"anilist": _match("anilist", "1"), "jikan": _match("jikan", "2")}

        episodes = await aggregator.aggregate_episodes(primary, matches, fetcher)

        assert [episode.id for episode in episodes] == ["j1"]

    @pytest.mark.asyncio
    async def test_alternate_failure_is_tolerated(
        self, aggregator: DataAggregator, primary, recording_fetcher
    ) -> None:
        fetcher = recording_fetcher(
            {"tmdb": [{"id": "t1", "number": 1}], "kitsu": RuntimeError("down")}
        )
        episodes = await aggregator.aggregate_episodes(
            primary, {"kitsu": _match("kitsu", "7442")}, fetcher
        )
        assert [episode.id for episode in episodes] == ["t1"]

    @pytest.mark.asyncio
    async def test_primary_failure_propagates(
        self, aggregator: DataAggregator, primary, recording_fetcher
    ) -> None:
        fetcher = recording_fetcher({"tmdb": RuntimeError("tmdb down"), "anilist": []})
        with pytest.raises(PrimaryProviderError) as exc_info:
            await aggregator.aggregate_episodes(
                primary, {"anilist": _match("anilist", "1")}, fetcher
            )
        assert exc_info.value.code == ErrorCode.PRIMARY_PROVIDER_FAILED

    @pytest.mark.asyncio
    async def test_exclude_primary_list(
        self, aggregator: DataAggregator, primary, recording_fetcher
    ) -> None:
        fetcher = recording_fetcher({"anilist": [{"id": "a1", "number": 1}]})
        episodes = await aggregator.aggregate_episodes(
            primary,
            {"anilist": _match("anilist", "1")},
            fetcher,
            include_primary=False,
        )
        assert [episode.id for episode in episodes] == ["a1"]
        assert all(provider_id != "tmdb" for _, provider_id in fetcher.calls)

    @pytest.mark.asyncio
    async def test_malformed_episodes_are_dropped(
        self, aggregator: DataAggregator, primary, recording_fetcher
    ) -> None:
        fetcher = recording_fetcher({"tmdb": [{"number": 1}, {"id": "t2", "number": 2}]})
        episodes = await aggregator.aggregate_episodes(primary, {}, fetcher)
        assert [episode.id for episode in episodes] == ["t2"]

    @pytest.mark.asyncio
    async def test_aggregate_chapters(self, aggregator: DataAggregator, recording_fetcher) -> None:
        manga = {"id": "30002", "title": "Berserk", "media_type": "manga", "source_id": "anilist"}
        fetcher = recording_fetcher(
            {
                "anilist": [{"id": "a1", "number": 1}],
                "kitsu": [{"id": "k1", "number": "1", "page_count": 48}],
            }
        )
        chapters = await aggregator.aggregate_chapters(
            manga, {"kitsu": _match("kitsu", "99")}, fetcher
        )
        assert [chapter.id for chapter in chapters] == ["a1"]
        assert chapters[0].page_count == 48

    def test_paginate_uses_settings(self) -> None:
        aggregator = DataAggregator.from_settings(
            Settings(aggregation=AggregationSettings(page_size=2))
        )
        pagination = aggregator.paginate([Episode(id=str(n), number=n) for n in range(1, 6)])

        assert pagination.mode is PaginationMode.PAGE
        assert len(pagination.pages) == 3


class TestFetcherCallbacks:
    """Test cases for injected fetcher callbacks."""

    @pytest.mark.asyncio
    async def test_episode_fetcher_receives_provider_local_ids(
        self, mocker, aggregator: DataAggregator, primary
    ) -> None:
        fetcher = mocker.AsyncMock(return_value=[{"id": "e1", "number": 1, "season_number": 1}])

        episodes = await aggregator.aggregate_episodes(
            primary, {"anilist": _match("anilist", "16498")}, fetcher
        )

        assert [episode.key for episode in episodes] == [(1, 1)]
        assert fetcher.await_count == 2
        fetcher.assert_any_await("1429", "tmdb")
        fetcher.assert_any_await("16498", "anilist")
