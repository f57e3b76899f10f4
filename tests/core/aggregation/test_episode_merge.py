"""Tests for episode and chapter list reconciliation."""

from __future__ import annotations

from mediabridge.core.aggregation.episodes import (
    chapter_list_score,
    is_fallback_cover,
    merge_chapter_lists,
    merge_episode_lists,
    normalize_image_url,
)
from mediabridge.core.aggregation.priority import ProviderPriorityConfig
from mediabridge.core.models import Chapter, Episode, EpisodeData

COVER = "https://img.example/cover/123_large.jpg"


class TestImageUrls:
    """Test cases for fallback cover detection."""

    def test_normalize_image_url(self) -> None:
        assert (
            normalize_image_url("https://IMG.example/cover/123-medium.PNG?v=2")
            == "https://img.example/cover/123"
        )

    def test_size_variant_of_cover_is_fallback(self) -> None:
        assert is_fallback_cover("https://img.example/cover/123_small.jpg?x=1", [COVER])

    def test_distinct_image_is_not_fallback(self) -> None:
        assert not is_fallback_cover("https://img.example/ep/1.jpg", [COVER])
        assert not is_fallback_cover(None, [COVER])
        assert not is_fallback_cover("https://img.example/ep/1.jpg", [None, ""])


class TestMergeEpisodeLists:
    """Test cases for merge_episode_lists."""

    def test_two_providers_same_episode(self) -> None:
        """Test that episode 1 from two providers merges into one record."""
        merged = merge_episode_lists(
            {
                "tmdb": [Episode(id="t1", number=1, title="To You", thumbnail="https://t/1.jpg")],
                "anilist": [
                    Episode(
                        id="a1",
                        number=1,
                        thumbnail="https://a/1.jpg",
                        description="Eren sees the Titans.",
                    )
                ],
            }
        )

        assert len(merged) == 1
        episode = merged[0]
        assert episode.id == "t1"
        assert episode.thumbnail == "https://t/1.jpg"
        assert episode.alternative_data == {
            "anilist": EpisodeData(description="Eren sees the Titans.")
        }

    def test_keys_are_unique_and_sorted(self) -> None:
        merged = merge_episode_lists(
            {
                "tmdb": [
                    Episode(id="s2e1", number=1, season_number=2),
                    Episode(id="s1e2", number=2, season_number=1),
                    Episode(id="s1e1", number=1, season_number=1),
                ],
                "jikan": [
                    Episode(id="j1", number=1, season_number=1),
                    Episode(id="j3", number=3, season_number=1),
                ],
            }
        )

        keys = [episode.key for episode in merged]
        assert keys == [(1, 1), (1, 2), (1, 3), (2, 1)]
        assert len(keys) == len(set(keys))
        assert merged[2].id == "j3"

    def test_fallback_thumbnail_is_supplemented(self) -> None:
        merged = merge_episode_lists(
            {
                "tmdb": [Episode(id="t1", number=1, thumbnail=COVER.replace("_large", "_small"))],
                "kitsu": [Episode(id="k1", number=1, thumbnail="https://k/1.jpg")],
            },
            cover_images=[COVER],
        )

        episode = merged[0]
        assert episode.alternative_data["kitsu"].thumbnail == "https://k/1.jpg"
        assert episode.resolved_thumbnail == episode.thumbnail

    def test_missing_thumbnail_resolved_from_side_table(self) -> None:
        merged = merge_episode_lists(
            {
                "tmdb": [Episode(id="t1", number=1)],
                "kitsu": [Episode(id="k1", number=1, thumbnail="https://k/1.jpg")],
            }
        )
        assert merged[0].resolved_thumbnail == "https://k/1.jpg"

    def test_nothing_to_add_leaves_side_table_empty(self) -> None:
        merged = merge_episode_lists(
            {
                "tmdb": [Episode(id="t1", number=1, description="Full", air_date="2013-04-07")],
                "kitsu": [Episode(id="k1", number=1, description="Other", air_date="2013-04-06")],
            }
        )
        assert merged[0].alternative_data == {}

    def test_episodes_without_number_are_skipped(self) -> None:
        merged = merge_episode_lists({"tmdb": [Episode(id="special")]})
        assert merged == []

    def test_inputs_are_not_mutated(self) -> None:
        original = Episode(id="t1", number=1)
        merge_episode_lists(
            {"tmdb": [original], "kitsu": [Episode(id="k1", number=1, description="x")]}
        )
        assert original.alternative_data == {}


class TestMergeChapterLists:
    """Test cases for merge_chapter_lists."""

    def test_primary_numbering_kept_and_gaps_filled(self) -> None:
        merged = merge_chapter_lists(
            "anilist",
            {
                "anilist": [Chapter(id="a1", number=1), Chapter(id="a2", number=2)],
                "kitsu": [
                    Chapter(id="k1", number=1, release_date="2009-09-09", page_count=50),
                    Chapter(id="k2", number=2, title="That Day"),
                    Chapter(id="k3", number=3),
                ],
            },
        )

        assert [chapter.id for chapter in merged] == ["a1", "a2"]
        assert merged[0].release_date == "2009-09-09"
        assert merged[0].page_count == 50
        assert merged[1].title == "That Day"

    def test_primary_values_win(self) -> None:
        merged = merge_chapter_lists(
            "anilist",
            {
                "anilist": [Chapter(id="a1", number=1, release_date="2009-10-01")],
                "kitsu": [Chapter(id="k1", number=1, release_date="2009-09-09")],
            },
        )
        assert merged[0].release_date == "2009-10-01"

    def test_empty_primary_uses_most_complete_list(self) -> None:
        merged = merge_chapter_lists(
            "anilist",
            {
                "anilist": [],
                "kitsu": [Chapter(id="k1", number=1)],
                "jikan": [
                    Chapter(id="j1", number=1, release_date="2009-09-09"),
                    Chapter(id="j2", number=2),
                ],
            },
        )
        assert [chapter.id for chapter in merged] == ["j1", "j2"]

    def test_ties_broken_by_manga_priority(self) -> None:
        chapters = {
            "anilist": [],
            "jikan": [Chapter(id="j1", number=1)],
            "kitsu": [Chapter(id="k1", number=1)],
        }
        merged = merge_chapter_lists("anilist", chapters, ProviderPriorityConfig())
        assert merged[0].id == "k1"

    def test_no_chapters_anywhere(self) -> None:
        assert merge_chapter_lists("anilist", {"anilist": [], "kitsu": []}) == []

    def test_chapter_list_score(self) -> None:
        chapters = [
            Chapter(id="1", number=1, release_date="2020-01-01", page_count=20),
            Chapter(id="2", number=2),
        ]
        assert chapter_list_score(chapters) == 2 + 0.5 + 0.3
