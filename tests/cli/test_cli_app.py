"""Tests for the Typer CLI application."""

from __future__ import annotations

from pathlib import Path

import orjson
import pytest
from typer.testing import CliRunner

from mediabridge import __version__
from mediabridge.cli import app

runner = CliRunner()

CATALOG = {
    "providers": {
        "tmdb": {
            "media": [
                {
                    "id": "1429",
                    "title": "Attack on Titan",
                    "media_type": "tvShow",
                    "start_date": "2013-04-07",
                    "genres": ["Drama"],
                    "episode_list": [
                        {"id": "t1", "number": 1, "season_number": 1, "title": "To You, in 2000 Years"},
                        {"id": "t2", "number": 2, "season_number": 1},
                    ],
                }
            ]
        },
        "anilist": {
            "media": [
                {
                    "id": 16498,
                    "title": "Attack on Titan",
                    "romaji_title": "Shingeki no Kyojin",
                    "media_type": "anime",
                    "season_year": 2013,
                    "genres": ["Action", "Drama"],
                },
                {
                    "id": 53390,
                    "title": "Attack on Titan",
                    "media_type": "manga",
                    "start_date": "2009-09-09",
                    "chapter_list": [{"id": "a-c1", "number": 1, "title": "To You, 2,000 Years From Now"}],
                },
            ]
        },
        "kitsu": {
            "media": [
                {
                    "id": "14916",
                    "title": "Attack on Titan",
                    "media_type": "manga",
                    "start_date": "2009-09-09",
                    "chapter_list": [{"id": "k-c1", "number": 1}],
                }
            ]
        },
    }
}


@pytest.fixture
def catalog_file(tmp_path: Path) -> Path:
    path = tmp_path / "catalog.json"
    path.write_bytes(orjson.dumps(CATALOG))
    return path


def _invoke(*args: str):
    return runner.invoke(app, ["--log-level", "ERROR", *args])


def _envelope(result) -> dict:
    return orjson.loads(result.stdout.strip().splitlines()[-1])


def _json(result) -> dict:
    assert result.exit_code == 0, result.output
    payload = _envelope(result)
    assert payload["success"] is True
    return payload["data"]


class TestMainCallback:
    """Test cases for global options."""

    def test_version(self) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_missing_config_file(self, tmp_path: Path, catalog_file: Path) -> None:
        result = runner.invoke(
            app,
            ["--config", str(tmp_path / "absent.toml"), "cache", "stats", "--cache-file", "x.json"],
        )
        assert result.exit_code == 1

    def test_invalid_log_level(self, tmp_path: Path) -> None:
        result = runner.invoke(
            app, ["--log-level", "LOUD", "cache", "stats", "--cache-file", str(tmp_path / "c.json")]
        )
        assert result.exit_code == 1


class TestMatchCommand:
    """Test cases for the match command."""

    def test_match_json(self, catalog_file: Path, tmp_path: Path) -> None:
        cache_file = tmp_path / "matches.json"
        result = _invoke(
            "match",
            str(catalog_file),
            "--title",
            "Attack on Titan",
            "--type",
            "tvShow",
            "--primary",
            "tmdb",
            "--year",
            "2013",
            "--cache-file",
            str(cache_file),
            "--json",
        )

        data = _json(result)
        assert data["title"] == "Attack on Titan"
        assert [match["provider_id"] for match in data["matches"]] == ["anilist"]
        assert data["matches"][0]["matched_media_id"] == "16498"
        assert data["matches"][0]["confidence"] == 1.0
        assert cache_file.exists()

    def test_match_table(self, catalog_file: Path) -> None:
        result = _invoke(
            "match", str(catalog_file), "-t", "Attack on Titan", "--type", "manga", "-p", "anilist"
        )
        assert result.exit_code == 0, result.output
        assert "kitsu" in result.stdout

    def test_missing_catalog(self, tmp_path: Path) -> None:
        result = _invoke(
            "match", str(tmp_path / "absent.json"), "-t", "X", "--type", "anime", "-p", "tmdb"
        )
        assert result.exit_code != 0


class TestAggregateCommand:
    """Test cases for the aggregate command."""

    def test_aggregate_episodes_json(self, catalog_file: Path) -> None:
        result = _invoke(
            "aggregate", str(catalog_file), "--provider", "TMDB", "--id", "1429", "--stats", "--json"
        )

        data = _json(result)
        assert data["details"]["title"] == "Attack on Titan"
        assert set(data["details"]["genres"]) == {"Action", "Drama"}
        assert [match["provider_id"] for match in data["matches"]] == ["anilist"]
        assert data["pagination"] == {
            "mode": "season",
            "groups": [{"label": "Season 1", "episodes": 2}],
        }
        assert [episode["id"] for episode in data["episodes"]] == ["t1", "t2"]
        assert "statistics" in data

    def test_aggregate_chapters_json(self, catalog_file: Path) -> None:
        result = _invoke(
            "aggregate", str(catalog_file), "-p", "anilist", "--id", "53390", "--json"
        )

        data = _json(result)
        assert [match["provider_id"] for match in data["matches"]] == ["kitsu"]
        assert "pagination" not in data
        assert [chapter["id"] for chapter in data["chapters"]] == ["a-c1"]

    def test_unknown_provider(self, catalog_file: Path) -> None:
        result = _invoke("aggregate", str(catalog_file), "-p", "simkl", "--id", "1", "--json")

        assert result.exit_code == 1
        payload = _envelope(result)
        assert payload["success"] is False
        assert payload["errors"][0].startswith("CLI_INVALID_ARGUMENTS")

    def test_unknown_media(self, catalog_file: Path) -> None:
        result = _invoke("aggregate", str(catalog_file), "-p", "tmdb", "--id", "404", "--json")

        assert result.exit_code == 1
        assert _envelope(result)["errors"][0].startswith("MEDIA_NOT_FOUND")


class TestCacheCommands:
    """Test cases for the cache sub-commands."""

    def _populate(self, catalog_file: Path, cache_file: Path) -> None:
        result = _invoke(
            "match",
            str(catalog_file),
            "-t",
            "Attack on Titan",
            "--type",
            "tvShow",
            "-p",
            "tmdb",
            "--cache-file",
            str(cache_file),
            "--json",
        )
        assert result.exit_code == 0, result.output

    def test_stats_clear_purge(self, catalog_file: Path, tmp_path: Path) -> None:
        cache_file = tmp_path / "matches.json"
        self._populate(catalog_file, cache_file)

        stats = _json(_invoke("cache", "stats", "--cache-file", str(cache_file), "--json"))
        assert stats["entries"] == 1
        assert stats["size_bytes"] > 0

        purged = _json(_invoke("cache", "purge", "--cache-file", str(cache_file), "--json"))
        assert purged == {"removed": 0, "remaining": 1}

        cleared = _json(_invoke("cache", "clear", "--cache-file", str(cache_file), "--json"))
        assert cleared == {"removed": 1}

        stats = _json(_invoke("cache", "stats", "--cache-file", str(cache_file), "--json"))
        assert stats["entries"] == 0

    def test_stats_without_cache_file(self) -> None:
        result = _invoke("cache", "stats", "--json")

        assert result.exit_code == 1
        assert _envelope(result)["errors"][0].startswith("CLI_INVALID_ARGUMENTS")
