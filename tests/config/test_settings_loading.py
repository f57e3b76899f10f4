"""Tests for settings loading from TOML files and the environment."""

from __future__ import annotations

from pathlib import Path

import pytest

from mediabridge.config import Settings, load_settings
from mediabridge.shared.errors import ConfigurationError, ErrorCode


class TestSettingsDefaults:
    """Test cases for default values."""

    def test_defaults(self) -> None:
        settings = Settings()
        assert settings.matching.acceptance_threshold == 0.75
        assert settings.matching.title_algorithm == "levenshtein"
        assert settings.cache.ttl_seconds == 7 * 24 * 60 * 60
        assert settings.aggregation.page_size == 50
        assert settings.priority.manga_chapter == ["kitsu", "anilist"]
        assert settings.logging.level == "INFO"

    def test_load_settings_without_file(self) -> None:
        assert isinstance(load_settings(), Settings)


class TestSettingsEnvironment:
    """Test cases for environment overrides."""

    def test_nested_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MEDIABRIDGE_MATCHING__ACCEPTANCE_THRESHOLD", "0.9")
        monkeypatch.setenv("MEDIABRIDGE_LOGGING__LEVEL", "debug")

        settings = Settings()

        assert settings.matching.acceptance_threshold == 0.9
        assert settings.logging.level == "DEBUG"


class TestSettingsToml:
    """Test cases for TOML round trips and error reporting."""

    def test_load_from_toml(self, tmp_path: Path) -> None:
        config = tmp_path / "mediabridge.toml"
        config.write_text(
            "[matching]\n"
            "acceptance_threshold = 0.8\n"
            'title_algorithm = "token_set"\n'
            "[cache]\n"
            f'path = "{(tmp_path / "cache.json").as_posix()}"\n'
            "[priority]\n"
            'episode_thumbnail = ["Kitsu", "tmdb"]\n',
            encoding="utf-8",
        )

        settings = load_settings(config)

        assert settings.matching.acceptance_threshold == 0.8
        assert settings.matching.title_algorithm == "token_set"
        assert settings.cache.path == tmp_path / "cache.json"
        assert settings.priority.episode_thumbnail == ["kitsu", "tmdb"]

    def test_save_and_reload(self, tmp_path: Path) -> None:
        original = Settings()
        original.aggregation.page_size = 25
        path = tmp_path / "nested" / "config.toml"

        original.to_toml_file(path)
        reloaded = Settings.from_toml_file(path)

        assert reloaded.aggregation.page_size == 25
        assert reloaded.matching == original.matching

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            Settings.from_toml_file(tmp_path / "absent.toml")
        assert exc_info.value.code == ErrorCode.CONFIG_MISSING

    def test_unparsable_file(self, tmp_path: Path) -> None:
        config = tmp_path / "broken.toml"
        config.write_text("[matching\n", encoding="utf-8")

        with pytest.raises(ConfigurationError) as exc_info:
            Settings.from_toml_file(config)
        assert exc_info.value.code == ErrorCode.CONFIG_ERROR

    def test_invalid_value_reports_key(self, tmp_path: Path) -> None:
        config = tmp_path / "invalid.toml"
        config.write_text("[matching]\nacceptance_threshold = 1.5\n", encoding="utf-8")

        with pytest.raises(ConfigurationError) as exc_info:
            Settings.from_toml_file(config)

        assert exc_info.value.context.additional_data == {
            "config_key": "matching.acceptance_threshold"
        }

    def test_invalid_log_level(self, tmp_path: Path) -> None:
        config = tmp_path / "level.toml"
        config.write_text('[logging]\nlevel = "LOUD"\n', encoding="utf-8")

        with pytest.raises(ConfigurationError):
            Settings.from_toml_file(config)
