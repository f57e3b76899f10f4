"""MediaBridge Settings Configuration Model.

Main Settings class that consolidates all configuration domains.
"""

from __future__ import annotations

import logging
from pathlib import Path

import toml
from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from mediabridge.config.models.aggregation_settings import (
    AggregationSettings,
    PrioritySettings,
)
from mediabridge.config.models.app_settings import LoggingSettings
from mediabridge.config.models.cache_settings import CacheSettings
from mediabridge.config.models.matching_settings import MatchingSettings
from mediabridge.shared.errors import (
    ConfigurationError,
    ErrorCode,
    ErrorContext,
    create_config_error,
)

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Settings facade providing unified configuration access.

    Environment variables use the ``MEDIABRIDGE_`` prefix and ``__`` for
    nesting, e.g. ``MEDIABRIDGE_MATCHING__ACCEPTANCE_THRESHOLD=0.8``.
    """

    model_config = SettingsConfigDict(
        env_prefix="MEDIABRIDGE_",
        env_nested_delimiter="__",
        env_ignore_empty=True,
        extra="ignore",
    )

    matching: MatchingSettings = Field(default_factory=MatchingSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    aggregation: AggregationSettings = Field(default_factory=AggregationSettings)
    priority: PrioritySettings = Field(default_factory=PrioritySettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @classmethod
    def from_toml_file(cls, file_path: str | Path) -> Settings:
        """Load settings from a TOML file.

        Raises:
            ConfigurationError: If the file is missing, unparsable or invalid
        """
        file_path = Path(file_path)
        if not file_path.exists():
            raise ConfigurationError(
                ErrorCode.CONFIG_MISSING,
                f"Configuration file not found: {file_path}",
                ErrorContext(
                    operation="load_config",
                    additional_data={"path": str(file_path)},
                ),
            )

        try:
            raw_config = toml.load(file_path)
        except (toml.TomlDecodeError, OSError) as e:
            raise create_config_error(
                f"Failed to read configuration file {file_path}: {e}",
                operation="load_config",
                original_error=e,
            ) from e

        try:
            settings = cls(**raw_config)
        except ValidationError as e:
            first_error = e.errors()[0]
            config_key = ".".join(str(part) for part in first_error["loc"])
            raise create_config_error(
                f"Invalid configuration in {file_path}: {config_key}: {first_error['msg']}",
                config_key=config_key,
                operation="load_config",
                original_error=e,
            ) from e

        logger.debug("Loaded configuration from %s", file_path)
        return settings

    def to_toml_file(self, file_path: str | Path) -> None:
        """Save settings to a TOML file."""
        file_path = Path(file_path)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        config_dict = self.model_dump(mode="json", exclude_none=True)

        with open(file_path, "w", encoding="utf-8") as f:
            toml.dump(config_dict, f)


__all__ = ["Settings"]
