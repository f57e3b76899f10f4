"""Logging configuration model."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from mediabridge.shared.constants import LoggingDefaults

_VALID_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class LoggingSettings(BaseModel):
    """Logging configuration."""

    level: str = Field(default=LoggingDefaults.LEVEL, description="Log level")
    file: str | None = Field(default=None, description="JSON-lines log file")
    console_output: bool = Field(default=True, description="Log to the console")
    rich_console: bool = Field(
        default=True,
        description="Use Rich console output instead of JSON lines",
    )

    @field_validator("level")
    @classmethod
    def validate_level(cls, value: str) -> str:
        level = value.upper()
        if level not in _VALID_LEVELS:
            msg = f"Invalid log level '{value}', expected one of {', '.join(_VALID_LEVELS)}"
            raise ValueError(msg)
        return level


__all__ = ["LoggingSettings"]
