"""Matching configuration model.

Acceptance threshold and confidence weights for cross-provider matching.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from mediabridge.shared.constants import MatchingDefaults


class MatchingSettings(BaseModel):
    """Cross-provider matching configuration.

    Confidence is ``title_similarity * title_weight`` plus the year and
    type adjustments, clamped to [0, 1]. An exact normalized title match
    always scores 1.0.

    Example:
        >>> settings = MatchingSettings()
        >>> settings.acceptance_threshold
        0.75
    """

    acceptance_threshold: float = Field(
        default=MatchingDefaults.ACCEPTANCE_THRESHOLD,
        ge=0.0,
        le=1.0,
        description="Minimum confidence for a candidate to be kept",
    )
    title_weight: float = Field(
        default=MatchingDefaults.TITLE_WEIGHT,
        ge=0.0,
        le=1.0,
        description="Weight of the best title similarity",
    )
    year_exact_bonus: float = Field(
        default=MatchingDefaults.YEAR_EXACT_BONUS,
        ge=0.0,
        le=1.0,
        description="Bonus when both release years are equal",
    )
    year_adjacent_bonus: float = Field(
        default=MatchingDefaults.YEAR_ADJACENT_BONUS,
        ge=0.0,
        le=1.0,
        description="Bonus when release years differ by one",
    )
    year_mismatch_penalty: float = Field(
        default=MatchingDefaults.YEAR_MISMATCH_PENALTY,
        ge=0.0,
        le=1.0,
        description="Penalty when release years differ by more than year_tolerance",
    )
    year_tolerance: int = Field(
        default=MatchingDefaults.YEAR_TOLERANCE,
        ge=1,
        description="Year difference tolerated before the mismatch penalty applies",
    )
    type_bonus: float = Field(
        default=MatchingDefaults.TYPE_BONUS,
        ge=0.0,
        le=1.0,
        description="Bonus when the candidate media type is compatible",
    )
    title_algorithm: Literal["levenshtein", "token_set", "wratio"] = Field(
        default=MatchingDefaults.TITLE_ALGORITHM,
        description="Title similarity algorithm",
    )


__all__ = ["MatchingSettings"]
