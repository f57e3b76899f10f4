"""Confidence scoring for cross-provider candidates.

Title similarity is delegated to a pluggable ``TitleScorer`` so the
algorithm can be tuned independently of the matcher's control flow.
``ConfidenceCalculator`` combines the best title similarity over every
(query title, candidate title) pair with year-proximity and media-type
adjustments.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from rapidfuzz import fuzz
from rapidfuzz.distance import Levenshtein

from mediabridge.core.normalization import normalize_title
from mediabridge.shared.constants import MatchingDefaults, ValidationConstants

if TYPE_CHECKING:
    from mediabridge.config.models import MatchingSettings
    from mediabridge.core.models import MediaCandidate, MediaIdentity, MediaType

logger = logging.getLogger(__name__)


class TitleScorer(Protocol):
    """Similarity between two already-normalized titles, in [0, 1]."""

    def score(self, first: str, second: str) -> float: ...


class LevenshteinScorer:
    """``1 - edit_distance / max_length``."""

    def score(self, first: str, second: str) -> float:
        if not first or not second:
            return 0.0
        return float(Levenshtein.normalized_similarity(first, second))


class TokenSetScorer:
    """Word-order insensitive similarity (rapidfuzz token_set_ratio)."""

    def score(self, first: str, second: str) -> float:
        if not first or not second:
            return 0.0
        return fuzz.token_set_ratio(first, second) / 100.0


class WRatioScorer:
    """Weighted blend of rapidfuzz ratios."""

    def score(self, first: str, second: str) -> float:
        if not first or not second:
            return 0.0
        return fuzz.WRatio(first, second) / 100.0


_SCORERS: dict[str, type[TitleScorer]] = {
    "levenshtein": LevenshteinScorer,
    "token_set": TokenSetScorer,
    "wratio": WRatioScorer,
}


def get_title_scorer(name: str) -> TitleScorer:
    """Instantiate a title scorer by algorithm name.

    Raises:
        ValueError: If the algorithm is unknown
    """
    try:
        return _SCORERS[name]()
    except KeyError:
        msg = f"Unknown title algorithm '{name}', expected one of {sorted(_SCORERS)}"
        raise ValueError(msg) from None


@dataclass(frozen=True)
class ScoringWeights:
    title_weight: float = MatchingDefaults.TITLE_WEIGHT
    year_exact_bonus: float = MatchingDefaults.YEAR_EXACT_BONUS
    year_adjacent_bonus: float = MatchingDefaults.YEAR_ADJACENT_BONUS
    year_mismatch_penalty: float = MatchingDefaults.YEAR_MISMATCH_PENALTY
    year_tolerance: int = MatchingDefaults.YEAR_TOLERANCE
    type_bonus: float = MatchingDefaults.TYPE_BONUS

    @classmethod
    def from_settings(cls, settings: MatchingSettings) -> ScoringWeights:
        return cls(
            title_weight=settings.title_weight,
            year_exact_bonus=settings.year_exact_bonus,
            year_adjacent_bonus=settings.year_adjacent_bonus,
            year_mismatch_penalty=settings.year_mismatch_penalty,
            year_tolerance=settings.year_tolerance,
            type_bonus=settings.type_bonus,
        )


@dataclass(frozen=True)
class ConfidenceBreakdown:
    """Components of one candidate's confidence score."""

    title_similarity: float
    year_adjustment: float
    type_adjustment: float
    exact_match: bool
    confidence: float


def _clamp(value: float) -> float:
    return max(
        ValidationConstants.MIN_CONFIDENCE_SCORE,
        min(ValidationConstants.MAX_CONFIDENCE_SCORE, value),
    )


def types_compatible(
    identity_type: MediaType,
    candidate_type: MediaType | None,
    query_type: MediaType | None = None,
) -> bool:
    """Whether a candidate's media type agrees with the query.

    Equal types, the provider-specific retyped query type, or a shared
    video/reading category all count. Unknown candidate types never do.
    """
    if candidate_type is None:
        return False
    if candidate_type in (identity_type, query_type):
        return True
    return (
        identity_type.category != "other"
        and identity_type.category == candidate_type.category
    )


class ConfidenceCalculator:
    """Scores provider candidates against a MediaIdentity.

    Args:
        scorer: Title similarity algorithm (Levenshtein by default)
        weights: Title weight and year/type adjustments
    """

    def __init__(
        self,
        scorer: TitleScorer | None = None,
        weights: ScoringWeights | None = None,
    ) -> None:
        self.scorer = scorer or LevenshteinScorer()
        self.weights = weights or ScoringWeights()

    @classmethod
    def from_settings(cls, settings: MatchingSettings) -> ConfidenceCalculator:
        return cls(
            scorer=get_title_scorer(settings.title_algorithm),
            weights=ScoringWeights.from_settings(settings),
        )

    def title_similarity(
        self,
        query_titles: list[str],
        candidate_titles: list[str],
    ) -> tuple[float, bool]:
        """Best similarity over all title pairs.

        Returns:
            (best similarity, whether any pair is identical after normalization)
        """
        normalized_query = [t for t in (normalize_title(q) for q in query_titles) if t]
        normalized_candidate = [
            t for t in (normalize_title(c) for c in candidate_titles) if t
        ]

        best = 0.0
        for query_title in normalized_query:
            for candidate_title in normalized_candidate:
                if query_title == candidate_title:
                    return 1.0, True
                best = max(best, self.scorer.score(query_title, candidate_title))
        return best, False

    def year_adjustment(self, query_year: int | None, candidate_year: int | None) -> float:
        if query_year is None or candidate_year is None:
            return 0.0
        difference = abs(query_year - candidate_year)
        if difference == 0:
            return self.weights.year_exact_bonus
        if difference == 1:
            return self.weights.year_adjacent_bonus
        if difference > self.weights.year_tolerance:
            return -self.weights.year_mismatch_penalty
        return 0.0

    def breakdown(
        self,
        identity: MediaIdentity,
        candidate: MediaCandidate,
        query_type: MediaType | None = None,
    ) -> ConfidenceBreakdown:
        similarity, exact = self.title_similarity(
            identity.all_titles, candidate.all_titles
        )
        if exact:
            return ConfidenceBreakdown(
                title_similarity=1.0,
                year_adjustment=0.0,
                type_adjustment=0.0,
                exact_match=True,
                confidence=1.0,
            )

        year_adjustment = self.year_adjustment(
            identity.release_year, candidate.release_year
        )
        type_adjustment = (
            self.weights.type_bonus
            if types_compatible(identity.media_type, candidate.media_type, query_type)
            else 0.0
        )
        confidence = _clamp(
            similarity * self.weights.title_weight + year_adjustment + type_adjustment
        )
        return ConfidenceBreakdown(
            title_similarity=similarity,
            year_adjustment=year_adjustment,
            type_adjustment=type_adjustment,
            exact_match=False,
            confidence=confidence,
        )

    def calculate(
        self,
        identity: MediaIdentity,
        candidate: MediaCandidate,
        query_type: MediaType | None = None,
    ) -> float:
        """Confidence in [0, 1] that ``candidate`` is the same title as ``identity``.

        Returns 0.0 when the candidate's data cannot be scored.
        """
        try:
            result = self.breakdown(identity, candidate, query_type)
        except (TypeError, ValueError, AttributeError):
            logger.exception(
                "Error calculating confidence for '%s' against candidate %r",
                identity.title,
                getattr(candidate, "id", None),
            )
            return 0.0

        logger.debug(
            "Confidence for '%s' vs '%s': title=%.3f, year=%+.2f, type=%+.2f, final=%.3f",
            identity.title,
            candidate.title,
            result.title_similarity,
            result.year_adjustment,
            result.type_adjustment,
            result.confidence,
        )
        return result.confidence
