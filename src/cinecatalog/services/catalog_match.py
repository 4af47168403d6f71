"""
Confidence-scored matching of canonical titles against the external catalog.

Scoring is deliberately conservative: title and year evidence dominate,
popularity can only break near-ties (it is capped at a few hundredths), and
a crowd of similar-looking candidates lowers confidence unless the year hint
singles one out.
"""

import enum
import logging
import re
from dataclasses import dataclass, replace
from datetime import date

from rapidfuzz.distance import Levenshtein

from cinecatalog.config import Settings, settings
from cinecatalog.services.ambiguity import (
    AmbiguityScore,
    analyze_title_ambiguity,
    has_sufficient_metadata,
)
from cinecatalog.services.tmdb_client import CatalogSearchResult, TMDbClient
from cinecatalog.utils.text import fold_diacritics

logger = logging.getLogger(__name__)

REPERTORY_AGE_YEARS = 2

_QUOTE_TABLE = str.maketrans({"‘": "'", "’": "'", "“": '"', "”": '"', "–": "-", "—": "-"})


@dataclass(frozen=True)
class MatchingConfig:
    """Tunable matching thresholds. Changing them changes matching behavior."""

    min_confidence: float = 0.6
    min_title_similarity: float = 0.6
    title_weight: float = 0.7
    year_exact_bonus: float = 0.2
    year_near_bonus: float = 0.1
    popularity_divisor: float = 1000.0
    popularity_cap: float = 0.03
    competitor_band: float = 0.05
    competitor_penalty_many: float = 0.15
    competitor_penalty_few: float = 0.08
    many_competitors: int = 4
    few_competitors: int = 2
    max_results: int = 10

    @classmethod
    def from_settings(cls, source: Settings = settings) -> "MatchingConfig":
        return cls(
            min_confidence=source.match_min_confidence,
            min_title_similarity=source.match_min_title_similarity,
            title_weight=source.match_title_weight,
            year_exact_bonus=source.match_year_exact_bonus,
            year_near_bonus=source.match_year_near_bonus,
            popularity_divisor=source.match_popularity_divisor,
            popularity_cap=source.match_popularity_cap,
            competitor_band=source.match_competitor_band,
            competitor_penalty_many=source.match_competitor_penalty_many,
            competitor_penalty_few=source.match_competitor_penalty_few,
            max_results=source.match_max_results,
        )


@dataclass(frozen=True)
class MatchCandidate:
    external_id: int
    title: str
    original_title: str | None
    year: int | None
    poster_path: str | None
    popularity: float
    title_similarity: float
    score: float
    confidence: float


class MatchReason(str, enum.Enum):
    MATCHED = "matched"
    INSUFFICIENT_METADATA = "insufficient_metadata"
    NO_RESULTS = "no_results"
    BELOW_THRESHOLD = "below_threshold"


@dataclass(frozen=True)
class MatchOutcome:
    candidate: MatchCandidate | None
    reason: MatchReason
    ambiguity: AmbiguityScore | None = None

    @property
    def matched(self) -> bool:
        return self.candidate is not None


def normalize_for_similarity(title: str) -> str:
    """
    Normalize a title for comparison only.

    Lowercases, drops a leading "The", a trailing parenthetical and any
    colon subtitle, unifies quotes and dashes, and folds punctuation.
    """
    text = fold_diacritics(title).translate(_QUOTE_TABLE).lower().strip()
    text = re.sub(r"^the\s+", "", text)
    text = re.sub(r"\s*\([^)]*\)\s*$", "", text)
    text = re.sub(r"\s*:.*$", "", text)
    text = re.sub(r"[^\w\s'-]", "", text)
    text = re.sub(r"\s+", " ", text)
    return text.strip()


def title_similarity(a: str, b: str) -> float:
    """
    Similarity of two titles in [0, 1].

    1.0 when equal after normalization; 0.8-1.0 when one contains the
    other (scaled by length ratio); otherwise normalized Levenshtein.
    """
    norm_a = normalize_for_similarity(a)
    norm_b = normalize_for_similarity(b)
    if not norm_a or not norm_b:
        return 0.0

    if norm_a == norm_b:
        return 1.0

    if norm_a in norm_b or norm_b in norm_a:
        shorter = min(len(norm_a), len(norm_b))
        longer = max(len(norm_a), len(norm_b))
        return 0.8 + (shorter / longer) * 0.2

    distance = Levenshtein.distance(norm_a, norm_b)
    return 1.0 - distance / max(len(norm_a), len(norm_b))


def is_repertory_film(year: int | None, today: date | None = None) -> bool:
    """Films released more than two years ago are repertory screenings."""
    if year is None:
        return False
    today = today or date.today()
    return year < today.year - REPERTORY_AGE_YEARS


class CatalogMatcher:
    """
    Resolves a canonical title (plus hints) to one external catalog film.

    Catalog errors (CatalogUnavailableError) propagate; the caller decides
    to fall back to an unmatched film.
    """

    def __init__(self, catalog: TMDbClient, config: MatchingConfig | None = None) -> None:
        self.catalog = catalog
        self.config = config or MatchingConfig.from_settings()

    async def match(
        self,
        title: str,
        year: int | None = None,
        director: str | None = None,
        skip_ambiguity_check: bool = False,
    ) -> MatchOutcome:
        """
        Find the best catalog candidate for a title.

        Args:
            title: Canonical film title
            year: Release year hint
            director: Director hint
            skip_ambiguity_check: Match even when hints are insufficient

        Returns:
            MatchOutcome; candidate is None unless reason is MATCHED
        """
        if not skip_ambiguity_check and not has_sufficient_metadata(
            title, year is not None, bool(director and director.strip())
        ):
            ambiguity = analyze_title_ambiguity(title)
            logger.info(
                f"Not auto-matching ambiguous title '{title}' "
                f"(score {ambiguity.score:.2f}: {'; '.join(ambiguity.reasons)})"
            )
            return MatchOutcome(None, MatchReason.INSUFFICIENT_METADATA, ambiguity)

        results = await self.catalog.search_by_title(title, year)
        if not results and year is not None:
            # Widen: the venue's year may be a re-release year
            results = await self.catalog.search_by_title(title)
        if not results:
            return MatchOutcome(None, MatchReason.NO_RESULTS)

        candidates = self.score_candidates(title, year, results)
        if not candidates:
            logger.info(f"No catalog candidate similar enough to '{title}'")
            return MatchOutcome(None, MatchReason.BELOW_THRESHOLD)

        best = self.select_best(candidates, year)
        if best.confidence < self.config.min_confidence:
            logger.info(
                f"Best match for '{title}' is '{best.title}' ({best.year}) "
                f"at {best.confidence:.2f}, below {self.config.min_confidence}"
            )
            return MatchOutcome(None, MatchReason.BELOW_THRESHOLD)

        logger.info(
            f"Matched '{title}' -> '{best.title}' ({best.year}) "
            f"id={best.external_id} confidence={best.confidence:.2f}"
        )
        return MatchOutcome(best, MatchReason.MATCHED)

    def score_candidates(
        self,
        title: str,
        year: int | None,
        results: list[CatalogSearchResult],
    ) -> list[MatchCandidate]:
        """Score the top results, dropping those whose title is too different."""
        config = self.config
        candidates: list[MatchCandidate] = []

        for result in results[: config.max_results]:
            similarity = title_similarity(title, result.title)
            if result.original_title:
                similarity = max(similarity, title_similarity(title, result.original_title))
            if similarity < config.min_title_similarity:
                continue

            year_bonus = 0.0
            if year is not None and result.year is not None:
                if result.year == year:
                    year_bonus = config.year_exact_bonus
                elif abs(result.year - year) == 1:
                    year_bonus = config.year_near_bonus

            popularity_bonus = min(result.popularity / config.popularity_divisor, config.popularity_cap)
            score = config.title_weight * similarity + year_bonus + popularity_bonus

            candidates.append(
                MatchCandidate(
                    external_id=result.id,
                    title=result.title,
                    original_title=result.original_title,
                    year=result.year,
                    poster_path=result.poster_path,
                    popularity=result.popularity,
                    title_similarity=similarity,
                    score=score,
                    confidence=score,
                )
            )

        return candidates

    def select_best(self, candidates: list[MatchCandidate], year: int | None) -> MatchCandidate:
        """
        Pick the highest-scoring candidate and calibrate its confidence.

        Ties go to the earlier result. Close competitors (other candidates
        within the band of the best score) cost a penalty; half of it is
        given back when the best candidate's year equals the hint.
        """
        config = self.config
        best = candidates[0]
        for candidate in candidates[1:]:
            if candidate.score > best.score:
                best = candidate

        floor = best.score * (1 - config.competitor_band)
        competitors = sum(1 for c in candidates if c is not best and c.score >= floor)

        if competitors >= config.many_competitors:
            penalty = config.competitor_penalty_many
        elif competitors >= config.few_competitors:
            penalty = config.competitor_penalty_few
        else:
            penalty = 0.0

        confidence = _clamp(best.score - penalty)
        if penalty and year is not None and best.year == year:
            confidence = _clamp(confidence + penalty / 2)

        return replace(best, confidence=confidence)


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))
