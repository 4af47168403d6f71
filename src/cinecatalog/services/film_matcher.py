"""Film resolution: maps normalized titles to persisted films."""

import enum
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date

from rapidfuzz import fuzz, process
from sqlalchemy.exc import IntegrityError

from cinecatalog.config import settings
from cinecatalog.exceptions import CatalogUnavailableError
from cinecatalog.models.film import Film
from cinecatalog.repositories.films import FilmRepository
from cinecatalog.services.catalog_match import (
    CatalogMatcher,
    MatchCandidate,
    MatchOutcome,
    is_repertory_film,
)
from cinecatalog.services.title_normalizer import NormalizedTitle
from cinecatalog.services.tmdb_client import CatalogDetails, TMDbClient
from cinecatalog.utils.text import title_key

logger = logging.getLogger(__name__)

# Tokens that tell instalments apart: "kill bill vol 1" / "kill bill vol 2"
_ROMAN_NUMERALS = {"i", "ii", "iii", "iv", "v", "vi", "vii", "viii", "ix", "x"}
_NUMBER_WORDS = {"one", "two", "three", "four", "five", "six", "seven", "eight", "nine", "ten"}


def sequel_markers(key: str) -> set[str]:
    """Numeric, roman-numeral and number-word tokens of a title key."""
    return {
        token
        for token in key.split()
        if token.isdigit() or token in _ROMAN_NUMERALS or token in _NUMBER_WORDS
    }


@dataclass(frozen=True)
class _IndexEntry:
    film: Film
    film_id: str
    year: int | None
    matched: bool


class FilmTitleIndex:
    """
    In-memory title lookup built from all persisted films at batch start.

    Exact lookups are by match key. Films that carry an external catalog id
    win over unmatched duplicates for the same key. Ids, years and match
    state are captured when a film is added, so lookups never touch the
    database.
    """

    def __init__(
        self,
        films: Iterable[Film] = (),
        threshold: float | None = None,
        year_tolerance: int | None = None,
    ) -> None:
        self.threshold = threshold if threshold is not None else settings.fuzzy_title_threshold
        self.year_tolerance = (
            year_tolerance if year_tolerance is not None else settings.fuzzy_year_tolerance
        )
        self._entries: dict[str, _IndexEntry] = {}
        self._add_all(films)

    @classmethod
    async def load(cls, repository: FilmRepository) -> "FilmTitleIndex":
        films = await repository.load_all()
        logger.info(f"Film title index built from {len(films)} film(s)")
        return cls(films)

    def __len__(self) -> int:
        return len(self._entries)

    def add(self, film: Film, key: str | None = None) -> None:
        key = key if key is not None else title_key(film.title)
        if not key:
            return
        entry = _IndexEntry(film, film.id, film.year, film.is_matched)
        existing = self._entries.get(key)
        if existing is None or existing.film_id == entry.film_id or (
            not existing.matched and entry.matched
        ):
            self._entries[key] = entry

    def get(self, key: str) -> Film | None:
        entry = self._entries.get(key)
        return entry.film if entry is not None else None

    def replace(self, old_id: str, film: Film) -> None:
        """Point every key held by film `old_id` at `film` (after a merge)."""
        entry = _IndexEntry(film, film.id, film.year, film.is_matched)
        for key, indexed in list(self._entries.items()):
            if indexed.film_id == old_id:
                self._entries[key] = entry

    async def refresh(self, repository: FilmRepository) -> None:
        """Rebuild from the database, e.g. after a rollback expired the indexed films."""
        self._entries = {}
        self._add_all(await repository.load_all())

    def _add_all(self, films: Iterable[Film]) -> None:
        for film in films:
            self.add(film)
            if film.original_title:
                self.add(film, title_key(film.original_title))

    def find_similar(self, key: str, year: int | None) -> Film | None:
        """
        Fuzzy lookup of a key among persisted titles.

        Applies only when both the hint and the indexed film carry a year,
        and only within the year tolerance. Titles with different sequel
        numbers never match.
        """
        if not key or year is None or not self._entries:
            return None

        markers = sequel_markers(key)
        matches = process.extract(
            key,
            list(self._entries),
            scorer=fuzz.token_sort_ratio,
            score_cutoff=self.threshold,
            limit=None,
        )
        for match_key, score, _ in matches:
            entry = self._entries[match_key]
            if entry.year is None or abs(entry.year - year) > self.year_tolerance:
                continue
            if sequel_markers(match_key) != markers:
                continue
            logger.info(f"Similar title: '{key}' -> '{match_key}' ({entry.year}) {score:.1f}%")
            return entry.film
        return None


@dataclass(frozen=True)
class ResolutionHints:
    year: int | None = None
    director: str | None = None
    poster_ref: str | None = None
    non_film: bool = False


class ResolutionAction(str, enum.Enum):
    CACHED = "cached"
    SIMILAR = "similar"
    MATCHED = "matched"
    MERGED = "merged"
    CREATED = "created"
    REMATCHED = "rematched"


@dataclass(frozen=True)
class FilmResolution:
    film: Film
    action: ResolutionAction
    outcome: MatchOutcome | None = None


class FilmResolver:
    """
    Resolves one canonical title to a Film for a single venue batch.

    Lookup order: title index (exact), title index (similar), external
    catalog. A catalog match whose external id is already held by another
    film reuses or merges into that film rather than inserting a duplicate;
    the same applies when a concurrent batch wins the insert race.
    """

    def __init__(
        self,
        repository: FilmRepository,
        matcher: CatalogMatcher,
        index: FilmTitleIndex,
        catalog: TMDbClient | None = None,
        retry_unmatched: bool | None = None,
        today: date | None = None,
    ) -> None:
        self.repository = repository
        self.matcher = matcher
        self.index = index
        self.catalog = catalog or matcher.catalog
        self.retry_unmatched = (
            retry_unmatched if retry_unmatched is not None else settings.retry_unmatched_films
        )
        self.today = today or date.today()
        self._retried: set[str] = set()

    async def resolve(self, normalized: NormalizedTitle, hints: ResolutionHints) -> FilmResolution:
        key = normalized.match_key

        film = self.index.get(key)
        if film is not None:
            if self._should_retry(film, key, hints):
                rematched = await self._rematch(film, normalized, hints)
                if rematched is not None:
                    self.index.add(rematched.film, key)
                    return rematched
            return FilmResolution(film, ResolutionAction.CACHED)

        film = self.index.find_similar(key, hints.year)
        if film is not None:
            self.index.add(film, key)
            return FilmResolution(film, ResolutionAction.SIMILAR)

        outcome = await self._match(normalized, hints)
        if outcome is not None and outcome.candidate is not None:
            resolution = await self._film_for_candidate(outcome, normalized, hints)
        else:
            film = await self.repository.add_film(self._unmatched_film(normalized, hints))
            logger.info(f"Created unmatched film '{film.title}' ({film.year})")
            resolution = FilmResolution(film, ResolutionAction.CREATED, outcome)

        self.index.add(resolution.film, key)
        return resolution

    def _should_retry(self, film: Film, key: str, hints: ResolutionHints) -> bool:
        return (
            self.retry_unmatched
            and not film.is_matched
            and not hints.non_film
            and key not in self._retried
        )

    async def _match(self, normalized: NormalizedTitle, hints: ResolutionHints) -> MatchOutcome | None:
        if hints.non_film:
            logger.info(f"Not a film, skipping catalog: '{normalized.display_title}'")
            return None
        try:
            return await self.matcher.match(
                normalized.canonical_title, year=hints.year, director=hints.director
            )
        except CatalogUnavailableError as e:
            logger.warning(f"Catalog unavailable for '{normalized.canonical_title}': {e}")
            return None

    async def _details(self, external_id: int) -> CatalogDetails | None:
        try:
            return await self.catalog.get_details(external_id)
        except CatalogUnavailableError as e:
            logger.warning(f"Catalog details unavailable for {external_id}: {e}")
            return None

    async def _film_for_candidate(
        self,
        outcome: MatchOutcome,
        normalized: NormalizedTitle,
        hints: ResolutionHints,
    ) -> FilmResolution:
        candidate = outcome.candidate
        existing = await self.repository.get_by_external_id(candidate.external_id)
        if existing is not None:
            return FilmResolution(existing, ResolutionAction.MATCHED, outcome)

        details = await self._details(candidate.external_id)
        film = self._matched_film(candidate, details, normalized, hints)
        try:
            await self.repository.add_film(film)
        except IntegrityError:
            # A concurrent batch inserted the same catalog film first
            winner = await self.repository.get_by_external_id(candidate.external_id)
            if winner is None:
                raise
            logger.info(f"Lost insert race for catalog id {candidate.external_id}, reusing {winner.id}")
            return FilmResolution(winner, ResolutionAction.MATCHED, outcome)

        logger.info(f"Created film '{film.title}' ({film.year}) from catalog id {candidate.external_id}")
        return FilmResolution(film, ResolutionAction.MATCHED, outcome)

    async def _rematch(
        self,
        film: Film,
        normalized: NormalizedTitle,
        hints: ResolutionHints,
    ) -> FilmResolution | None:
        """Retry the catalog for an unmatched film; attach the id or merge into its holder."""
        key = normalized.match_key
        self._retried.add(key)
        film_id = film.id

        outcome = await self._match(normalized, hints)
        if outcome is None or outcome.candidate is None:
            return None
        candidate = outcome.candidate

        holder = await self.repository.get_by_external_id(candidate.external_id)
        if holder is None:
            details = await self._details(candidate.external_id)
            try:
                await self.repository.attach_external_id(
                    film, candidate.external_id, candidate.confidence, details
                )
                logger.info(f"Rematched '{normalized.canonical_title}' to catalog id {candidate.external_id}")
                return FilmResolution(film, ResolutionAction.REMATCHED, outcome)
            except IntegrityError:
                holder = await self.repository.get_by_external_id(candidate.external_id)
                if holder is None:
                    raise

        if holder.id == film_id:
            return FilmResolution(holder, ResolutionAction.REMATCHED, outcome)

        await self.repository.merge_films(film_id, holder.id)
        self.index.replace(film_id, holder)
        return FilmResolution(holder, ResolutionAction.MERGED, outcome)

    def _matched_film(
        self,
        candidate: MatchCandidate,
        details: CatalogDetails | None,
        normalized: NormalizedTitle,
        hints: ResolutionHints,
    ) -> Film:
        if details is None:
            year = candidate.year or hints.year
            return Film(
                title=candidate.title or normalized.canonical_title,
                original_title=candidate.original_title,
                year=year,
                external_catalog_id=candidate.external_id,
                match_confidence=candidate.confidence,
                directors=[hints.director] if hints.director else [],
                cast=[],
                genres=[],
                poster_path=candidate.poster_path or hints.poster_ref,
                is_repertory=is_repertory_film(year, self.today),
            )

        year = details.year or candidate.year or hints.year
        return Film(
            title=details.title or candidate.title,
            original_title=details.original_title,
            year=year,
            external_catalog_id=candidate.external_id,
            match_confidence=candidate.confidence,
            directors=details.directors,
            cast=details.cast,
            genres=details.genres,
            synopsis=details.synopsis,
            poster_path=details.poster_path or candidate.poster_path or hints.poster_ref,
            runtime=details.runtime,
            certification=details.certification,
            is_repertory=is_repertory_film(year, self.today),
        )

    def _unmatched_film(self, normalized: NormalizedTitle, hints: ResolutionHints) -> Film:
        return Film(
            title=normalized.canonical_title,
            year=hints.year,
            external_catalog_id=None,
            directors=[hints.director] if hints.director else [],
            cast=[],
            genres=[],
            poster_path=hints.poster_ref,
            is_repertory=is_repertory_film(hints.year, self.today),
        )
