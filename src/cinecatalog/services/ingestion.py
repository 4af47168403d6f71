"""
Anomaly-gated ingestion of one venue's listings.

Per venue batch: validate listings, check the batch against the venue's
history, then normalize titles, resolve each title group to a film and
upsert its screenings. Each film group is committed on its own. A blocked
batch writes only its audit row, plus the venue row the first time a
venue is seen; an existing venue row is refreshed only after the guard
passes.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from aiolimiter import AsyncLimiter
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cinecatalog.config import settings
from cinecatalog.database import AsyncSessionLocal
from cinecatalog.exceptions import ListingValidationError
from cinecatalog.models.scrape_run import ScrapeRunStatus
from cinecatalog.models.venue import Venue
from cinecatalog.repositories.festivals import FestivalRepository
from cinecatalog.repositories.films import FilmRepository
from cinecatalog.repositories.scrape_runs import ScrapeRunRepository
from cinecatalog.repositories.venues import ensure_venue_exists, ensure_venue_row
from cinecatalog.schemas.venue import VenueDefinition
from cinecatalog.scrapers.models import RawListing
from cinecatalog.services.anomaly_guard import GuardConfig, IngestionDiffReport, evaluate_batch
from cinecatalog.services.catalog_match import CatalogMatcher, MatchingConfig
from cinecatalog.services.festivals.detector import FestivalCache, FestivalDetector
from cinecatalog.services.film_matcher import (
    FilmResolver,
    FilmTitleIndex,
    ResolutionHints,
)
from cinecatalog.services.posters import PosterBackfill, PosterResolver
from cinecatalog.services.text_classifier import TextClassifier
from cinecatalog.services.title_normalizer import (
    ClassificationCache,
    NormalizedTitle,
    TitleNormalizer,
    is_non_film,
)
from cinecatalog.services.tmdb_client import TMDbClient

logger = logging.getLogger(__name__)

GROUP_ATTEMPTS = 2


@dataclass
class BatchReport:
    """Operator report for one venue batch."""

    venue_id: str
    added: int = 0
    updated: int = 0
    failed: int = 0
    rejected_by_validation: int = 0
    blocked_by_anomaly_guard: bool = False
    warnings: list[str] = field(default_factory=list)
    diff: IngestionDiffReport | None = None


def validate_listing(listing: RawListing, now: datetime) -> None:
    """
    Reject listings the pipeline cannot use.

    Raises:
        ListingValidationError: Missing title, start time or booking URL,
            naive start time, or a screening already in the past
    """
    if not listing.raw_title or not listing.raw_title.strip():
        raise ListingValidationError("missing title")
    if listing.start_time is None:
        raise ListingValidationError("missing start time")
    if listing.start_time.tzinfo is None or listing.start_time.utcoffset() is None:
        raise ListingValidationError("start time is not timezone-aware")
    if not listing.booking_url or not listing.booking_url.strip():
        raise ListingValidationError("missing booking URL")
    if listing.start_time < now:
        raise ListingValidationError("start time is in the past")


@dataclass
class _TitleGroup:
    normalized: NormalizedTitle
    listings: list[RawListing] = field(default_factory=list)

    def hints(self) -> ResolutionHints:
        first = self.listings[0]
        year = next((l.year for l in self.listings if l.year is not None), self.normalized.year)
        director = next((l.director for l in self.listings if l.has_director), None)
        poster = next((l.poster_ref for l in self.listings if l.poster_ref), None)
        return ResolutionHints(
            year=year,
            director=director,
            poster_ref=poster,
            non_film=is_non_film(first.raw_title),
        )


class IngestionRun:
    """
    State shared by every venue batch of one ingestion run.

    Owns the run's caches (classification, festivals) and the rate limiters
    shared by its catalog and classifier clients. Create one per run and
    close() it at the end.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal,
        catalog: TMDbClient | None = None,
        classifier: TextClassifier | None = None,
        poster_resolver: PosterResolver | None = None,
        matching_config: MatchingConfig | None = None,
        guard_config: GuardConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.catalog = catalog or TMDbClient(
            limiter=AsyncLimiter(settings.catalog_rate_limit, settings.catalog_rate_period)
        )
        if classifier is None and settings.gemini_api_key:
            classifier = TextClassifier(
                limiter=AsyncLimiter(settings.classifier_rate_limit, settings.classifier_rate_period)
            )
        self.classifier = classifier
        self.classification_cache = ClassificationCache()
        self.festival_cache = FestivalCache()
        self.normalizer = TitleNormalizer(self.classifier, self.classification_cache)
        self.matcher = CatalogMatcher(self.catalog, matching_config)
        self.guard_config = guard_config or GuardConfig.from_settings()
        self.posters = PosterBackfill(poster_resolver, session_factory) if poster_resolver else None
        self.tz = ZoneInfo(settings.local_timezone)
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    async def ingest(
        self,
        db: AsyncSession,
        venue_id: str,
        listings: list[RawListing],
        venue: VenueDefinition | None = None,
    ) -> BatchReport:
        """Run the pipeline for one venue on the given session."""
        return await IngestionPipeline(db, self).run(venue_id, listings, venue)

    async def ingest_venue(self, venue: VenueDefinition, listings: list[RawListing]) -> BatchReport:
        """
        Ingest one venue's batch in a session of its own.

        The venue row is refreshed from the definition only once the batch
        passes the anomaly guard. An unexpected error is recorded as a failed
        run and re-raised.
        """
        started_at = self.clock()
        async with self.session_factory() as db:
            try:
                return await self.ingest(db, venue.id, listings, venue)
            except Exception:
                await db.rollback()
                await ensure_venue_row(db, venue)
                await ScrapeRunRepository(db).record_run(
                    venue.id,
                    ScrapeRunStatus.FAILED,
                    started_at,
                    listing_count=len(listings),
                )
                await db.commit()
                raise

    async def close(self, poster_timeout: float = 30.0) -> None:
        if self.posters is not None:
            await self.posters.wait(poster_timeout)
        self.classification_cache.clear()
        self.festival_cache.clear()


class IngestionPipeline:
    """One venue batch on one session."""

    def __init__(
        self,
        db: AsyncSession,
        run: IngestionRun,
        films: FilmRepository | None = None,
        festivals: FestivalRepository | None = None,
        scrape_runs: ScrapeRunRepository | None = None,
    ) -> None:
        self.db = db
        self.run_state = run
        self.films = films if films is not None else FilmRepository(db)
        self.festivals = festivals if festivals is not None else FestivalRepository(db)
        self.scrape_runs = scrape_runs if scrape_runs is not None else ScrapeRunRepository(db)

    async def run(
        self,
        venue_id: str,
        listings: list[RawListing],
        venue: VenueDefinition | None = None,
    ) -> BatchReport:
        state = self.run_state
        started_at = state.clock()
        report = BatchReport(venue_id=venue_id)

        valid: list[RawListing] = []
        for listing in listings:
            try:
                if listing.venue_id != venue_id:
                    raise ListingValidationError(f"listing belongs to {listing.venue_id}")
                validate_listing(listing, started_at)
                valid.append(listing)
            except ListingValidationError as e:
                report.rejected_by_validation += 1
                logger.info(f"{venue_id}: rejected '{listing.raw_title}': {e.reason}")

        history = await self.scrape_runs.recent_counts(venue_id, state.guard_config.baseline_runs)
        diff = evaluate_batch(valid, history, state.guard_config, state.tz)
        report.diff = diff
        report.warnings = diff.warning_codes

        if diff.blocked:
            report.blocked_by_anomaly_guard = True
            logger.error(
                f"{venue_id}: batch blocked by anomaly guard ({', '.join(diff.rule_codes)}): "
                + "; ".join(w.message for w in diff.warnings if w.blocking)
            )
            if venue is not None:
                await ensure_venue_row(self.db, venue)
            await self._record(report, ScrapeRunStatus.BLOCKED, started_at, len(valid))
            return report

        for warning in diff.warnings:
            logger.warning(f"{venue_id}: {warning.code}: {warning.message}")

        if venue is not None:
            await ensure_venue_exists(self.db, venue)
            await self.db.commit()

        groups = await self._group_by_title(valid, report)

        await state.festival_cache.ensure_loaded(self.db)
        detector = FestivalDetector(state.festival_cache, state.tz)
        index = await FilmTitleIndex.load(self.films)
        resolver = FilmResolver(
            self.films,
            state.matcher,
            index,
            catalog=state.catalog,
            today=started_at.astimezone(state.tz).date(),
        )

        for group in groups.values():
            title = group.normalized.display_title
            resolution = None
            # A concurrent batch may merge away an indexed film; the second
            # attempt runs against a freshly loaded index.
            for attempt in range(1, GROUP_ATTEMPTS + 1):
                try:
                    resolution = await resolver.resolve(group.normalized, group.hints())
                    added, updated = await self._upsert_group(resolution.film.id, group, detector)
                    await self.db.commit()
                    break
                except Exception as e:
                    resolution = None
                    await self.db.rollback()
                    await index.refresh(self.films)
                    if attempt < GROUP_ATTEMPTS:
                        logger.warning(f"{venue_id}: retrying '{title}' after error: {e}")
                    else:
                        logger.error(f"{venue_id}: failed to ingest '{title}': {e}", exc_info=True)

            if resolution is None:
                report.failed += len(group.listings)
                continue

            report.added += added
            report.updated += updated
            if state.posters is not None:
                state.posters.schedule(resolution.film)

        venue = await self.db.get(Venue, venue_id)
        if venue is not None:
            venue.last_scraped_at = started_at
        await self._record(report, ScrapeRunStatus.SUCCESS, started_at, len(valid))

        logger.info(
            f"{venue_id}: {report.added} added, {report.updated} updated, "
            f"{report.failed} failed, {report.rejected_by_validation} rejected"
        )
        return report

    async def _group_by_title(
        self, listings: list[RawListing], report: BatchReport
    ) -> dict[str, _TitleGroup]:
        """Group listings by canonical match key, keeping listing order."""
        groups: dict[str, _TitleGroup] = {}
        for listing in listings:
            normalized = await self.run_state.normalizer.normalize(listing.raw_title)
            key = normalized.match_key
            if not key:
                report.rejected_by_validation += 1
                logger.info(f"{listing.venue_id}: rejected '{listing.raw_title}': empty after cleaning")
                continue
            groups.setdefault(key, _TitleGroup(normalized)).listings.append(listing)
        return groups

    async def _upsert_group(
        self, film_id: str, group: _TitleGroup, detector: FestivalDetector
    ) -> tuple[int, int]:
        added = updated = 0
        for listing in group.listings:
            festival = detector.detect(
                listing.venue_id,
                listing.raw_title,
                listing.start_time,
                listing.booking_url,
                listing.festival_slug_hint,
            )
            screening, inserted = await self.films.upsert_screening(
                film_id, listing, festival.slug if festival else None
            )
            if festival is not None:
                await self.festivals.tag_screenings(festival.id, festival.slug, [screening.id])
            if inserted:
                added += 1
            else:
                updated += 1
        return added, updated

    async def _record(
        self,
        report: BatchReport,
        status: ScrapeRunStatus,
        started_at: datetime,
        listing_count: int,
    ) -> None:
        await self.scrape_runs.record_run(
            report.venue_id,
            status,
            started_at,
            listing_count=listing_count,
            added=report.added,
            updated=report.updated,
            failed=report.failed,
            warnings=[w.to_dict() for w in report.diff.warnings] if report.diff else [],
        )
        await self.db.commit()

