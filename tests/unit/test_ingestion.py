"""Unit tests for the venue batch ingestion pipeline."""

from datetime import date, datetime
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.exc import IntegrityError

from cinecatalog.exceptions import ListingValidationError
from cinecatalog.models.scrape_run import ScrapeRunStatus
from cinecatalog.schemas.venue import VenueDefinition
from cinecatalog.services.anomaly_guard import NO_BASELINE, VOLUME_DROP, GuardConfig
from cinecatalog.services.festivals.rules import FestivalRule
from cinecatalog.services.ingestion import IngestionPipeline, IngestionRun, validate_listing
from tests.fakes import (
    LONDON_TZ,
    NOW,
    FakeCatalog,
    FakeFestivalRepository,
    FakeFilmRepository,
    FakeScrapeRunRepository,
    details_for,
    make_festival,
    make_film,
    make_listing,
    search_result,
)

APOCALYPSE = search_result(28, "Apocalypse Now", 1979, popularity=30.0)
SHINING = search_result(694, "The Shining", 1980, popularity=40.0)
VENUE = VenueDefinition(id="prince-charles", name="Prince Charles Cinema", short_name="PCC")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def make_catalog() -> FakeCatalog:
    return FakeCatalog(
        {"apocalypse now": [APOCALYPSE], "the shining": [SHINING]},
        {
            28: details_for(APOCALYPSE, directors=["Francis Ford Coppola"]),
            694: details_for(SHINING, directors=["Stanley Kubrick"]),
        },
    )


def make_run(catalog: FakeCatalog | None = None, festivals: list[FestivalRule] | None = None) -> IngestionRun:
    run = IngestionRun(
        session_factory=MagicMock(),
        catalog=catalog or make_catalog(),
        guard_config=GuardConfig(),
        clock=lambda: NOW,
    )
    run.festival_cache.load(festivals or [])
    return run


class MergedAwayFilmRepository(FakeFilmRepository):
    """Another venue's batch merges the indexed film away before our first upsert."""

    def __init__(self, stale, holder) -> None:
        super().__init__([stale, holder])
        self.stale_id = stale.id
        self.holder_id = holder.id

    async def upsert_screening(self, film_id, listing, festival_slug=None):
        if film_id == self.stale_id and self.stale_id in self.films:
            await self.merge_films(self.stale_id, self.holder_id)
            raise IntegrityError("INSERT INTO screenings", {}, Exception("foreign key violation"))
        return await super().upsert_screening(film_id, listing, festival_slug)


class Harness:
    """A pipeline wired to in-memory repositories."""

    def __init__(self, history: list[int] | None = None, **run_kwargs) -> None:
        self.run = make_run(**run_kwargs)
        self.films = FakeFilmRepository()
        self.festivals = FakeFestivalRepository()
        self.scrape_runs = FakeScrapeRunRepository(history)
        self.venue = MagicMock()
        self.db = AsyncMock()
        self.db.get = AsyncMock(return_value=self.venue)

    def pipeline(self) -> IngestionPipeline:
        return IngestionPipeline(
            self.db,
            self.run,
            films=self.films,
            festivals=self.festivals,
            scrape_runs=self.scrape_runs,
        )

    async def ingest(self, listings, venue=None):
        return await self.pipeline().run("prince-charles", listings, venue)


def at(day: int, hour: int = 19, minute: int = 30, month: int = 3) -> datetime:
    return datetime(2026, month, day, hour, minute, tzinfo=LONDON_TZ)


# ---------------------------------------------------------------------------
# validate_listing
# ---------------------------------------------------------------------------


class TestValidateListing:
    def test_valid_listing(self) -> None:
        validate_listing(make_listing("Nosferatu"), NOW)

    @pytest.mark.parametrize(
        ("listing", "reason"),
        [
            (make_listing("   "), "missing title"),
            (make_listing("Nosferatu", booking_url=None), "missing booking URL"),
            (make_listing("Nosferatu", start_time=datetime(2026, 3, 5, 19, 30)), "start time is not timezone-aware"),
            (make_listing("Nosferatu", start_time=at(1)), "start time is in the past"),
        ],
    )
    def test_rejections(self, listing, reason) -> None:
        with pytest.raises(ListingValidationError) as exc_info:
            validate_listing(listing, NOW)
        assert exc_info.value.reason == reason

    def test_missing_start_time(self) -> None:
        listing = make_listing("Nosferatu")
        listing.start_time = None

        with pytest.raises(ListingValidationError, match="missing start time"):
            validate_listing(listing, NOW)


# ---------------------------------------------------------------------------
# IngestionPipeline.run
# ---------------------------------------------------------------------------


class TestIngestionPipeline:
    async def test_version_and_plain_title_share_one_film(self) -> None:
        harness = Harness()

        report = await harness.ingest([
            make_listing("Apocalypse Now : Final Cut (15)", at(5)),
            make_listing("Apocalypse Now", at(6)),
        ])

        assert report.added == 2
        assert report.updated == 0
        assert len(harness.films.films) == 1
        film = next(iter(harness.films.films.values()))
        assert film.external_catalog_id == 28
        assert len(harness.films.screenings_for(film.id)) == 2
        # Raw titles are kept on the screenings
        raw_titles = {s.raw_title for s in harness.films.screenings_for(film.id)}
        assert raw_titles == {"Apocalypse Now : Final Cut (15)", "Apocalypse Now"}

    async def test_rerun_of_same_batch_only_updates(self) -> None:
        harness = Harness()
        batch = [
            make_listing("Apocalypse Now : Final Cut (15)", at(5)),
            make_listing("Apocalypse Now", at(6)),
        ]

        await harness.ingest(batch)
        second = await harness.ingest(batch)

        assert second.added == 0
        assert second.updated == 2
        assert len(harness.films.films) == 1
        assert len(harness.films.screenings) == 2

    async def test_collapsed_batch_is_blocked_without_writes(self) -> None:
        harness = Harness(history=[40] * 7)

        report = await harness.ingest([
            make_listing("Apocalypse Now", at(5)),
            make_listing("The Shining", at(6)),
        ])

        assert report.blocked_by_anomaly_guard
        assert report.warnings == [VOLUME_DROP]
        assert report.added == report.updated == 0
        assert harness.films.films == {}
        assert harness.films.screenings == {}
        assert harness.run.catalog.searches == []
        assert [r["status"] for r in harness.scrape_runs.runs] == [ScrapeRunStatus.BLOCKED]
        assert harness.scrape_runs.runs[0]["listing_count"] == 2

    async def test_first_run_warns_but_applies(self) -> None:
        harness = Harness()

        report = await harness.ingest([make_listing("The Shining", at(5))])

        assert not report.blocked_by_anomaly_guard
        assert report.warnings == [NO_BASELINE]
        assert report.added == 1
        run = harness.scrape_runs.runs[0]
        assert run["status"] is ScrapeRunStatus.SUCCESS
        assert run["warnings"][0]["code"] == NO_BASELINE

    async def test_ambiguous_title_without_hints_stays_unmatched(self) -> None:
        catalog = FakeCatalog({"ten": [search_result(i, "Ten", 2002) for i in range(1, 4)]})
        harness = Harness(catalog=catalog)

        report = await harness.ingest([make_listing("Ten", at(5))])

        assert report.added == 1
        film = next(iter(harness.films.films.values()))
        assert film.title == "Ten"
        assert film.external_catalog_id is None
        assert catalog.searches == []

    async def test_invalid_listings_are_rejected_individually(self) -> None:
        harness = Harness()

        report = await harness.ingest([
            make_listing("The Shining", at(5)),
            make_listing("Past Screening", at(1)),
            make_listing("Naive", datetime(2026, 3, 5, 19, 30)),
            make_listing("No Link", at(5), booking_url=""),
            make_listing("Elsewhere", at(5), venue_id="barbican"),
            make_listing("[35mm]", at(5)),
        ])

        assert report.rejected_by_validation == 5
        assert report.added == 1
        assert harness.scrape_runs.runs[0]["listing_count"] == 2

    async def test_failed_group_does_not_stop_batch(self) -> None:
        harness = Harness()
        harness.films.fail_upsert_titles.add("The Shining")

        report = await harness.ingest([
            make_listing("The Shining", at(5)),
            make_listing("Apocalypse Now", at(6)),
        ])

        assert report.failed == 1
        assert report.added == 1
        harness.db.rollback.assert_awaited()
        assert harness.scrape_runs.runs[0]["status"] is ScrapeRunStatus.SUCCESS
        assert harness.scrape_runs.runs[0]["failed"] == 1

    async def test_listing_hints_reach_catalog(self) -> None:
        harness = Harness()

        await harness.ingest([
            make_listing("The Shining", at(5)),
            make_listing("The Shining", at(6), year=1980, director="Stanley Kubrick"),
        ])

        assert harness.run.catalog.searches == [("The Shining", 1980)]

    async def test_screenings_in_festival_window_are_tagged(self) -> None:
        frightfest = FestivalRule.from_model(
            make_festival(
                "frightfest-2026",
                venues=["prince-charles"],
                start_date=date(2026, 8, 27),
                end_date=date(2026, 8, 31),
                typical_months=[8],
            )
        )
        harness = Harness(festivals=[frightfest])

        await harness.ingest([
            make_listing("The Shining", at(28, month=8)),
            make_listing("Apocalypse Now", at(5)),
        ])

        assert len(harness.festivals.tagged) == 1
        festival_id, slug, screening_ids = harness.festivals.tagged[0]
        assert slug == "frightfest-2026"
        tagged = [s for s in harness.films.screenings.values() if s.id in screening_ids]
        assert [s.raw_title for s in tagged] == ["The Shining"]
        assert tagged[0].festival_slug == "frightfest-2026"

    async def test_venue_last_scraped_is_updated(self) -> None:
        harness = Harness()

        await harness.ingest([make_listing("The Shining", at(5))])

        assert harness.venue.last_scraped_at == NOW

    async def test_group_is_retried_after_film_merged_by_another_batch(self) -> None:
        stale = make_film("The Shining", 1980, external_catalog_id=999, id="stale")
        holder = make_film("The Shining", 1980, external_catalog_id=694, id="holder")
        harness = Harness()
        harness.films = MergedAwayFilmRepository(stale, holder)

        report = await harness.ingest([make_listing("The Shining", at(5))])

        assert report.failed == 0
        assert report.added == 1
        assert set(harness.films.films) == {"holder"}
        assert len(harness.films.screenings_for("holder")) == 1
        harness.db.rollback.assert_awaited_once()

    async def test_blocked_batch_leaves_existing_venue_untouched(self) -> None:
        harness = Harness(history=[40] * 7)
        refresh = AsyncMock()

        with patch("cinecatalog.services.ingestion.ensure_venue_exists", refresh), patch(
            "cinecatalog.repositories.venues.ensure_venue_exists", refresh
        ):
            report = await harness.ingest([make_listing("The Shining", at(5))], venue=VENUE)

        assert report.blocked_by_anomaly_guard
        refresh.assert_not_awaited()
        assert harness.scrape_runs.runs[0]["status"] is ScrapeRunStatus.BLOCKED

    async def test_blocked_batch_creates_missing_venue_for_audit_row(self) -> None:
        harness = Harness(history=[40] * 7)
        harness.db.get = AsyncMock(return_value=None)
        create = AsyncMock()

        with patch("cinecatalog.repositories.venues.ensure_venue_exists", create):
            await harness.ingest([make_listing("The Shining", at(5))], venue=VENUE)

        create.assert_awaited_once_with(harness.db, VENUE)
        assert harness.scrape_runs.runs[0]["status"] is ScrapeRunStatus.BLOCKED

    async def test_applied_batch_refreshes_venue(self) -> None:
        harness = Harness()
        refresh = AsyncMock()

        with patch("cinecatalog.services.ingestion.ensure_venue_exists", refresh):
            await harness.ingest([make_listing("The Shining", at(5))], venue=VENUE)

        refresh.assert_awaited_once_with(harness.db, VENUE)


# ---------------------------------------------------------------------------
# IngestionRun.ingest_venue
# ---------------------------------------------------------------------------


def make_session_factory(db: AsyncMock) -> MagicMock:
    ctx = AsyncMock()
    ctx.__aenter__ = AsyncMock(return_value=db)
    ctx.__aexit__ = AsyncMock(return_value=False)
    return MagicMock(return_value=ctx)


class TestIngestVenue:
    async def test_unexpected_error_is_recorded_and_raised(self) -> None:
        db = AsyncMock()
        run = IngestionRun(session_factory=make_session_factory(db), catalog=make_catalog(), clock=lambda: NOW)
        scrape_runs = FakeScrapeRunRepository()
        ensure_row = AsyncMock()

        with patch.object(run, "ingest", AsyncMock(side_effect=RuntimeError("db down"))), patch(
            "cinecatalog.services.ingestion.ensure_venue_row", ensure_row
        ), patch("cinecatalog.services.ingestion.ScrapeRunRepository", return_value=scrape_runs):
            with pytest.raises(RuntimeError):
                await run.ingest_venue(VENUE, [make_listing("The Shining", at(5))])

        db.rollback.assert_awaited_once()
        ensure_row.assert_awaited_once_with(db, VENUE)
        assert scrape_runs.runs == [
            {"venue_id": "prince-charles", "status": ScrapeRunStatus.FAILED, "listing_count": 1}
        ]

    async def test_passes_venue_definition_to_pipeline(self) -> None:
        db = AsyncMock()
        run = IngestionRun(session_factory=make_session_factory(db), catalog=make_catalog(), clock=lambda: NOW)

        with patch.object(run, "ingest", AsyncMock(return_value="report")) as ingest:
            result = await run.ingest_venue(VENUE, [])

        assert result == "report"
        ingest.assert_awaited_once_with(db, "prince-charles", [], VENUE)

    async def test_close_clears_caches(self) -> None:
        run = make_run()
        run.classification_cache.put("x", MagicMock())

        await run.close()

        assert len(run.classification_cache) == 0
        assert run.festival_cache.is_stale
