"""Scheduled ingestion job that fetches and ingests listings for every registered venue."""

import asyncio
import logging
from datetime import date, timedelta

from cinecatalog.exceptions import AnomalyBlockedError
from cinecatalog.scrapers import BaseScraper, get_scrapers
from cinecatalog.services.ingestion import BatchReport, IngestionRun

logger = logging.getLogger(__name__)

SCRAPE_DAYS_AHEAD = 14


async def _ingest_one(
    run: IngestionRun,
    scraper: BaseScraper,
    date_from: date,
    date_to: date,
    strict: bool,
) -> BatchReport:
    venue = scraper.venue
    listings = await scraper.get_listings(date_from, date_to)
    logger.info(f"Found {len(listings)} raw listings for {venue.name}")

    report = await run.ingest_venue(venue, listings)
    if strict and report.blocked_by_anomaly_guard:
        raise AnomalyBlockedError(venue.id, report.diff)
    return report


async def run_ingestion(strict: bool = False) -> list[BatchReport]:
    """Scrape and ingest all registered venues concurrently.

    Creates its own sessions so it can be called from the scheduler or at
    startup without depending on a request context. Each venue runs in its
    own task; one venue failing does not affect the others.

    Args:
        strict: Raise AnomalyBlockedError for blocked venues instead of
            only reporting them

    Returns:
        Reports of the venues that completed (blocked ones included)
    """
    scrapers = get_scrapers()
    if not scrapers:
        logger.warning("No scrapers registered, skipping ingestion")
        return []

    date_from = date.today()
    date_to = date_from + timedelta(days=SCRAPE_DAYS_AHEAD)
    logger.info(f"Ingesting {len(scrapers)} venues for {date_from} to {date_to}")

    run = IngestionRun()
    try:
        results = await asyncio.gather(
            *(_ingest_one(run, s, date_from, date_to, strict) for s in scrapers),
            return_exceptions=True,
        )
    finally:
        await run.close()

    reports: list[BatchReport] = []
    blocked: list[AnomalyBlockedError] = []
    for scraper, result in zip(scrapers, results):
        if isinstance(result, AnomalyBlockedError):
            blocked.append(result)
        elif isinstance(result, BaseException):
            logger.error(f"Error ingesting {scraper.venue.name}: {result}", exc_info=result)
        else:
            reports.append(result)

    added = sum(r.added for r in reports)
    n_blocked = len(blocked) + sum(1 for r in reports if r.blocked_by_anomaly_guard)
    logger.info(
        f"Ingestion complete: {len(reports) + len(blocked)} venues processed, "
        f"{n_blocked} blocked, {len(scrapers) - len(reports) - len(blocked)} failed, "
        f"{added} new screenings"
    )

    if blocked:
        raise blocked[0]
    return reports
