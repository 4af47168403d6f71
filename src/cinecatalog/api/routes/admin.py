"""Admin API endpoints for manual operations."""

import logging
from collections.abc import AsyncGenerator

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from cinecatalog.database import get_db
from cinecatalog.models import Venue
from cinecatalog.schemas import (
    BatchReportResponse,
    RawListingIn,
    TaggingResultResponse,
    WatchdogResultResponse,
)
from cinecatalog.services.festivals.tagger import reverse_tag_festivals
from cinecatalog.services.festivals.watchdog import check_programme_availability
from cinecatalog.services.ingestion import IngestionRun
from cinecatalog.tasks.ingest_job import run_ingestion

logger = logging.getLogger(__name__)
router = APIRouter()


async def get_ingestion_run() -> AsyncGenerator[IngestionRun, None]:
    """Dependency providing a single-request ingestion run."""
    run = IngestionRun()
    try:
        yield run
    finally:
        await run.close()


@router.post("/admin/ingest/{venue_id}", response_model=BatchReportResponse)
async def ingest_listings(
    venue_id: str,
    listings: list[RawListingIn],
    db: AsyncSession = Depends(get_db),
    run: IngestionRun = Depends(get_ingestion_run),
) -> BatchReportResponse:
    """
    Ingest a batch of raw listings for one known venue.

    The batch goes through the same validation, anomaly guard and entity
    resolution as a scheduled run. A blocked batch is reported, not raised.
    """
    venue = await db.get(Venue, venue_id)
    if venue is None:
        raise HTTPException(status_code=404, detail=f"Venue {venue_id} not found")

    logger.info(f"Manual ingestion of {len(listings)} listings for {venue_id}")
    report = await run.ingest(db, venue_id, [item.to_listing(venue_id) for item in listings])
    return BatchReportResponse.model_validate(report)


@router.post("/admin/ingest-all")
async def trigger_ingest_all(background_tasks: BackgroundTasks) -> dict[str, str]:
    """Trigger a full ingestion of all registered venues as a background task.

    Returns immediately; the run proceeds asynchronously.
    """
    background_tasks.add_task(run_ingestion)
    return {"status": "started"}


@router.post("/admin/festivals/reverse-tag", response_model=list[TaggingResultResponse])
async def trigger_reverse_tagging(
    db: AsyncSession = Depends(get_db),
) -> list[TaggingResultResponse]:
    results = await reverse_tag_festivals(db)
    return [TaggingResultResponse.model_validate(r) for r in results]


@router.post("/admin/festivals/watchdog", response_model=list[WatchdogResultResponse])
async def trigger_watchdog(
    db: AsyncSession = Depends(get_db),
) -> list[WatchdogResultResponse]:
    """Probe upcoming festivals' programme pages now instead of waiting for the schedule."""
    results = await check_programme_availability(db)
    return [WatchdogResultResponse.model_validate(r) for r in results]
