"""Scheduled festival jobs: reverse tagging and programme watchdog."""

import logging

from cinecatalog.database import AsyncSessionLocal
from cinecatalog.services.festivals.tagger import TaggingResult, reverse_tag_festivals
from cinecatalog.services.festivals.watchdog import WatchdogResult, check_programme_availability

logger = logging.getLogger(__name__)


async def run_reverse_tagging() -> list[TaggingResult]:
    logger.info("Starting festival reverse tagging")
    async with AsyncSessionLocal() as db:
        results = await reverse_tag_festivals(db)
    tagged = sum(r.tagged for r in results)
    logger.info(f"Reverse tagging complete: {len(results)} festivals, {tagged} screenings tagged")
    return results


async def run_watchdog() -> list[WatchdogResult]:
    logger.info("Starting festival programme watchdog")
    async with AsyncSessionLocal() as db:
        return await check_programme_availability(db)
