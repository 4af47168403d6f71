"""Scheduled reverse-tagging of already persisted festival screenings."""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, tzinfo

from sqlalchemy.ext.asyncio import AsyncSession

from cinecatalog.models.festival import Festival
from cinecatalog.repositories.festivals import FestivalRepository
from cinecatalog.services.festivals.rules import FestivalRule, festival_matches, local_timezone

logger = logging.getLogger(__name__)

WATCH_DAYS_BEFORE = 14
WATCH_DAYS_AFTER = 7


@dataclass
class TaggingResult:
    festival_slug: str
    candidates: int = 0
    tagged: int = 0
    already_tagged: int = 0


def in_watch_window(festival: Festival, today: date) -> bool:
    start = festival.start_date - timedelta(days=WATCH_DAYS_BEFORE)
    end = festival.end_date + timedelta(days=WATCH_DAYS_AFTER)
    return start <= today <= end


async def reverse_tag_festival(
    db: AsyncSession,
    festival: Festival,
    tz: tzinfo | None = None,
) -> TaggingResult:
    """
    Tag every screening of one festival that inline detection missed.

    Safe to re-run: existing associations are skipped and inserts ignore
    conflicts.
    """
    tz = tz or local_timezone()
    rule = FestivalRule.from_model(festival)
    repo = FestivalRepository(db)

    window_start = datetime.combine(rule.window_start, time.min, tzinfo=tz)
    window_end = datetime.combine(rule.window_end + timedelta(days=1), time.min, tzinfo=tz)

    rows = await repo.candidate_screenings(festival, window_start, window_end)
    already = await repo.tagged_screening_ids(rule.id)
    result = TaggingResult(festival_slug=rule.slug, candidates=len(rows))

    to_tag: list[int] = []
    for screening, film_title in rows:
        if screening.id in already:
            result.already_tagged += 1
            continue
        title = screening.raw_title or film_title
        if festival_matches(rule, screening.venue_id, title, screening.start_time, screening.booking_url, tz):
            to_tag.append(screening.id)

    if to_tag:
        result.tagged = await repo.tag_screenings(rule.id, rule.slug, to_tag)

    logger.info(
        f"Reverse-tagged {rule.slug}: {result.tagged} new, "
        f"{result.already_tagged} already tagged, {result.candidates} candidates"
    )
    return result


async def reverse_tag_festivals(
    db: AsyncSession,
    today: date | None = None,
    tz: tzinfo | None = None,
) -> list[TaggingResult]:
    """Run reverse tagging for every active festival whose watch window contains today."""
    tz = tz or local_timezone()
    today = today or datetime.now(tz).date()

    festivals = await FestivalRepository(db).active_festivals()
    results = []
    for festival in festivals:
        if not in_watch_window(festival, today):
            continue
        results.append(await reverse_tag_festival(db, festival, tz))
        await db.commit()

    if not results:
        logger.info(f"No festival in its watch window on {today}")
    return results
