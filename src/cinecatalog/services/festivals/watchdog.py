"""
Festival programme watchdog.

Probes each upcoming festival's public programme page and flips
`programme_announced` once the page looks populated. This is an
operator signal only; tagging does not depend on it.
"""

import hashlib
import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from cinecatalog.models.festival import Festival, ProbeSignal
from cinecatalog.repositories.festivals import FestivalRepository
from cinecatalog.services.festivals.rules import local_timezone

logger = logging.getLogger(__name__)

PROBE_TIMEOUT = 15.0
PROBE_DAYS_BEFORE_START = 60
CONTENT_HASH_MIN_BYTES = 5000
PAGE_EXISTS_MIN_BYTES = 1000
HASH_LENGTH = 12

HEADERS = {"User-Agent": "Mozilla/5.0 (compatible; cinecatalog-watchdog/1.0)"}


@dataclass
class WatchdogResult:
    festival_slug: str
    probe_url: str
    detected: bool = False
    newly_announced: bool = False
    content_hash: str | None = None
    error: str | None = None


def resolve_probe_url(template: str, year: int) -> str:
    """Expand {year} / {yy} placeholders, e.g. frightfest{yy} -> frightfest26."""
    return template.replace("{year}", str(year)).replace("{yy}", str(year)[-2:])


def content_hash(body: str) -> str:
    return hashlib.md5(body.encode("utf-8")).hexdigest()[:HASH_LENGTH]


def in_probe_window(festival: Festival, today: date) -> bool:
    return festival.start_date - timedelta(days=PROBE_DAYS_BEFORE_START) <= today <= festival.start_date


def evaluate_probe(festival: Festival, status_code: int, body: str) -> tuple[bool, str | None]:
    """
    Decide whether a probe response shows a published programme.

    Returns:
        (detected, error). A missing page-exists page is "not yet", not an error.
    """
    signal = ProbeSignal(festival.probe_signal)

    if signal is ProbeSignal.PAGE_EXISTS:
        return status_code == 200 and len(body) > PAGE_EXISTS_MIN_BYTES, None

    if status_code != 200:
        return False, f"HTTP {status_code}"

    if signal is ProbeSignal.CONTENT_HASH:
        return len(body) > CONTENT_HASH_MIN_BYTES, None

    if not festival.probe_selector:
        return False, "element-count probe has no selector"
    try:
        count = len(re.findall(festival.probe_selector, body, re.IGNORECASE))
    except re.error as e:
        return False, f"invalid probe selector: {e}"
    return count >= festival.probe_min_count, None


async def probe_festival(client: httpx.AsyncClient, festival: Festival, today: date) -> WatchdogResult:
    url = resolve_probe_url(festival.probe_url or "", festival.start_date.year)
    result = WatchdogResult(festival_slug=festival.slug, probe_url=url)

    try:
        response = await client.get(url)
    except httpx.HTTPError as e:
        logger.warning(f"Watchdog probe failed for {festival.slug} ({url}): {e}")
        result.error = f"{type(e).__name__}: {e}"
        return result

    body = response.text
    result.detected, result.error = evaluate_probe(festival, response.status_code, body)
    if not result.detected:
        return result

    result.content_hash = content_hash(body)
    if not festival.programme_announced:
        festival.programme_announced = True
        festival.programme_announced_at = today
        festival.programme_content_hash = result.content_hash
        result.newly_announced = True
        logger.info(f"Programme announced for {festival.slug} (hash {result.content_hash})")
    return result


async def check_programme_availability(
    db: AsyncSession,
    today: date | None = None,
) -> list[WatchdogResult]:
    """Probe every active, not yet announced festival inside its probe window."""
    today = today or datetime.now(local_timezone()).date()

    festivals = [
        festival
        for festival in await FestivalRepository(db).active_festivals()
        if festival.probe_url
        and not festival.programme_announced
        and in_probe_window(festival, today)
    ]
    if not festivals:
        logger.info(f"Watchdog: nothing to probe on {today}")
        return []

    results = []
    async with httpx.AsyncClient(
        timeout=PROBE_TIMEOUT, follow_redirects=True, headers=HEADERS
    ) as client:
        for festival in festivals:
            results.append(await probe_festival(client, festival, today))

    await db.commit()
    announced = sum(1 for r in results if r.newly_announced)
    logger.info(f"Watchdog probed {len(results)} festival(s), {announced} newly announced")
    return results
