"""
The festival tagging rule shared by inline detection and reverse tagging.

AUTO festivals own their venues for the duration: any screening there in
the detection window belongs to the festival. TITLE festivals share venues
with the normal programme, so a title keyword or booking-URL pattern must
also match.
"""

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta, tzinfo
from zoneinfo import ZoneInfo

from cinecatalog.config import settings
from cinecatalog.models.festival import ConfidenceStrategy, Festival

logger = logging.getLogger(__name__)

DAYS_BEFORE_START = 3
DAYS_AFTER_END = 1


def local_timezone() -> ZoneInfo:
    return ZoneInfo(settings.local_timezone)


@dataclass(frozen=True)
class FestivalRule:
    """Detached, immutable copy of a festival row used for matching."""

    id: str
    slug: str
    name: str
    venues: frozenset[str]
    start_date: date
    end_date: date
    strategy: ConfidenceStrategy
    title_keywords: tuple[str, ...]
    url_patterns: tuple[re.Pattern, ...]
    typical_months: frozenset[int]

    @classmethod
    def from_model(cls, festival: Festival) -> "FestivalRule":
        patterns = []
        for source in festival.url_patterns or []:
            try:
                patterns.append(re.compile(source, re.IGNORECASE))
            except re.error as e:
                logger.warning(f"Ignoring invalid URL pattern {source!r} for {festival.slug}: {e}")
        return cls(
            id=festival.id,
            slug=festival.slug,
            name=festival.name,
            venues=frozenset(festival.venues or []),
            start_date=festival.start_date,
            end_date=festival.end_date,
            strategy=ConfidenceStrategy(festival.confidence_strategy),
            title_keywords=tuple(k.lower() for k in festival.title_keywords or [] if k),
            url_patterns=tuple(patterns),
            typical_months=frozenset(festival.typical_months or []),
        )

    @property
    def window_start(self) -> date:
        return self.start_date - timedelta(days=DAYS_BEFORE_START)

    @property
    def window_end(self) -> date:
        """Last local date (inclusive) of the detection window."""
        return self.end_date + timedelta(days=DAYS_AFTER_END)


def in_detection_window(rule: FestivalRule, local_date: date) -> bool:
    return rule.window_start <= local_date <= rule.window_end


def matches_title_signals(rule: FestivalRule, title: str, booking_url: str | None) -> bool:
    """Case-insensitive keyword substring in the title, or URL pattern in the booking URL."""
    lowered = title.lower()
    if any(keyword in lowered for keyword in rule.title_keywords):
        return True
    if booking_url:
        return any(pattern.search(booking_url) for pattern in rule.url_patterns)
    return False


def festival_matches(
    rule: FestivalRule,
    venue_id: str,
    title: str,
    start_time: datetime,
    booking_url: str | None,
    tz: tzinfo | None = None,
) -> bool:
    """Apply the venue, window and (for TITLE festivals) signal checks."""
    if venue_id not in rule.venues:
        return False

    local_date = start_time.astimezone(tz or local_timezone()).date()
    if not in_detection_window(rule, local_date):
        return False

    if rule.strategy is ConfidenceStrategy.AUTO:
        return True

    return matches_title_signals(rule, title, booking_url)
