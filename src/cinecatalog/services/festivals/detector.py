"""Inline festival detection for screenings as they are ingested."""

import logging
import time
from collections.abc import Callable
from datetime import datetime, tzinfo

from sqlalchemy.ext.asyncio import AsyncSession

from cinecatalog.config import settings
from cinecatalog.repositories.festivals import FestivalRepository
from cinecatalog.services.festivals.rules import FestivalRule, festival_matches, local_timezone

logger = logging.getLogger(__name__)


class FestivalCache:
    """
    Active festivals, loaded once and reused until the TTL expires.

    Owned by an ingestion run; nothing here is shared between runs.
    """

    def __init__(
        self,
        ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.festival_cache_ttl_seconds
        self._clock = clock
        self._rules: dict[str, FestivalRule] = {}
        self._loaded_at: float | None = None

    @property
    def is_stale(self) -> bool:
        return self._loaded_at is None or self._clock() - self._loaded_at >= self.ttl_seconds

    async def preload(self, db: AsyncSession) -> None:
        festivals = await FestivalRepository(db).active_festivals()
        self.load([FestivalRule.from_model(festival) for festival in festivals])
        logger.info(f"Festival cache loaded {len(self._rules)} active festival(s)")

    async def ensure_loaded(self, db: AsyncSession) -> None:
        if self.is_stale:
            await self.preload(db)

    def load(self, rules: list[FestivalRule]) -> None:
        self._rules = {rule.slug: rule for rule in rules}
        self._loaded_at = self._clock()

    def rules(self) -> list[FestivalRule]:
        return list(self._rules.values())

    def get(self, slug: str) -> FestivalRule | None:
        return self._rules.get(slug)

    def clear(self) -> None:
        self._rules = {}
        self._loaded_at = None


class FestivalDetector:
    """Synchronous, I/O-free classification against a preloaded FestivalCache."""

    def __init__(self, cache: FestivalCache, tz: tzinfo | None = None) -> None:
        self.cache = cache
        self.tz = tz or local_timezone()

    def detect(
        self,
        venue_id: str,
        title: str,
        start_time: datetime,
        booking_url: str | None = None,
        slug_hint: str | None = None,
    ) -> FestivalRule | None:
        """
        Find the festival a screening belongs to.

        A hint from the scraper naming a known festival wins. Otherwise the
        first festival whose typical months include the screening month and
        whose rule matches is returned.
        """
        if slug_hint:
            hinted = self.cache.get(slug_hint)
            if hinted is not None:
                return hinted
            logger.debug(f"Unknown festival hint {slug_hint!r} for {venue_id}")

        month = start_time.astimezone(self.tz).month
        for rule in self.cache.rules():
            if rule.typical_months and month not in rule.typical_months:
                continue
            if festival_matches(rule, venue_id, title, start_time, booking_url, self.tz):
                return rule
        return None
