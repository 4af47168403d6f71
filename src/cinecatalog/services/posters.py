"""Background poster backfill for films created without a poster."""

import asyncio
import logging
from typing import Protocol

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cinecatalog.models.film import Film

logger = logging.getLogger(__name__)


class PosterResolver(Protocol):
    """External poster lookup. Returns a poster path/URL or None."""

    async def find_poster(
        self, title: str, year: int | None, external_id: int | None
    ) -> str | None: ...


class PosterBackfill:
    """
    Runs poster lookups as background tasks so they never hold up a batch.

    Each task writes through its own session. Call wait() at the end of
    the run; tasks still pending after the timeout are cancelled.
    """

    def __init__(
        self,
        resolver: PosterResolver,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        self.resolver = resolver
        self.session_factory = session_factory
        self._scheduled: set[str] = set()
        self._tasks: list[asyncio.Task] = []

    def schedule(self, film: Film) -> bool:
        """Queue a lookup for a film without a poster. Returns False if skipped."""
        if film.poster_path or film.id in self._scheduled:
            return False
        self._scheduled.add(film.id)
        self._tasks.append(
            asyncio.create_task(
                self._backfill(film.id, film.title, film.year, film.external_catalog_id)
            )
        )
        return True

    async def _backfill(
        self, film_id: str, title: str, year: int | None, external_id: int | None
    ) -> None:
        try:
            poster = await self.resolver.find_poster(title, year, external_id)
            if not poster:
                logger.info(f"No poster found for '{title}' ({year})")
                return
            async with self.session_factory() as db:
                await db.execute(
                    update(Film)
                    .where(Film.id == film_id, Film.poster_path.is_(None))
                    .values(poster_path=poster)
                )
                await db.commit()
            logger.info(f"Backfilled poster for '{title}'")
        except Exception as e:
            logger.error(f"Poster backfill failed for '{title}': {e}", exc_info=True)

    async def wait(self, timeout: float = 30.0) -> None:
        if not self._tasks:
            return
        _, pending = await asyncio.wait(self._tasks, timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            logger.warning(f"Cancelled {len(pending)} poster lookup(s) still running after {timeout}s")
        self._tasks = []
