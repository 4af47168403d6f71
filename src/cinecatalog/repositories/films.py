"""Persistence of films and screenings, including film merges."""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import delete, select, tuple_, update
from sqlalchemy.ext.asyncio import AsyncSession

from cinecatalog.models.film import Film
from cinecatalog.models.screening import Screening
from cinecatalog.scrapers.models import RawListing
from cinecatalog.services.tmdb_client import CatalogDetails

logger = logging.getLogger(__name__)

# Metadata copied from an absorbed film when the surviving film lacks it
SCALAR_METADATA = ("original_title", "year", "synopsis", "poster_path", "runtime", "certification")
LIST_METADATA = ("directors", "cast", "genres")


@dataclass(frozen=True)
class MergeResult:
    source_id: str
    target_id: str
    moved: int
    dropped: int


class FilmRepository:
    """Film and screening queries for one AsyncSession."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def load_all(self) -> list[Film]:
        result = await self.db.execute(select(Film))
        return list(result.scalars().all())

    async def load_unmatched(self) -> list[Film]:
        result = await self.db.execute(
            select(Film).where(Film.external_catalog_id.is_(None)).order_by(Film.created_at)
        )
        return list(result.scalars().all())

    async def get_by_external_id(self, external_id: int) -> Film | None:
        result = await self.db.execute(
            select(Film).where(Film.external_catalog_id == external_id)
        )
        return result.scalar_one_or_none()

    async def add_film(self, film: Film) -> Film:
        """
        Insert a film inside a savepoint.

        Raises:
            IntegrityError: If its external_catalog_id is already taken. The
                savepoint is rolled back; the outer transaction is intact.
        """
        async with self.db.begin_nested():
            self.db.add(film)
            await self.db.flush()
        return film

    async def attach_external_id(
        self,
        film: Film,
        external_id: int,
        confidence: float,
        details: CatalogDetails | None = None,
    ) -> None:
        """
        Link an unmatched film to a catalog entry, filling its metadata.

        Raises:
            IntegrityError: If another film took the external id first.
        """
        async with self.db.begin_nested():
            film.external_catalog_id = external_id
            film.match_confidence = confidence
            if details is not None:
                film.title = details.title or film.title
                film.original_title = details.original_title
                film.year = details.year or film.year
                film.runtime = details.runtime
                film.directors = details.directors or film.directors
                film.cast = details.cast
                film.genres = details.genres
                film.synopsis = details.synopsis
                film.poster_path = details.poster_path or film.poster_path
                film.certification = details.certification
            await self.db.flush()

    async def upsert_screening(
        self,
        film_id: str,
        listing: RawListing,
        festival_slug: str | None = None,
    ) -> tuple[Screening, bool]:
        """
        Insert or update the screening keyed by (film, venue, start time).

        Returns:
            (screening, inserted)
        """
        result = await self.db.execute(
            select(Screening).where(
                Screening.film_id == film_id,
                Screening.venue_id == listing.venue_id,
                Screening.start_time == listing.start_time,
            )
        )
        existing = result.scalar_one_or_none()
        now = datetime.now(timezone.utc)

        if existing:
            existing.booking_url = listing.booking_url
            existing.format = listing.format
            existing.source_id = listing.source_id or existing.source_id
            existing.raw_title = listing.raw_title
            existing.scraped_at = now
            if festival_slug:
                existing.festival_slug = festival_slug
            await self.db.flush()
            return existing, False

        screening = Screening(
            film_id=film_id,
            venue_id=listing.venue_id,
            start_time=listing.start_time,
            booking_url=listing.booking_url,
            format=listing.format,
            source_id=listing.source_id,
            festival_slug=festival_slug,
            raw_title=listing.raw_title,
            scraped_at=now,
        )
        self.db.add(screening)
        await self.db.flush()
        return screening, True

    async def merge_films(self, source_id: str, target_id: str) -> MergeResult:
        """
        Absorb film `source_id` into film `target_id`.

        Both rows are locked (in id order, so two merges never deadlock).
        Source screenings that collide with a target screening on
        (venue, start time) are dropped; the rest are re-pointed. The target
        keeps every screening it had. Runs in one savepoint.
        """
        if source_id == target_id:
            return MergeResult(source_id, target_id, moved=0, dropped=0)

        async with self.db.begin_nested():
            result = await self.db.execute(
                select(Film)
                .where(Film.id.in_([source_id, target_id]))
                .order_by(Film.id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            films = {film.id: film for film in result.scalars().all()}
            source = films.get(source_id)
            target = films.get(target_id)
            if source is None or target is None:
                logger.info(f"Merge {source_id} -> {target_id} skipped: film no longer exists")
                return MergeResult(source_id, target_id, moved=0, dropped=0)

            target_slots = select(Screening.venue_id, Screening.start_time).where(
                Screening.film_id == target_id
            )
            dropped_result = await self.db.execute(
                delete(Screening)
                .where(
                    Screening.film_id == source_id,
                    tuple_(Screening.venue_id, Screening.start_time).in_(target_slots),
                )
                .execution_options(synchronize_session="fetch")
            )
            moved_result = await self.db.execute(
                update(Screening)
                .where(Screening.film_id == source_id)
                .values(film_id=target_id)
                .execution_options(synchronize_session="fetch")
            )

            for attr in SCALAR_METADATA:
                if getattr(target, attr) is None and getattr(source, attr) is not None:
                    setattr(target, attr, getattr(source, attr))
            for attr in LIST_METADATA:
                if not getattr(target, attr) and getattr(source, attr):
                    setattr(target, attr, list(getattr(source, attr)))

            inherited_id = None
            if target.external_catalog_id is None and source.external_catalog_id is not None:
                inherited_id = source.external_catalog_id
                inherited_confidence = source.match_confidence

            await self.db.execute(
                delete(Film)
                .where(Film.id == source_id)
                .execution_options(synchronize_session="fetch")
            )
            if inherited_id is not None:
                target.external_catalog_id = inherited_id
                target.match_confidence = inherited_confidence
            await self.db.flush()

        merged = MergeResult(
            source_id,
            target_id,
            moved=moved_result.rowcount or 0,
            dropped=dropped_result.rowcount or 0,
        )
        if merged.dropped:
            logger.warning(
                f"Merge {source_id} -> {target_id}: dropped {merged.dropped} "
                f"duplicate screening(s)"
            )
        logger.info(f"Merged film {source_id} into {target_id}: moved {merged.moved} screening(s)")
        return merged
