"""Festival reference data and festival/screening associations."""

from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from cinecatalog.models.festival import Festival, FestivalScreening
from cinecatalog.models.film import Film
from cinecatalog.models.screening import Screening

TAG_CHUNK_SIZE = 100


class FestivalRepository:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def active_festivals(self) -> list[Festival]:
        result = await self.db.execute(
            select(Festival).where(Festival.is_active.is_(True)).order_by(Festival.start_date)
        )
        return list(result.scalars().all())

    async def candidate_screenings(
        self,
        festival: Festival,
        window_start: datetime,
        window_end: datetime,
    ) -> list[tuple[Screening, str]]:
        """Screenings at the festival's venues in [window_start, window_end), with film titles."""
        if not festival.venues:
            return []
        result = await self.db.execute(
            select(Screening, Film.title)
            .join(Film, Screening.film_id == Film.id)
            .where(
                Screening.venue_id.in_(festival.venues),
                Screening.start_time >= window_start,
                Screening.start_time < window_end,
            )
            .order_by(Screening.start_time)
        )
        return [(screening, film_title) for screening, film_title in result.all()]

    async def tagged_screening_ids(self, festival_id: str) -> set[int]:
        result = await self.db.execute(
            select(FestivalScreening.screening_id).where(
                FestivalScreening.festival_id == festival_id
            )
        )
        return set(result.scalars().all())

    async def tag_screenings(self, festival_id: str, slug: str, screening_ids: list[int]) -> int:
        """
        Associate screenings with a festival, ignoring existing associations.

        Returns:
            Number of new associations
        """
        tagged = 0
        for start in range(0, len(screening_ids), TAG_CHUNK_SIZE):
            chunk = screening_ids[start : start + TAG_CHUNK_SIZE]
            result = await self.db.execute(
                insert(FestivalScreening)
                .values([{"festival_id": festival_id, "screening_id": sid} for sid in chunk])
                .on_conflict_do_nothing(index_elements=["festival_id", "screening_id"])
            )
            tagged += result.rowcount or 0
            await self.db.execute(
                update(Screening)
                .where(Screening.id.in_(chunk))
                .values(festival_slug=slug)
                .execution_options(synchronize_session=False)
            )
        return tagged
