"""Ingestion run history per venue."""

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cinecatalog.models.scrape_run import ScrapeRun, ScrapeRunStatus


class ScrapeRunRepository:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def recent_counts(self, venue_id: str, limit: int) -> list[int]:
        """Listing counts of the venue's last `limit` successful runs, newest first."""
        result = await self.db.execute(
            select(ScrapeRun.listing_count)
            .where(
                ScrapeRun.venue_id == venue_id,
                ScrapeRun.status == ScrapeRunStatus.SUCCESS,
            )
            .order_by(ScrapeRun.started_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def record_run(
        self,
        venue_id: str,
        status: ScrapeRunStatus,
        started_at: datetime,
        listing_count: int = 0,
        added: int = 0,
        updated: int = 0,
        failed: int = 0,
        warnings: list[dict] | None = None,
    ) -> ScrapeRun:
        run = ScrapeRun(
            venue_id=venue_id,
            status=status,
            started_at=started_at,
            finished_at=datetime.now(timezone.utc),
            listing_count=listing_count,
            added=added,
            updated=updated,
            failed=failed,
            warnings=warnings or [],
        )
        self.db.add(run)
        await self.db.flush()
        return run
