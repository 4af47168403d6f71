"""Per-venue ingestion run history, used as the anomaly guard's baseline."""

import enum
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from cinecatalog.models.base import Base


class ScrapeRunStatus(str, enum.Enum):
    SUCCESS = "success"
    BLOCKED = "blocked"
    FAILED = "failed"


class ScrapeRun(Base):
    """One ingestion attempt for one venue."""

    __tablename__ = "scrape_runs"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    venue_id: Mapped[str] = mapped_column(
        String(100),
        ForeignKey("venues.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    status: Mapped[ScrapeRunStatus] = mapped_column(
        Enum(ScrapeRunStatus, native_enum=False, name="scrape_run_status",
             values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    finished_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    listing_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    added: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    failed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    warnings: Mapped[list | None] = mapped_column(JSONB, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<ScrapeRun(venue_id={self.venue_id!r}, status={self.status.value}, "
            f"listings={self.listing_count})>"
        )
