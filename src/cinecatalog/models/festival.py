"""Festival reference data and festival/screening associations."""

import enum
import uuid
from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, Enum, ForeignKey, Integer, String, func
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import Mapped, mapped_column

from cinecatalog.models.base import Base, TimestampMixin


class ConfidenceStrategy(str, enum.Enum):
    """How much evidence a screening needs before it is tagged.

    AUTO: any screening at a festival venue inside the date window.
    TITLE: additionally a title keyword or booking-URL pattern must match.
    """

    AUTO = "AUTO"
    TITLE = "TITLE"


class ProbeSignal(str, enum.Enum):
    CONTENT_HASH = "content-hash"
    PAGE_EXISTS = "page-exists"
    ELEMENT_COUNT = "element-count"


class Festival(Base, TimestampMixin):
    """
    Recurring festival edition (e.g. "frightfest-2026").

    Rows are maintained by a separate configuration process; the ingestion
    pipeline only reads them. The watchdog is the one writer of the
    programme_* columns.
    """

    __tablename__ = "festivals"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    slug: Mapped[str] = mapped_column(String(100), nullable=False, unique=True, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    venues: Mapped[list[str]] = mapped_column(ARRAY(String), nullable=False, default=list)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    confidence_strategy: Mapped[ConfidenceStrategy] = mapped_column(
        Enum(ConfidenceStrategy, native_enum=False, name="confidence_strategy"),
        nullable=False,
        default=ConfidenceStrategy.TITLE,
    )
    title_keywords: Mapped[list[str]] = mapped_column(ARRAY(String), nullable=False, default=list)
    url_patterns: Mapped[list[str]] = mapped_column(ARRAY(String), nullable=False, default=list)
    # Calendar months (1-12) when the festival usually runs
    typical_months: Mapped[list[int]] = mapped_column(ARRAY(Integer), nullable=False, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Programme watchdog
    probe_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    probe_signal: Mapped[ProbeSignal] = mapped_column(
        Enum(ProbeSignal, native_enum=False, name="probe_signal",
             values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=ProbeSignal.CONTENT_HASH,
    )
    probe_selector: Mapped[str | None] = mapped_column(String(200), nullable=True)
    probe_min_count: Mapped[int] = mapped_column(Integer, nullable=False, default=5)
    programme_announced: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    programme_announced_at: Mapped[date | None] = mapped_column(Date, nullable=True)
    programme_content_hash: Mapped[str | None] = mapped_column(String(32), nullable=True)

    def __repr__(self) -> str:
        return f"<Festival(slug={self.slug!r}, {self.start_date}..{self.end_date})>"


class FestivalScreening(Base):
    """Association between a festival and one of its screenings."""

    __tablename__ = "festival_screenings"

    festival_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("festivals.id", ondelete="CASCADE"),
        primary_key=True,
    )
    screening_id: Mapped[int] = mapped_column(
        ForeignKey("screenings.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )
    tagged_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
