"""Screening model for film showtimes at venues."""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cinecatalog.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from cinecatalog.models.film import Film
    from cinecatalog.models.venue import Venue


class Screening(Base, TimestampMixin):
    """
    Film screening model.

    Links a venue, film, and specific start time. Re-ingesting the same
    (film, venue, start_time) updates the row in place.
    """

    __tablename__ = "screenings"
    __table_args__ = (
        UniqueConstraint(
            "film_id",
            "venue_id",
            "start_time",
            name="uq_film_venue_time",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    # Foreign keys
    film_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("films.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    venue_id: Mapped[str] = mapped_column(
        String(100),
        ForeignKey("venues.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Screening details
    start_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )
    booking_url: Mapped[str] = mapped_column(String(1000), nullable=False)
    format: Mapped[str | None] = mapped_column(String(100), nullable=True)
    source_id: Mapped[str | None] = mapped_column(String(500), nullable=True)
    festival_slug: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    scraped_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    # The listing title as it appeared on the venue website
    raw_title: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Relationships
    film: Mapped["Film"] = relationship(back_populates="screenings")
    venue: Mapped["Venue"] = relationship(back_populates="screenings")

    def __repr__(self) -> str:
        return (
            f"<Screening(venue_id={self.venue_id!r}, "
            f"film_id={self.film_id!r}, "
            f"start_time={self.start_time})>"
        )
