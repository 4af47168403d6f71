"""Venue model for storing cinema venue information."""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, String
from sqlalchemy.dialects.postgresql import ARRAY, JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cinecatalog.models.base import Base, TimestampMixin
from cinecatalog.schemas.venue import VenueAddress

if TYPE_CHECKING:
    from cinecatalog.models.screening import Screening


class Venue(Base, TimestampMixin):
    """
    Cinema venue model.

    The address is stored as JSONB but always written through VenueAddress,
    so partial addresses from scraper adapters are validated, not cast.
    """

    __tablename__ = "venues"

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    short_name: Mapped[str] = mapped_column(String(100), nullable=False)
    chain: Mapped[str | None] = mapped_column(String(100), nullable=True)
    website: Mapped[str | None] = mapped_column(String(500), nullable=True)
    address: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    features: Mapped[list[str]] = mapped_column(ARRAY(String), nullable=False, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    last_scraped_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    screenings: Mapped[list["Screening"]] = relationship(
        back_populates="venue",
        cascade="all, delete-orphan",
    )

    @property
    def address_info(self) -> VenueAddress | None:
        if self.address is None:
            return None
        return VenueAddress.model_validate(self.address)

    @address_info.setter
    def address_info(self, value: VenueAddress | None) -> None:
        self.address = value.model_dump(exclude_none=True) if value is not None else None

    def __repr__(self) -> str:
        return f"<Venue(id={self.id!r}, name={self.name!r})>"
