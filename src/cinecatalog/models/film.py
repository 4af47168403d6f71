"""Film model for storing canonical film records."""

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Float, Integer, String, Text
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cinecatalog.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from cinecatalog.models.screening import Screening


def new_film_id() -> str:
    return str(uuid.uuid4())


class Film(Base, TimestampMixin):
    """
    Film model.

    One row per distinct film, matched against the external catalog where
    possible. Films without a catalog match keep external_catalog_id NULL and
    are retried on later runs.
    """

    __tablename__ = "films"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_film_id)
    title: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    original_title: Mapped[str | None] = mapped_column(String(500), nullable=True)
    year: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # External catalog (TMDb) metadata. At most one film per catalog id.
    external_catalog_id: Mapped[int | None] = mapped_column(
        Integer, nullable=True, unique=True, index=True
    )
    match_confidence: Mapped[float | None] = mapped_column(Float, nullable=True)
    directors: Mapped[list[str]] = mapped_column(ARRAY(String), nullable=False, default=list)
    cast: Mapped[list[str]] = mapped_column(ARRAY(String), nullable=False, default=list)
    genres: Mapped[list[str]] = mapped_column(ARRAY(String), nullable=False, default=list)
    synopsis: Mapped[str | None] = mapped_column(Text, nullable=True)
    poster_path: Mapped[str | None] = mapped_column(String(500), nullable=True)
    runtime: Mapped[int | None] = mapped_column(Integer, nullable=True)
    certification: Mapped[str | None] = mapped_column(String(20), nullable=True)
    is_repertory: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Relationships
    screenings: Mapped[list["Screening"]] = relationship(
        back_populates="film",
        cascade="all, delete-orphan",
    )

    @property
    def is_matched(self) -> bool:
        return self.external_catalog_id is not None

    def __repr__(self) -> str:
        return f"<Film(id={self.id!r}, title={self.title!r}, year={self.year})>"
