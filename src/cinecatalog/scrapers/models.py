"""Data models for scrapers."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class RawListing:
    """
    Raw listing produced by a venue scraper adapter.

    This is the contract every adapter returns. Nothing here is trusted:
    the ingestion pipeline validates each listing before it normalizes the
    title and resolves it to a film.
    """

    venue_id: str
    raw_title: str  # Title exactly as it appears on the venue website
    start_time: datetime | None  # Must be timezone-aware to be accepted
    booking_url: str | None
    format: str | None = None  # e.g. "35mm", "IMAX"
    year: int | None = None
    director: str | None = None
    poster_ref: str | None = None
    festival_slug_hint: str | None = None
    source_id: str | None = None  # Venue's own id for the performance, if any

    @property
    def has_director(self) -> bool:
        return bool(self.director and self.director.strip())
