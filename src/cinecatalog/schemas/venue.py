"""Pydantic schemas for venue data."""

from pydantic import BaseModel, ConfigDict, Field


class VenueAddress(BaseModel):
    """Venue postal address. Every part is optional; adapters often know only the area."""

    model_config = ConfigDict(extra="ignore")

    street: str | None = None
    area: str | None = None
    postcode: str | None = None
    city: str | None = None


class VenueDefinition(BaseModel):
    """Venue metadata supplied by a scraper adapter."""

    id: str
    name: str
    short_name: str
    chain: str | None = None
    website: str | None = None
    address: VenueAddress | None = None
    features: list[str] = Field(default_factory=list)
