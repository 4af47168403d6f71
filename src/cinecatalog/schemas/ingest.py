"""Pydantic schemas for the operator ingestion endpoint."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from cinecatalog.scrapers.models import RawListing


class RawListingIn(BaseModel):
    """
    One raw listing posted by an operator.

    Title, start time and booking URL are optional here so that a bad row is
    rejected by listing validation instead of failing the whole request.
    """

    raw_title: str | None = None
    start_time: datetime | None = None
    booking_url: str | None = None
    format: str | None = None
    year: int | None = None
    director: str | None = None
    poster_ref: str | None = None
    festival_slug_hint: str | None = None
    source_id: str | None = None

    def to_listing(self, venue_id: str) -> RawListing:
        return RawListing(
            venue_id=venue_id,
            raw_title=self.raw_title or "",
            start_time=self.start_time,
            booking_url=self.booking_url,
            format=self.format,
            year=self.year,
            director=self.director,
            poster_ref=self.poster_ref,
            festival_slug_hint=self.festival_slug_hint,
            source_id=self.source_id,
        )


class GuardWarningResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    code: str
    message: str
    blocking: bool


class IngestionDiffResponse(BaseModel):
    """Anomaly guard verdict for one venue batch."""

    model_config = ConfigDict(from_attributes=True)

    current_count: int
    historical_baseline: float | None
    percent_delta: float | None
    suspicious_hour_count: int
    blocked: bool
    warnings: list[GuardWarningResponse]


class BatchReportResponse(BaseModel):
    """Operator report for one venue batch."""

    model_config = ConfigDict(from_attributes=True)

    venue_id: str
    added: int
    updated: int
    failed: int
    rejected_by_validation: int
    blocked_by_anomaly_guard: bool
    warnings: list[str]
    diff: IngestionDiffResponse | None = None
