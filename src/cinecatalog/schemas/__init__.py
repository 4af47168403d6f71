"""Pydantic schemas for API requests and responses."""

from cinecatalog.schemas.ingest import (
    BatchReportResponse,
    GuardWarningResponse,
    IngestionDiffResponse,
    RawListingIn,
)
from cinecatalog.schemas.festival import TaggingResultResponse, WatchdogResultResponse
from cinecatalog.schemas.venue import VenueAddress, VenueDefinition

__all__ = [
    "BatchReportResponse",
    "GuardWarningResponse",
    "IngestionDiffResponse",
    "RawListingIn",
    "TaggingResultResponse",
    "VenueAddress",
    "VenueDefinition",
    "WatchdogResultResponse",
]
