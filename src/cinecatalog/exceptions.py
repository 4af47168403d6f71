"""Exception types raised by the ingestion pipeline and its collaborators."""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from cinecatalog.services.anomaly_guard import IngestionDiffReport


class CineCatalogError(Exception):
    """Base class for all cinecatalog errors."""


class ListingValidationError(CineCatalogError):
    """A single raw listing is unusable and is rejected; the batch continues."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class CatalogUnavailableError(CineCatalogError):
    """The external film catalog could not be reached or returned an error."""


class AnomalyBlockedError(CineCatalogError):
    """A venue's batch was rejected by the anomaly guard. Nothing was written."""

    def __init__(self, venue_id: str, report: "IngestionDiffReport") -> None:
        rules = ", ".join(report.rule_codes) or "unknown"
        super().__init__(f"Batch for {venue_id} blocked by anomaly guard ({rules})")
        self.venue_id = venue_id
        self.report = report
