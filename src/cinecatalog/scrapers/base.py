"""Base scraper interface for venue adapters."""

from abc import ABC, abstractmethod
from datetime import date

from cinecatalog.schemas.venue import VenueDefinition
from cinecatalog.scrapers.models import RawListing


class BaseScraper(ABC):
    """
    Abstract base class for all venue scraper adapters.

    Adapters live outside this package. Each one describes its venue and
    turns the venue's website into RawListings; everything after that is
    the ingestion pipeline's job.
    """

    venue: VenueDefinition

    @abstractmethod
    async def get_listings(
        self,
        date_from: date,
        date_to: date,
    ) -> list[RawListing]:
        """
        Fetch listings for the given date range.

        Args:
            date_from: Start date (inclusive)
            date_to: End date (inclusive)

        Returns:
            List of raw listings for self.venue

        Raises:
            Should NOT raise exceptions. Return empty list on errors and log warnings.
        """
        pass
