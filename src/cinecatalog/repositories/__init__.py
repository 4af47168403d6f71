"""Database access for the ingestion pipeline, one class per aggregate."""

from cinecatalog.repositories.festivals import FestivalRepository
from cinecatalog.repositories.films import FilmRepository, MergeResult
from cinecatalog.repositories.scrape_runs import ScrapeRunRepository
from cinecatalog.repositories.venues import ensure_venue_exists, ensure_venue_row

__all__ = [
    "FestivalRepository",
    "FilmRepository",
    "MergeResult",
    "ScrapeRunRepository",
    "ensure_venue_exists",
    "ensure_venue_row",
]
