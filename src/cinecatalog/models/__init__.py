"""SQLAlchemy ORM models."""

from cinecatalog.models.base import Base
from cinecatalog.models.festival import ConfidenceStrategy, Festival, FestivalScreening, ProbeSignal
from cinecatalog.models.film import Film
from cinecatalog.models.scrape_run import ScrapeRun, ScrapeRunStatus
from cinecatalog.models.screening import Screening
from cinecatalog.models.venue import Venue

__all__ = [
    "Base",
    "ConfidenceStrategy",
    "Festival",
    "FestivalScreening",
    "Film",
    "ProbeSignal",
    "ScrapeRun",
    "ScrapeRunStatus",
    "Screening",
    "Venue",
]
