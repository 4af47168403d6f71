"""Scraper registry mapping venue ids to adapter classes."""

from typing import Type

from cinecatalog.scrapers.base import BaseScraper
from cinecatalog.scrapers.models import RawListing

# Registry mapping venue ids to scraper classes. Adapters register themselves.
SCRAPER_REGISTRY: dict[str, Type[BaseScraper]] = {}


def register_scraper(scraper_class: Type[BaseScraper]) -> Type[BaseScraper]:
    """
    Class decorator that adds an adapter to the registry under its venue id.

    Raises:
        ValueError: If another adapter already claims the same venue
    """
    venue_id = scraper_class.venue.id
    existing = SCRAPER_REGISTRY.get(venue_id)
    if existing is not None and existing is not scraper_class:
        raise ValueError(f"Venue {venue_id!r} already registered by {existing.__name__}")
    SCRAPER_REGISTRY[venue_id] = scraper_class
    return scraper_class


def get_scraper(venue_id: str) -> BaseScraper | None:
    """Get a scraper instance for a venue, or None if no adapter is registered."""
    scraper_class = SCRAPER_REGISTRY.get(venue_id)
    if scraper_class:
        return scraper_class()
    return None


def get_scrapers() -> list[BaseScraper]:
    """Instantiate every registered adapter."""
    return [scraper_class() for scraper_class in SCRAPER_REGISTRY.values()]


__all__ = [
    "SCRAPER_REGISTRY",
    "BaseScraper",
    "RawListing",
    "get_scraper",
    "get_scrapers",
    "register_scraper",
]
