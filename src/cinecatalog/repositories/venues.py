"""Venue rows maintained from scraper adapter metadata."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from cinecatalog.models.venue import Venue
from cinecatalog.schemas.venue import VenueDefinition

logger = logging.getLogger(__name__)


async def ensure_venue_exists(db: AsyncSession, definition: VenueDefinition) -> Venue:
    """
    Create the venue row for an adapter, or refresh its metadata.

    A missing address part never erases a known one.
    """
    venue = await db.get(Venue, definition.id)
    if venue is None:
        venue = Venue(
            id=definition.id,
            name=definition.name,
            short_name=definition.short_name,
            chain=definition.chain,
            website=definition.website,
            features=list(definition.features),
            is_active=True,
        )
        venue.address_info = definition.address
        db.add(venue)
        await db.flush()
        logger.info(f"Created venue {definition.id}")
        return venue

    venue.name = definition.name
    venue.short_name = definition.short_name
    venue.chain = definition.chain or venue.chain
    venue.website = definition.website or venue.website
    if definition.features:
        venue.features = list(definition.features)
    if definition.address is not None:
        current = venue.address_info
        if current is None:
            venue.address_info = definition.address
        else:
            venue.address_info = current.model_copy(
                update=definition.address.model_dump(exclude_none=True)
            )
    await db.flush()
    return venue


async def ensure_venue_row(db: AsyncSession, definition: VenueDefinition) -> Venue:
    """Create the venue row if it is missing; an existing row is left untouched."""
    venue = await db.get(Venue, definition.id)
    if venue is not None:
        return venue
    return await ensure_venue_exists(db, definition)
