"""Retry catalog matching for films that have no external catalog id."""

import asyncio
import logging

from cinecatalog.database import AsyncSessionLocal
from cinecatalog.repositories.films import FilmRepository
from cinecatalog.services.catalog_match import CatalogMatcher
from cinecatalog.services.film_matcher import (
    FilmResolver,
    FilmTitleIndex,
    ResolutionAction,
    ResolutionHints,
)
from cinecatalog.services.title_normalizer import is_non_film, normalize_title
from cinecatalog.services.tmdb_client import TMDbClient

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
logger = logging.getLogger(__name__)


async def rematch() -> None:
    tmdb = TMDbClient()
    if not tmdb.api_key:
        logger.error("TMDB_API_KEY not set, cannot rematch")
        return

    async with AsyncSessionLocal() as db:
        repo = FilmRepository(db)
        unmatched = [
            (f.title, f.year, f.directors[0] if f.directors else None)
            for f in await repo.load_unmatched()
        ]
        logger.info(f"Found {len(unmatched)} unmatched films")

        index = await FilmTitleIndex.load(repo)
        resolver = FilmResolver(repo, CatalogMatcher(tmdb), index, retry_unmatched=True)

        counts = {ResolutionAction.REMATCHED: 0, ResolutionAction.MERGED: 0}
        for title, year, director in unmatched:
            if is_non_film(title):
                continue
            normalized = normalize_title(title)
            if index.get(normalized.match_key) is None:
                logger.info(f"Skipping '{title}': title does not normalize to its own key")
                continue
            try:
                resolution = await resolver.resolve(
                    normalized, ResolutionHints(year=year, director=director)
                )
                await db.commit()
            except Exception as e:
                await db.rollback()
                await index.refresh(repo)
                logger.error(f"Error rematching '{title}': {e}", exc_info=True)
                continue
            if resolution.action in counts:
                counts[resolution.action] += 1

    logger.info(
        f"Rematch complete: {counts[ResolutionAction.REMATCHED]} matched, "
        f"{counts[ResolutionAction.MERGED]} merged into existing films"
    )


if __name__ == "__main__":
    asyncio.run(rematch())
