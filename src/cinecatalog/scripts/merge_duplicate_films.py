"""Merge films that share a title key into a single canonical film.

Keeps the film with an external catalog id, then one with a poster, then
the oldest. Run with --dry-run first to see what would be merged.
"""

import argparse
import asyncio
import logging
from collections import defaultdict

from cinecatalog.database import AsyncSessionLocal
from cinecatalog.models.film import Film
from cinecatalog.repositories.films import FilmRepository
from cinecatalog.utils.text import title_key

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
logger = logging.getLogger(__name__)


def _keep_order(film: Film) -> tuple:
    return (
        film.external_catalog_id is None,
        film.poster_path is None,
        film.created_at,
        film.id,
    )


def find_duplicate_groups(films: list[Film]) -> list[list[Film]]:
    """
    Group films by title key and year, survivor first.

    Films with different catalog ids are distinct films that happen to share
    a title and are never grouped together.
    """
    by_key: dict[tuple[str, int | None], list[Film]] = defaultdict(list)
    for film in films:
        key = title_key(film.title)
        if key:
            by_key[(key, film.year)].append(film)

    groups = []
    for members in by_key.values():
        catalog_ids = {f.external_catalog_id for f in members if f.external_catalog_id is not None}
        if len(members) < 2 or len(catalog_ids) > 1:
            continue
        groups.append(sorted(members, key=_keep_order))
    return groups


async def merge_duplicates(dry_run: bool = False) -> None:
    async with AsyncSessionLocal() as db:
        repo = FilmRepository(db)
        films = await repo.load_all()
        groups = find_duplicate_groups(films)
        logger.info(f"Found {len(groups)} duplicate group(s) among {len(films)} films")

        # Capture ids up front; merges expire the loaded objects
        plans = [(group[0].id, group[0].title, [f.id for f in group[1:]]) for group in groups]

        merged = 0
        for keep_id, title, drop_ids in plans:
            logger.info(f"'{title}': keeping {keep_id}, merging {len(drop_ids)}")
            if dry_run:
                continue
            for drop_id in drop_ids:
                await repo.merge_films(drop_id, keep_id)
                merged += 1
            await db.commit()

    logger.info(f"Done: {merged} film(s) merged{' (dry run)' if dry_run else ''}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--dry-run", action="store_true")
    args = parser.parse_args()
    asyncio.run(merge_duplicates(args.dry_run))
