"""Seed script to populate the London festival reference data for one edition year."""

import argparse
import asyncio
from datetime import date

from sqlalchemy import select

from cinecatalog.database import AsyncSessionLocal
from cinecatalog.models.festival import ConfidenceStrategy, Festival, ProbeSignal

AUTO = ConfidenceStrategy.AUTO
TITLE = ConfidenceStrategy.TITLE

# Dates are for the 2026 editions; other years keep month and day.
FESTIVALS = [
    {
        "slug_base": "bfi-lff",
        "name": "BFI London Film Festival",
        "start": (10, 7),
        "end": (10, 18),
        "venues": ["bfi-southbank", "bfi-imax", "curzon-soho", "curzon-mayfair"],
        "strategy": TITLE,
        "title_keywords": ["lff", "london film festival"],
        "url_patterns": [r"/lff/", r"london-film-festival"],
        "typical_months": [10],
        "probe_url": "https://www.bfi.org.uk/london-film-festival/programme",
        "probe_signal": ProbeSignal.CONTENT_HASH,
    },
    {
        "slug_base": "frightfest",
        "name": "FrightFest",
        "start": (8, 27),
        "end": (8, 31),
        "venues": ["prince-charles"],
        "strategy": AUTO,
        "typical_months": [8],
        "probe_url": "https://frightfest{yy}.eventive.org/films",
        "probe_signal": ProbeSignal.PAGE_EXISTS,
    },
    {
        "slug_base": "raindance",
        "name": "Raindance Film Festival",
        "start": (6, 17),
        "end": (6, 28),
        "venues": ["curzon-soho"],
        "strategy": TITLE,
        "title_keywords": ["raindance"],
        "url_patterns": [r"raindance\.org"],
        "typical_months": [6],
        "probe_url": "https://raindance.org/festival/programme",
        "probe_signal": ProbeSignal.CONTENT_HASH,
    },
    {
        "slug_base": "bfi-flare",
        "name": "BFI Flare",
        "start": (3, 18),
        "end": (3, 29),
        "venues": ["bfi-southbank"],
        "strategy": TITLE,
        "title_keywords": ["flare", "bfi flare"],
        "url_patterns": [r"/flare/", r"whatson\.bfi\.org\.uk/flare"],
        "typical_months": [3],
        "probe_url": "https://whatson.bfi.org.uk/flare/Online/default.asp",
        "probe_signal": ProbeSignal.CONTENT_HASH,
    },
    {
        "slug_base": "lsff",
        "name": "London Short Film Festival",
        "start": (1, 23),
        "end": (2, 1),
        "venues": ["ica", "bfi-southbank", "rio-dalston", "rich-mix"],
        "strategy": TITLE,
        "title_keywords": ["lsff", "london short film festival", "short film festival"],
        "url_patterns": [r"shortfilms\.org\.uk"],
        "typical_months": [1, 2],
        "probe_url": "https://shortfilms.org.uk/programme",
        "probe_signal": ProbeSignal.CONTENT_HASH,
    },
    {
        "slug_base": "lkff",
        "name": "London Korean Film Festival",
        "start": (11, 5),
        "end": (11, 26),
        "venues": ["bfi-southbank", "cine-lumiere", "ica"],
        "strategy": TITLE,
        "title_keywords": ["lkff", "korean film festival", "london korean"],
        "url_patterns": [r"koreanfilm\.co\.uk"],
        "typical_months": [11],
        "probe_url": "https://koreanfilm.co.uk/programme",
        "probe_signal": ProbeSignal.CONTENT_HASH,
    },
    {
        "slug_base": "sundance-london",
        "name": "Sundance Film Festival: London",
        "start": (5, 28),
        "end": (5, 31),
        "venues": ["curzon-soho", "picturehouse-central"],
        "strategy": TITLE,
        "title_keywords": ["sundance", "sundance london", "sundance:"],
        "url_patterns": [r"sundance\.org"],
        "typical_months": [5],
        "probe_url": "https://www.sundance.org/festivals/london",
        "probe_signal": ProbeSignal.CONTENT_HASH,
    },
    {
        "slug_base": "open-city",
        "name": "Open City Documentary Festival",
        "start": (9, 9),
        "end": (9, 13),
        "venues": ["ica", "close-up-cinema", "barbican", "rich-mix"],
        "strategy": TITLE,
        "title_keywords": ["open city", "open city docs"],
        "url_patterns": [r"opencitylondon\.com"],
        "typical_months": [4, 9],
        "probe_url": "https://opencitylondon.com/festival/full-programme",
        "probe_signal": ProbeSignal.CONTENT_HASH,
    },
    {
        "slug_base": "eeff",
        "name": "East End Film Festival",
        "start": (7, 2),
        "end": (7, 12),
        "venues": ["genesis", "rio-dalston", "rich-mix"],
        "strategy": TITLE,
        "title_keywords": ["eeff", "east end film festival", "east end film"],
        "url_patterns": [r"eastendfilmfestival\.com"],
        "typical_months": [7],
        "probe_url": "https://eastendfilmfestival.com/programme",
        "probe_signal": ProbeSignal.CONTENT_HASH,
    },
    {
        "slug_base": "ukjff",
        "name": "UK Jewish Film Festival",
        "start": (11, 11),
        "end": (11, 22),
        "venues": ["barbican", "curzon-soho"],
        "strategy": TITLE,
        "title_keywords": ["ukjff", "jewish film", "uk jewish film"],
        "url_patterns": [r"ukjewishfilm", r"eventive\.org"],
        "typical_months": [11],
        "probe_url": "https://ukjewishfilmfestival{year}.eventive.org/films",
        "probe_signal": ProbeSignal.PAGE_EXISTS,
    },
    {
        "slug_base": "liff",
        "name": "London Indian Film Festival",
        "start": (6, 25),
        "end": (7, 6),
        "venues": ["genesis"],
        "strategy": AUTO,
        "typical_months": [6, 7],
        "probe_url": "https://liff.org/programme",
        "probe_signal": ProbeSignal.CONTENT_HASH,
    },
    {
        "slug_base": "docnroll",
        "name": "Doc'n Roll Film Festival",
        "start": (10, 28),
        "end": (11, 9),
        "venues": ["barbican", "bfi-southbank", "rio-dalston"],
        "strategy": TITLE,
        "title_keywords": ["doc'n roll", "docnroll", "doc n roll"],
        "url_patterns": [r"docnrollfestival\.com"],
        "typical_months": [10, 11],
        "probe_url": "https://www.docnrollfestival.com/programme",
        "probe_signal": ProbeSignal.CONTENT_HASH,
    },
    {
        "slug_base": "liaf",
        "name": "London International Animation Festival",
        "start": (12, 3),
        "end": (12, 6),
        "venues": ["barbican", "close-up-cinema", "garden"],
        "strategy": TITLE,
        "title_keywords": ["liaf", "animation festival", "london international animation"],
        "url_patterns": [r"liaf\.org\.uk"],
        "typical_months": [11, 12],
        "probe_url": "https://liaf.org.uk/programme",
        "probe_signal": ProbeSignal.CONTENT_HASH,
    },
]


def build_festival(data: dict, year: int) -> Festival:
    """Build the Festival row for one edition year."""
    return Festival(
        slug=f"{data['slug_base']}-{year}",
        name=f"{data['name']} {year}",
        venues=list(data["venues"]),
        start_date=date(year, *data["start"]),
        end_date=date(year, *data["end"]),
        confidence_strategy=data["strategy"],
        title_keywords=list(data.get("title_keywords", [])),
        url_patterns=list(data.get("url_patterns", [])),
        typical_months=list(data["typical_months"]),
        is_active=True,
        probe_url=data.get("probe_url"),
        probe_signal=data.get("probe_signal", ProbeSignal.CONTENT_HASH),
        programme_announced=False,
    )


async def seed_festivals(year: int) -> None:
    """Seed the database with one edition of every festival."""
    async with AsyncSessionLocal() as session:
        for data in FESTIVALS:
            festival = build_festival(data, year)

            # Check if festival already exists
            query = select(Festival).where(Festival.slug == festival.slug)
            result = await session.execute(query)
            if result.scalar_one_or_none():
                print(f"Festival {festival.slug} already exists, skipping")
                continue

            session.add(festival)
            print(f"Added festival: {festival.name}")

        await session.commit()
        print("Festival seeding complete")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--year", type=int, default=date.today().year)
    args = parser.parse_args()
    asyncio.run(seed_festivals(args.year))
