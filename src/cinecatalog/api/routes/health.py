"""Health check endpoint."""

from fastapi import APIRouter

from cinecatalog.scrapers import SCRAPER_REGISTRY

router = APIRouter()


@router.get("/health", tags=["health"])
async def health_check() -> dict[str, str | int]:
    """
    Health check endpoint.

    Returns:
        Status message and the number of venues with a registered scraper
    """
    return {"status": "ok", "venues": len(SCRAPER_REGISTRY)}
