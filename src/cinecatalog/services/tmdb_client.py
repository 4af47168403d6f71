"""TMDb API client: the external film catalog consulted for matching."""

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx
from aiolimiter import AsyncLimiter

from cinecatalog.config import settings
from cinecatalog.exceptions import CatalogUnavailableError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CatalogSearchResult:
    id: int
    title: str
    original_title: str | None
    year: int | None
    poster_path: str | None
    popularity: float


@dataclass(frozen=True)
class CatalogDetails:
    id: int
    title: str
    original_title: str | None
    year: int | None
    runtime: int | None
    directors: list[str] = field(default_factory=list)
    cast: list[str] = field(default_factory=list)
    genres: list[str] = field(default_factory=list)
    synopsis: str | None = None
    poster_path: str | None = None
    certification: str | None = None


def extract_year(release_date: str | None) -> int | None:
    """Extract year from a TMDb release date string."""
    if not release_date:
        return None
    try:
        return int(release_date[:4])
    except (ValueError, IndexError):
        return None


class TMDbClient:
    """
    Client for The Movie Database (TMDb) API.

    Every request goes through one token bucket so concurrent venue batches
    share the upstream quota. Failures raise CatalogUnavailableError; the
    caller decides how to degrade.
    """

    def __init__(
        self,
        api_key: str | None = None,
        limiter: AsyncLimiter | None = None,
        base_url: str | None = None,
    ) -> None:
        """
        Initialize TMDb client.

        Args:
            api_key: TMDb API key (uses settings if not provided)
            limiter: Shared rate limiter (one per ingestion run)
            base_url: API root (uses settings if not provided)
        """
        self.api_key = api_key if api_key is not None else settings.tmdb_api_key
        self.base_url = base_url or settings.tmdb_base_url
        self.limiter = limiter or AsyncLimiter(
            settings.catalog_rate_limit, settings.catalog_rate_period
        )
        if not self.api_key:
            logger.warning("TMDb API key not configured")

    async def _get(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        if not self.api_key:
            raise CatalogUnavailableError("TMDb API key not configured")

        query = {"api_key": self.api_key, "language": settings.tmdb_language, **params}
        try:
            async with self.limiter:
                async with httpx.AsyncClient(timeout=settings.http_timeout) as client:
                    response = await client.get(f"{self.base_url}{path}", params=query)
                    response.raise_for_status()
                    return response.json()
        except httpx.HTTPError as e:
            raise CatalogUnavailableError(f"TMDb request {path} failed: {e}") from e
        except ValueError as e:
            raise CatalogUnavailableError(f"TMDb returned invalid JSON for {path}") from e

    async def search_by_title(
        self, title: str, year: int | None = None
    ) -> list[CatalogSearchResult]:
        """
        Search for films by title.

        Args:
            title: Film title
            year: Release year (optional, narrows results)

        Returns:
            Results in TMDb relevance order, possibly empty

        Raises:
            CatalogUnavailableError: On transport/HTTP errors or missing API key
        """
        params: dict[str, Any] = {"query": title, "include_adult": "false"}
        if year:
            params["year"] = year

        data = await self._get("/search/movie", params)
        results = [
            CatalogSearchResult(
                id=item["id"],
                title=item.get("title") or "",
                original_title=item.get("original_title"),
                year=extract_year(item.get("release_date")),
                poster_path=item.get("poster_path"),
                popularity=float(item.get("popularity") or 0.0),
            )
            for item in data.get("results", [])
            if item.get("id") is not None
        ]
        if not results:
            logger.info(f"No TMDb results for: {title} ({year})")
        return results

    async def get_details(self, tmdb_id: int) -> CatalogDetails:
        """
        Get detailed film information including credits and UK certificate.

        Raises:
            CatalogUnavailableError: On transport/HTTP errors or missing API key
        """
        data = await self._get(
            f"/movie/{tmdb_id}",
            {"append_to_response": "credits,release_dates"},
        )
        credits = data.get("credits", {})
        return CatalogDetails(
            id=data.get("id", tmdb_id),
            title=data.get("title") or "",
            original_title=data.get("original_title"),
            year=extract_year(data.get("release_date")),
            runtime=data.get("runtime") or None,
            directors=self.extract_directors(credits),
            cast=self.extract_cast(credits),
            genres=[genre["name"] for genre in data.get("genres", []) if genre.get("name")],
            synopsis=data.get("overview") or None,
            poster_path=data.get("poster_path"),
            certification=self.extract_certification(data.get("release_dates", {})),
        )

    def extract_directors(self, credits: dict[str, Any]) -> list[str]:
        crew = credits.get("crew", [])
        return [person["name"] for person in crew if person.get("job") == "Director"]

    def extract_cast(self, credits: dict[str, Any], n: int = 5) -> list[str]:
        """Top-billed cast member names, up to n."""
        cast = credits.get("cast", [])
        return [person["name"] for person in cast[:n] if person.get("name")]

    def extract_certification(self, release_dates: dict[str, Any], country: str = "GB") -> str | None:
        """First non-empty certification for the given country."""
        for entry in release_dates.get("results", []):
            if entry.get("iso_3166_1") != country:
                continue
            for release in entry.get("release_dates", []):
                if release.get("certification"):
                    return release["certification"]
        return None
