"""Tests for the TMDb API client."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from cinecatalog.exceptions import CatalogUnavailableError
from cinecatalog.services.tmdb_client import TMDbClient, extract_year


# ---------------------------------------------------------------------------
# Sample fixture data
# ---------------------------------------------------------------------------

SAMPLE_SEARCH_RESPONSE = {
    "results": [
        {
            "id": 12345,
            "title": "Nosferatu",
            "original_title": "Nosferatu",
            "release_date": "2024-12-25",
            "poster_path": "/nosferatu.jpg",
            "popularity": 87.5,
        },
        {
            "id": 653,
            "title": "Nosferatu",
            "original_title": "Nosferatu, eine Symphonie des Grauens",
            "release_date": "1922-02-16",
            "poster_path": None,
            "popularity": 12.0,
        },
    ]
}

SAMPLE_DETAILS_RESPONSE = {
    "id": 12345,
    "title": "Nosferatu",
    "original_title": "Nosferatu",
    "release_date": "2024-12-25",
    "runtime": 132,
    "overview": "A gothic tale of obsession.",
    "poster_path": "/nosferatu.jpg",
    "genres": [{"id": 27, "name": "Horror"}, {"id": 14, "name": "Fantasy"}],
    "credits": {
        "crew": [
            {"name": "Robert Eggers", "job": "Director"},
            {"name": "John Smith", "job": "Producer"},
        ],
        "cast": [
            {"name": "Bill Skarsgård"},
            {"name": "Lily-Rose Depp"},
            {"name": "Nicholas Hoult"},
            {"name": "Aaron Taylor-Johnson"},
            {"name": "Emma Corrin"},
            {"name": "Willem Dafoe"},
        ],
    },
    "release_dates": {
        "results": [
            {"iso_3166_1": "US", "release_dates": [{"certification": "R"}]},
            {
                "iso_3166_1": "GB",
                "release_dates": [{"certification": ""}, {"certification": "15"}],
            },
        ]
    },
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def make_http_response(json_data: dict, status_code: int = 200) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = json_data
    if status_code >= 400:
        response.raise_for_status.side_effect = httpx.HTTPStatusError(
            f"HTTP {status_code}", request=MagicMock(), response=MagicMock()
        )
    else:
        response.raise_for_status = MagicMock()
    return response


def make_async_client_ctx(response: MagicMock) -> AsyncMock:
    """Return an async context manager whose .get() always returns *response*."""
    inner = AsyncMock()
    inner.get = AsyncMock(return_value=response)
    ctx = AsyncMock()
    ctx.__aenter__ = AsyncMock(return_value=inner)
    ctx.__aexit__ = AsyncMock(return_value=False)
    return ctx


def make_failing_client_ctx(error: Exception) -> AsyncMock:
    inner = AsyncMock()
    inner.get = AsyncMock(side_effect=error)
    ctx = AsyncMock()
    ctx.__aenter__ = AsyncMock(return_value=inner)
    ctx.__aexit__ = AsyncMock(return_value=False)
    return ctx


# ---------------------------------------------------------------------------
# extract_year
# ---------------------------------------------------------------------------


class TestExtractYear:
    def test_extracts_year_from_valid_date(self) -> None:
        assert extract_year("2024-01-15") == 2024

    def test_returns_none_for_none_input(self) -> None:
        assert extract_year(None) is None

    def test_returns_none_for_empty_string(self) -> None:
        assert extract_year("") is None

    def test_returns_none_for_invalid_string(self) -> None:
        assert extract_year("not-a-date") is None


# ---------------------------------------------------------------------------
# search_by_title
# ---------------------------------------------------------------------------


class TestSearchByTitle:
    async def test_raises_without_api_key(self) -> None:
        client = TMDbClient(api_key="")
        with pytest.raises(CatalogUnavailableError):
            await client.search_by_title("Nosferatu")

    async def test_returns_results_in_catalog_order(self) -> None:
        client = TMDbClient(api_key="test-key")
        ctx = make_async_client_ctx(make_http_response(SAMPLE_SEARCH_RESPONSE))
        with patch("httpx.AsyncClient", return_value=ctx):
            results = await client.search_by_title("Nosferatu")

        assert [r.id for r in results] == [12345, 653]
        assert results[0].year == 2024
        assert results[0].popularity == 87.5
        assert results[1].original_title == "Nosferatu, eine Symphonie des Grauens"
        assert results[1].poster_path is None

    async def test_includes_year_in_params_when_provided(self) -> None:
        client = TMDbClient(api_key="test-key")
        ctx = make_async_client_ctx(make_http_response(SAMPLE_SEARCH_RESPONSE))
        with patch("httpx.AsyncClient", return_value=ctx):
            await client.search_by_title("Nosferatu", year=2024)
        params = ctx.__aenter__.return_value.get.call_args.kwargs["params"]
        assert params["year"] == 2024

    async def test_does_not_include_year_when_not_provided(self) -> None:
        client = TMDbClient(api_key="test-key")
        ctx = make_async_client_ctx(make_http_response(SAMPLE_SEARCH_RESPONSE))
        with patch("httpx.AsyncClient", return_value=ctx):
            await client.search_by_title("Nosferatu")
        params = ctx.__aenter__.return_value.get.call_args.kwargs["params"]
        assert "year" not in params

    async def test_returns_empty_list_when_no_results(self) -> None:
        client = TMDbClient(api_key="test-key")
        ctx = make_async_client_ctx(make_http_response({"results": []}))
        with patch("httpx.AsyncClient", return_value=ctx):
            results = await client.search_by_title("UnknownFilm")
        assert results == []

    async def test_raises_on_http_error(self) -> None:
        client = TMDbClient(api_key="test-key")
        ctx = make_async_client_ctx(make_http_response({}, status_code=500))
        with patch("httpx.AsyncClient", return_value=ctx):
            with pytest.raises(CatalogUnavailableError):
                await client.search_by_title("Nosferatu")

    async def test_raises_on_network_error(self) -> None:
        client = TMDbClient(api_key="test-key")
        ctx = make_failing_client_ctx(httpx.ConnectError("Connection refused"))
        with patch("httpx.AsyncClient", return_value=ctx):
            with pytest.raises(CatalogUnavailableError):
                await client.search_by_title("Nosferatu")

    async def test_uses_configured_language(self) -> None:
        client = TMDbClient(api_key="test-key")
        ctx = make_async_client_ctx(make_http_response(SAMPLE_SEARCH_RESPONSE))
        with patch("httpx.AsyncClient", return_value=ctx):
            await client.search_by_title("Nosferatu")
        params = ctx.__aenter__.return_value.get.call_args.kwargs["params"]
        assert params["language"] == "en-GB"


# ---------------------------------------------------------------------------
# get_details
# ---------------------------------------------------------------------------


class TestGetDetails:
    async def test_returns_details_on_success(self) -> None:
        client = TMDbClient(api_key="test-key")
        ctx = make_async_client_ctx(make_http_response(SAMPLE_DETAILS_RESPONSE))
        with patch("httpx.AsyncClient", return_value=ctx):
            details = await client.get_details(12345)

        assert details.id == 12345
        assert details.runtime == 132
        assert details.directors == ["Robert Eggers"]
        assert details.genres == ["Horror", "Fantasy"]
        assert details.certification == "15"
        assert len(details.cast) == 5

    async def test_appends_credits_and_release_dates(self) -> None:
        client = TMDbClient(api_key="test-key")
        ctx = make_async_client_ctx(make_http_response(SAMPLE_DETAILS_RESPONSE))
        with patch("httpx.AsyncClient", return_value=ctx):
            await client.get_details(12345)
        params = ctx.__aenter__.return_value.get.call_args.kwargs["params"]
        assert params["append_to_response"] == "credits,release_dates"

    async def test_calls_correct_endpoint(self) -> None:
        client = TMDbClient(api_key="test-key")
        ctx = make_async_client_ctx(make_http_response(SAMPLE_DETAILS_RESPONSE))
        with patch("httpx.AsyncClient", return_value=ctx):
            await client.get_details(99)
        url = ctx.__aenter__.return_value.get.call_args.args[0]
        assert url.endswith("/movie/99")

    async def test_raises_on_http_error(self) -> None:
        client = TMDbClient(api_key="test-key")
        ctx = make_async_client_ctx(make_http_response({}, status_code=404))
        with patch("httpx.AsyncClient", return_value=ctx):
            with pytest.raises(CatalogUnavailableError):
                await client.get_details(99999)

    async def test_raises_on_timeout(self) -> None:
        client = TMDbClient(api_key="test-key")
        ctx = make_failing_client_ctx(httpx.ReadTimeout("Timeout"))
        with patch("httpx.AsyncClient", return_value=ctx):
            with pytest.raises(CatalogUnavailableError):
                await client.get_details(12345)


# ---------------------------------------------------------------------------
# extract_* helpers
# ---------------------------------------------------------------------------


class TestExtractDirectors:
    def test_extracts_director_names(self) -> None:
        client = TMDbClient(api_key="key")
        directors = client.extract_directors(SAMPLE_DETAILS_RESPONSE["credits"])
        assert directors == ["Robert Eggers"]

    def test_returns_empty_list_when_crew_missing(self) -> None:
        client = TMDbClient(api_key="key")
        assert client.extract_directors({}) == []

    def test_returns_multiple_directors(self) -> None:
        client = TMDbClient(api_key="key")
        credits = {
            "crew": [
                {"name": "Stanley Donen", "job": "Director"},
                {"name": "Gene Kelly", "job": "Director"},
                {"name": "Someone Else", "job": "Cinematographer"},
            ]
        }
        assert client.extract_directors(credits) == ["Stanley Donen", "Gene Kelly"]


class TestExtractCast:
    def test_extracts_top_five_by_default(self) -> None:
        client = TMDbClient(api_key="key")
        cast = client.extract_cast(SAMPLE_DETAILS_RESPONSE["credits"])
        assert cast[0] == "Bill Skarsgård"
        assert len(cast) == 5

    def test_respects_n_parameter(self) -> None:
        client = TMDbClient(api_key="key")
        assert client.extract_cast(SAMPLE_DETAILS_RESPONSE["credits"], n=1) == ["Bill Skarsgård"]

    def test_returns_empty_list_when_cast_missing(self) -> None:
        client = TMDbClient(api_key="key")
        assert client.extract_cast({}) == []


class TestExtractCertification:
    def test_skips_empty_certifications(self) -> None:
        client = TMDbClient(api_key="key")
        result = client.extract_certification(SAMPLE_DETAILS_RESPONSE["release_dates"])
        assert result == "15"

    def test_other_country(self) -> None:
        client = TMDbClient(api_key="key")
        result = client.extract_certification(
            SAMPLE_DETAILS_RESPONSE["release_dates"], country="US"
        )
        assert result == "R"

    def test_returns_none_when_country_missing(self) -> None:
        client = TMDbClient(api_key="key")
        assert client.extract_certification({"results": []}) is None
