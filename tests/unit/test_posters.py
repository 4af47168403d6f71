"""Tests for the background poster backfill."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

from cinecatalog.services.posters import PosterBackfill
from tests.fakes import make_film


def make_session_factory() -> tuple[MagicMock, AsyncMock]:
    db = AsyncMock()
    ctx = AsyncMock()
    ctx.__aenter__ = AsyncMock(return_value=db)
    ctx.__aexit__ = AsyncMock(return_value=False)
    return MagicMock(return_value=ctx), db


class TestPosterBackfill:
    async def test_writes_found_poster(self) -> None:
        resolver = MagicMock()
        resolver.find_poster = AsyncMock(return_value="/shining.jpg")
        factory, db = make_session_factory()
        backfill = PosterBackfill(resolver, factory)

        assert backfill.schedule(make_film("The Shining", 1980, external_catalog_id=694))
        await backfill.wait()

        resolver.find_poster.assert_awaited_once_with("The Shining", 1980, 694)
        db.execute.assert_awaited_once()
        db.commit.assert_awaited_once()

    async def test_skips_film_with_poster(self) -> None:
        resolver = MagicMock()
        resolver.find_poster = AsyncMock()
        factory, _ = make_session_factory()
        backfill = PosterBackfill(resolver, factory)
        film = make_film("Nosferatu", 2024)
        film.poster_path = "/nosferatu.jpg"

        assert not backfill.schedule(film)
        await backfill.wait()

        resolver.find_poster.assert_not_awaited()

    async def test_each_film_scheduled_once(self) -> None:
        resolver = MagicMock()
        resolver.find_poster = AsyncMock(return_value=None)
        factory, _ = make_session_factory()
        backfill = PosterBackfill(resolver, factory)
        film = make_film("Nosferatu", 2024, id="nosferatu")

        assert backfill.schedule(film)
        assert not backfill.schedule(film)
        await backfill.wait()

        assert resolver.find_poster.await_count == 1
        factory.assert_not_called()

    async def test_resolver_error_is_contained(self) -> None:
        resolver = MagicMock()
        resolver.find_poster = AsyncMock(side_effect=RuntimeError("rate limited"))
        factory, _ = make_session_factory()
        backfill = PosterBackfill(resolver, factory)

        backfill.schedule(make_film("Carol", 2015))
        await backfill.wait()

        factory.assert_not_called()

    async def test_slow_lookups_are_cancelled(self) -> None:
        async def never(*args):
            await asyncio.sleep(3600)

        resolver = MagicMock()
        resolver.find_poster = never
        factory, _ = make_session_factory()
        backfill = PosterBackfill(resolver, factory)

        backfill.schedule(make_film("Shoah", 1985))
        await backfill.wait(timeout=0.01)

        factory.assert_not_called()
