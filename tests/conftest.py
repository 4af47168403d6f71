"""Shared test fixtures."""

import pytest
from fastapi import FastAPI

from cinecatalog.api.routes import admin, health


@pytest.fixture
def test_app() -> FastAPI:
    """Minimal FastAPI app without the APScheduler lifespan, for API tests."""
    app = FastAPI()
    app.include_router(health.router)
    app.include_router(admin.router, prefix="/api")
    return app
