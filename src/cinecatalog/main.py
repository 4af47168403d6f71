"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from fastapi import FastAPI

from cinecatalog.api.routes import admin, health
from cinecatalog.config import settings
from cinecatalog.tasks.festival_jobs import run_reverse_tagging, run_watchdog
from cinecatalog.tasks.ingest_job import run_ingestion

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Startup: configure and start the scheduler
    scheduler = AsyncIOScheduler(timezone=settings.local_timezone)
    scheduler.add_job(
        run_ingestion,
        trigger=CronTrigger(hour=3, minute=0),
        id="daily_ingestion",
        name="Daily ingestion of all venues",
        replace_existing=True,
    )
    scheduler.add_job(
        run_reverse_tagging,
        trigger=CronTrigger(hour=6, minute=0),
        id="festival_reverse_tagging",
        name="Reverse-tag festival screenings",
        replace_existing=True,
    )
    scheduler.add_job(
        run_watchdog,
        trigger=CronTrigger(hour="*/6", minute=15),
        id="festival_watchdog",
        name="Festival programme watchdog",
        replace_existing=True,
    )
    scheduler.start()
    logger.info("Scheduler started: ingestion 03:00, reverse tagging 06:00, watchdog every 6h")

    yield

    # Shutdown: stop the scheduler gracefully
    scheduler.shutdown(wait=False)
    logger.info("Scheduler shut down")


# Create FastAPI app
app = FastAPI(
    title="CineCatalog API",
    description="Entity resolution and ingestion for cinema listings",
    version="0.1.0",
    lifespan=lifespan,
)

# Include routers
app.include_router(health.router)
app.include_router(admin.router, prefix="/api", tags=["admin"])
