"""glucosync API — FastAPI application entry point.

Run locally:
    uvicorn glucosync.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from glucosync.config import Settings, get_settings
from glucosync.glucose.service import SyncServices, create_services
from glucosync.routers import access, health, readings, sync

# ---------- Logging ----------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    stream=sys.stdout,
)
logger = logging.getLogger("glucosync")


# ---------- App factory ----------

def create_app(
    settings: Settings | None = None,
    services: SyncServices | None = None,
) -> FastAPI:
    """Build the app.

    ``services`` lets callers (tests, embedding hosts) supply pre-built
    services; otherwise they are created from ``settings`` at startup.
    """
    settings = settings or get_settings()
    logging.getLogger().setLevel(settings.log_level.upper())

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Startup / shutdown hooks."""
        logger.info(
            "Starting glucosync API v%s [%s]",
            settings.app_version,
            settings.environment,
        )
        built = services or await create_services(settings)
        app.state.services = built
        await built.start()
        try:
            yield
        finally:
            await built.stop()
            logger.info("glucosync API shut down")

    app = FastAPI(
        title="glucosync API",
        description=(
            "Bidirectional blood-glucose sync between a vital-signs store "
            "and a care-plan store."
        ),
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.state.settings = settings

    # ---------- Health check ----------
    app.include_router(health.router)

    # ---------- Sync surface ----------
    app.include_router(sync.router)
    app.include_router(access.router)
    app.include_router(readings.router)

    return app


app = create_app()
