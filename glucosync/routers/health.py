"""Health check endpoint."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter

from glucosync.dependencies import AppSettings, Services
from glucosync.services.postgres import get_pool

router = APIRouter(tags=["system"])
logger = logging.getLogger("glucosync.health")


@router.get("/health")
async def health_check(settings: AppSettings, services: Services) -> dict:
    """Liveness probe. Returns 200 if the API process is up.

    Probes the database when the care-plan store is Postgres-backed.
    """
    db_ok = True
    if services.uses_database:
        try:
            pool = get_pool()
            async with pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
        except Exception as exc:
            db_ok = False
            logger.warning("Health check DB probe failed: %s", exc)

    status = services.state.snapshot()
    return {
        "status": "healthy" if db_ok else "degraded",
        "version": settings.app_version,
        "environment": settings.environment,
        "care_plan_store": "postgres" if services.uses_database else "memory",
        "database": ("connected" if db_ok else "unreachable") if services.uses_database else None,
        "vital_signs_authorized": services.vital_signs.is_authorized,
        "is_syncing": status.is_syncing,
        "last_sync_date": status.last_sync_date.isoformat() if status.last_sync_date else None,
        "last_error": status.last_error,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
