"""Sync trigger and status endpoints."""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any

from fastapi import APIRouter

from glucosync.dependencies import Services, http_error
from glucosync.glucose.errors import GlucoseSyncError
from glucosync.models.base import ErrorDetail
from glucosync.models.sync import SyncRunRead, SyncStatusRead

router = APIRouter(prefix="/sync", tags=["sync"])
logger = logging.getLogger("glucosync.routers.sync")

_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    403: {"model": ErrorDetail},
    404: {"model": ErrorDetail},
    502: {"model": ErrorDetail},
}


def _run_response(services: Services, reports: list) -> dict:
    return {
        "reports": [asdict(r) for r in reports],
        "status": asdict(services.state.snapshot()),
    }


@router.get("/status", response_model=SyncStatusRead)
async def sync_status(services: Services) -> Any:
    return asdict(services.state.snapshot())


@router.post("", response_model=SyncRunRead, responses=_ERROR_RESPONSES)
async def run_bidirectional_sync(services: Services) -> Any:
    """Vital-signs → care plan, then care plan → vital-signs."""
    try:
        reports = await services.engine.perform_bidirectional_sync()
    except GlucoseSyncError as exc:
        logger.warning("Bidirectional sync failed: %s", exc)
        raise http_error(exc) from exc
    return _run_response(services, reports)


@router.post("/vital-to-care-plan", response_model=SyncRunRead, responses=_ERROR_RESPONSES)
async def run_vital_to_care_plan(services: Services) -> Any:
    try:
        report = await services.engine.sync_vital_to_care_plan()
    except GlucoseSyncError as exc:
        logger.warning("Vital-signs → care-plan sync failed: %s", exc)
        raise http_error(exc) from exc
    return _run_response(services, [report])


@router.post("/care-plan-to-vital", response_model=SyncRunRead, responses=_ERROR_RESPONSES)
async def run_care_plan_to_vital(services: Services) -> Any:
    try:
        report = await services.engine.sync_care_plan_to_vital()
    except GlucoseSyncError as exc:
        logger.warning("Care-plan → vital-signs sync failed: %s", exc)
        raise http_error(exc) from exc
    return _run_response(services, [report])
