"""Vital-signs authorization status and request endpoints."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter

from glucosync.dependencies import Services, http_error
from glucosync.glucose.errors import AccessError
from glucosync.models.base import ErrorDetail
from glucosync.models.sync import AccessRead

router = APIRouter(prefix="/access", tags=["access"])
logger = logging.getLogger("glucosync.routers.access")


def _access_view(services: Services, background_wake: bool | None = None) -> dict:
    store = services.vital_signs
    status = store.authorization_status()
    return {
        "metric": store.metric_id,
        "available": store.is_available(),
        "status": status.value,
        "authorized": store.is_authorized,
        "background_wake": background_wake,
        "last_error": str(store.last_access_error) if store.last_access_error else None,
    }


@router.get("", response_model=AccessRead)
async def get_access(services: Services) -> Any:
    return _access_view(services)


@router.post("", response_model=AccessRead, responses={503: {"model": ErrorDetail}})
async def request_access(services: Services) -> Any:
    """Request read/write access, then retry background wake registration."""
    try:
        await services.vital_signs.request_access()
    except AccessError as exc:
        raise http_error(exc) from exc

    background_wake: bool | None = None
    if services.config.sync.background_wake:
        background_wake = await services.engine.enable_background_wake()
    return _access_view(services, background_wake)
