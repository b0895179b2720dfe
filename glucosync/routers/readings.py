"""Manual reading entry and per-store reading listings."""

from __future__ import annotations

import logging
from typing import Any, Literal

from fastapi import APIRouter, Query

from glucosync.dependencies import Services, http_error
from glucosync.glucose.errors import GlucoseSyncError
from glucosync.models.base import ErrorDetail
from glucosync.models.sync import ReadingCreate, ReadingRead

router = APIRouter(prefix="/readings", tags=["readings"])
logger = logging.getLogger("glucosync.routers.readings")


@router.post(
    "",
    response_model=ReadingRead,
    status_code=201,
    responses={403: {"model": ErrorDetail}, 404: {"model": ErrorDetail}, 502: {"model": ErrorDetail}},
)
async def create_reading(services: Services, body: ReadingCreate) -> Any:
    """Record one reading in the vital-signs store and the care plan."""
    try:
        sample = await services.engine.record_reading(body.value, body.measured_at)
    except GlucoseSyncError as exc:
        logger.warning("Recording reading failed: %s", exc)
        raise http_error(exc) from exc
    return {
        "value": sample.value,
        "unit": services.vital_signs.unit,
        "measured_at": sample.timestamp,
        "record_id": sample.origin_id,
        "external_id": sample.external_id,
    }


@router.get("", response_model=list[ReadingRead], responses={403: {"model": ErrorDetail}})
async def list_readings(
    services: Services,
    source: Literal["vital", "care_plan"] = Query(default="vital"),
) -> Any:
    """Readings in the current sync window from one store.

    Vital-signs readings are newest first; care-plan readings oldest first.
    """
    start, end = services.engine.window()
    try:
        if source == "vital":
            samples = await services.vital_signs.read(start, end)
            return [
                {
                    "value": s.value,
                    "unit": services.vital_signs.unit,
                    "measured_at": s.timestamp,
                    "record_id": s.origin_id,
                    "external_id": s.external_id,
                }
                for s in samples
            ]

        outcomes = await services.care_plan.query_outcomes(start, end)
    except GlucoseSyncError as exc:
        raise http_error(exc) from exc

    return [
        {
            "value": o.first_value.value,
            "unit": o.first_value.unit,
            "measured_at": o.created_at,
            "record_id": str(o.uuid),
            "external_id": o.external_id,
        }
        for o in outcomes
        if o.first_value is not None
    ]
