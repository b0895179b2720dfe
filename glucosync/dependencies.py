"""Shared FastAPI dependencies injected into route handlers."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request

from glucosync.config import Settings
from glucosync.glucose.errors import (
    AccessError,
    GlucoseSyncError,
    InvalidReading,
    NotAuthorized,
    TaskNotFound,
)
from glucosync.glucose.service import SyncServices

_STATUS_BY_ERROR: tuple[tuple[type[GlucoseSyncError], int], ...] = (
    (NotAuthorized, 403),
    (TaskNotFound, 404),
    (InvalidReading, 422),
    (AccessError, 503),
)


def get_app_settings(request: Request) -> Settings:
    """Return the settings the app was created with."""
    return request.app.state.settings


def get_services(request: Request) -> SyncServices:
    """Return the services built at startup (see ``main.lifespan``)."""
    services: SyncServices | None = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(status_code=503, detail="Sync services are not initialized")
    return services


def http_error(exc: GlucoseSyncError) -> HTTPException:
    """Map a sync-core error to an HTTP error carrying its message."""
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=502, detail=str(exc))


# Annotated shortcuts for route signatures
Services = Annotated[SyncServices, Depends(get_services)]
AppSettings = Annotated[Settings, Depends(get_app_settings)]
