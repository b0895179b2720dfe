"""Pydantic models for sync status, sync reports, access and readings."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import Field

from glucosync.models.base import GlucosyncBase


# ---------- Sync ----------

class SyncStatusRead(GlucosyncBase):
    is_syncing: bool
    last_sync_date: datetime | None = None
    last_error: str | None = None


class SyncReportRead(GlucosyncBase):
    direction: str
    started_at: datetime
    finished_at: datetime | None = None
    read: int = 0
    written: int = 0
    skipped_duplicates: int = 0
    skipped_empty: int = 0
    skipped_busy: bool = False


class SyncRunRead(GlucosyncBase):
    reports: list[SyncReportRead]
    status: SyncStatusRead


# ---------- Access ----------

class AccessRead(GlucosyncBase):
    metric: str
    available: bool
    status: Literal["undetermined", "authorized", "denied"]
    authorized: bool
    background_wake: bool | None = None
    last_error: str | None = None


# ---------- Readings ----------

class ReadingCreate(GlucosyncBase):
    # Range comes from sync_config.yaml and is checked by the engine
    value: float = Field(description="Blood glucose in the configured metric unit")
    measured_at: datetime | None = None


class ReadingRead(GlucosyncBase):
    value: float
    unit: str
    measured_at: datetime
    record_id: str
    external_id: str | None = None

