"""Glucose sync core.

Synchronizes blood glucose readings between the external vital-signs store
and the internal care-plan store.

Subpackages:
    adapters/ — Typed adapters over each store
    backends/ — Store backends (in-memory, Postgres)
    sync/     — Sync engine, status publisher, dedup, scheduler

Core modules:
    base          — Canonical records and backend interfaces
    errors        — Error taxonomy
    config_loader — Load/validate sync_config.yaml
    service       — Wires adapters, engine and scheduler together
"""

from glucosync.glucose.base import (
    AccessResult,
    AuthorizationStatus,
    DailySchedule,
    MetricSample,
    Outcome,
    OutcomeValue,
    Task,
)
from glucosync.glucose.config_loader import SyncConfig, get_sync_config

__all__ = [
    "AccessResult",
    "AuthorizationStatus",
    "DailySchedule",
    "MetricSample",
    "Outcome",
    "OutcomeValue",
    "Task",
    "SyncConfig",
    "get_sync_config",
]
