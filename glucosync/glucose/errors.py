"""Error taxonomy for the glucose sync core.

Adapters and backends raise these; the sync engine lets them propagate
unchanged, except ``TaskAlreadyExists`` during task provisioning.  Every
error carries a human-readable message in ``str(exc)``.
"""

from __future__ import annotations


class GlucoseSyncError(Exception):
    """Base class for all sync-core failures."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class AccessError(GlucoseSyncError):
    """The vital-signs platform cannot be used at all.

    Raised when the platform has no health-data capability, or when the
    read/write scope set is empty (a configuration error, not a user denial).
    """


class NotAuthorized(GlucoseSyncError):
    """A read or write was attempted while authorization is undetermined."""


class TaskNotFound(GlucoseSyncError):
    """No care-plan task with the requested logical id exists."""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task not found: {task_id!r}")
        self.task_id = task_id


class InvalidOutcome(GlucoseSyncError):
    """An outcome could not be built (e.g. it predates the task schedule)."""


class InvalidReading(GlucoseSyncError, ValueError):
    """A reading value is outside the accepted range for the metric."""


class StoreError(GlucoseSyncError):
    """Any other failure reported by an underlying store."""


class TaskAlreadyExists(StoreError):
    """A task with the same logical id is already stored."""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task already exists: {task_id!r}")
        self.task_id = task_id
