"""Care-plan store adapter.

Typed access to the internal task/outcome store: idempotent task
provisioning, point-in-time task lookup, outcome recording and outcome
queries.  All storage goes through an injected ``CarePlanBackend``.
"""

from __future__ import annotations

import logging
from datetime import datetime
from uuid import UUID, uuid4

from glucosync.glucose.base import (
    CarePlanBackend,
    DailySchedule,
    Outcome,
    OutcomeValue,
    Task,
    as_utc,
    utc_now,
)
from glucosync.glucose.errors import TaskAlreadyExists, TaskNotFound

logger = logging.getLogger("glucosync.adapters.care_plan")


class CarePlanStore:
    """Adapter over the care-plan backend."""

    def __init__(self, backend: CarePlanBackend) -> None:
        self._backend = backend

    async def ensure_task_exists(
        self,
        task_id: str,
        title: str,
        schedule: DailySchedule,
        instructions: str | None = None,
    ) -> None:
        """Create the task unless one with the same logical id is stored.

        A second call with the same id is a no-op, not an error.

        Raises:
            StoreError: For any backend failure other than "already exists".
        """
        task = Task(
            id=task_id,
            uuid=uuid4(),
            title=title,
            schedule=schedule,
            instructions=instructions,
            effective_date=schedule.start,
        )
        try:
            await self._backend.add_task(task)
        except TaskAlreadyExists:
            logger.debug("Task %r already exists; provisioning skipped", task_id)
            return
        logger.info("Provisioned care-plan task %r (%s)", task_id, task.uuid)

    async def resolve_task(self, task_id: str, at: datetime | None = None) -> Task:
        """Return the task with logical id ``task_id`` effective at ``at``.

        Raises:
            TaskNotFound: If no such task exists at query time.
        """
        tasks = await self._backend.fetch_tasks([task_id], as_utc(at or utc_now()))
        if not tasks:
            raise TaskNotFound(task_id)
        return tasks[0]

    async def resolve_task_uuid(self, task_id: str, at: datetime | None = None) -> UUID:
        """Return the stable UUID for a logical task id.

        Raises:
            TaskNotFound: If no such task exists at query time.
        """
        task = await self.resolve_task(task_id, at)
        return task.uuid

    async def record_outcome(
        self,
        task_id: str,
        value: float,
        unit: str,
        at: datetime,
        external_id: str | None = None,
    ) -> Outcome:
        """Record one value against the task occurrence on ``at``'s day.

        Args:
            task_id:     Logical task id.
            value:       Recorded value.
            unit:        Unit string stored with the value.
            at:          Instant the value refers to; stored as ``created_at``
                         and used to pick the occurrence.
            external_id: Origin id of the vital-signs sample, if copied.

        Raises:
            TaskNotFound:   If the task does not exist.
            InvalidOutcome: If ``at`` precedes the task's schedule.
            StoreError:     If the backend fails to persist.
        """
        task = await self.resolve_task(task_id)
        at = as_utc(at)
        outcome = Outcome(
            uuid=uuid4(),
            task_uuid=task.uuid,
            occurrence_index=task.schedule.occurrence_index(at),
            values=(OutcomeValue(value=float(value), unit=unit),),
            created_at=at,
            external_id=external_id,
        )
        stored = await self._backend.add_outcome(outcome)
        logger.debug(
            "Recorded outcome %s for %r occurrence %d", stored.uuid, task_id, stored.occurrence_index
        )
        return stored

    async def query_outcomes(self, start: datetime, end: datetime) -> list[Outcome]:
        """Return outcomes created in ``[start, end]``, oldest first."""
        start, end = as_utc(start), as_utc(end)
        outcomes = await self._backend.fetch_outcomes(start, end)
        return sorted(
            (o for o in outcomes if start <= o.created_at <= end),
            key=lambda o: o.created_at,
        )
