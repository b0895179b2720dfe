"""In-process store backends.

``InMemoryVitalSignsPlatform`` stands in for the platform health repository
when the service runs without one (local development, tests, demos).  It
models the parts of the platform the adapter depends on: a capability flag,
per-metric authorization decided on first request, point-in-time samples
with store-assigned ids, and background delivery that fires when a writer
other than this service adds a sample.

``InMemoryCarePlanBackend`` keeps tasks and outcomes in process memory.
Neither backend persists anything across restarts.
"""

from __future__ import annotations

import logging
from datetime import datetime
from uuid import UUID, uuid4

from glucosync.glucose.base import (
    AuthorizationStatus,
    CarePlanBackend,
    MetricSample,
    Outcome,
    Task,
    VitalSignsPlatform,
    WakeHandler,
    as_utc,
)
from glucosync.glucose.errors import StoreError, TaskAlreadyExists

logger = logging.getLogger("glucosync.backends.memory")


class InMemoryVitalSignsPlatform(VitalSignsPlatform):
    """Process-local vital-signs platform.

    Usage::

        platform = InMemoryVitalSignsPlatform(grant=True)
        await platform.add_external_sample("blood_glucose", 110.0, at)
    """

    def __init__(
        self,
        available: bool = True,
        grant: bool = True,
        writer_id: str = "glucosync",
    ) -> None:
        """Initialize the platform.

        Args:
            available: Whether the platform reports any health-data capability.
            grant:     Decision applied when authorization is first requested
                       (True → authorized, False → denied).
            writer_id: Source id stamped on samples saved through the adapter.
        """
        self._available = available
        self._grant = grant
        self._writer_id = writer_id
        self._status: dict[str, AuthorizationStatus] = {}
        self._samples: dict[str, list[MetricSample]] = {}
        self._delivery: dict[str, list[WakeHandler]] = {}

    # ------------------------------------------------------------------
    # Authorization
    # ------------------------------------------------------------------

    def is_health_data_available(self) -> bool:
        return self._available

    def authorization_status(self, metric_id: str) -> AuthorizationStatus:
        return self._status.get(metric_id, AuthorizationStatus.UNDETERMINED)

    def set_authorization(self, metric_id: str, status: AuthorizationStatus) -> None:
        """Force the authorization status for a metric."""
        self._status[metric_id] = status

    async def request_authorization(
        self, share: frozenset[str], read: frozenset[str]
    ) -> None:
        decision = AuthorizationStatus.AUTHORIZED if self._grant else AuthorizationStatus.DENIED
        for metric_id in share | read:
            # Already-decided metrics are not re-prompted.
            if self.authorization_status(metric_id) is AuthorizationStatus.UNDETERMINED:
                self._status[metric_id] = decision

    def _require_authorized(self, metric_id: str, action: str) -> None:
        if self.authorization_status(metric_id) is not AuthorizationStatus.AUTHORIZED:
            raise StoreError(f"Not authorized to {action} {metric_id!r}")

    # ------------------------------------------------------------------
    # Samples
    # ------------------------------------------------------------------

    async def save_sample(
        self,
        metric_id: str,
        value: float,
        unit: str,
        start: datetime,
        end: datetime,
        metadata: dict[str, str] | None = None,
    ) -> MetricSample:
        self._require_authorized(metric_id, "share")
        return self._append(metric_id, value, start, metadata, self._writer_id)

    async def query_samples(
        self, metric_id: str, start: datetime, end: datetime
    ) -> list[MetricSample]:
        self._require_authorized(metric_id, "read")
        start, end = as_utc(start), as_utc(end)
        return [
            s for s in self._samples.get(metric_id, []) if start <= s.timestamp <= end
        ]

    async def add_external_sample(
        self,
        metric_id: str,
        value: float,
        at: datetime,
        source: str = "external",
        metadata: dict[str, str] | None = None,
    ) -> MetricSample:
        """Record a sample written by another app and fire background delivery."""
        sample = self._append(metric_id, value, at, metadata, source)
        await self._deliver(metric_id)
        return sample

    def samples(self, metric_id: str) -> list[MetricSample]:
        return list(self._samples.get(metric_id, []))

    def _append(
        self,
        metric_id: str,
        value: float,
        at: datetime,
        metadata: dict[str, str] | None,
        source: str,
    ) -> MetricSample:
        sample = MetricSample(
            value=float(value),
            timestamp=as_utc(at),
            origin_id=str(uuid4()),
            external_id=(metadata or {}).get("external_id"),
            source=source,
        )
        self._samples.setdefault(metric_id, []).append(sample)
        return sample

    # ------------------------------------------------------------------
    # Background delivery
    # ------------------------------------------------------------------

    async def enable_background_delivery(
        self, metric_id: str, handler: WakeHandler
    ) -> None:
        self._require_authorized(metric_id, "observe")
        handlers = self._delivery.setdefault(metric_id, [])
        if handler not in handlers:
            handlers.append(handler)

    async def _deliver(self, metric_id: str) -> None:
        for handler in list(self._delivery.get(metric_id, [])):
            try:
                await handler()
            except Exception as exc:
                logger.warning("Background delivery handler for %s failed: %s", metric_id, exc)


class InMemoryCarePlanBackend(CarePlanBackend):
    """Process-local care-plan store."""

    def __init__(self) -> None:
        self._tasks: dict[str, Task] = {}
        self._outcomes: list[Outcome] = []

    @property
    def tasks(self) -> list[Task]:
        return list(self._tasks.values())

    @property
    def outcomes(self) -> list[Outcome]:
        return list(self._outcomes)

    async def add_task(self, task: Task) -> Task:
        if task.id in self._tasks:
            raise TaskAlreadyExists(task.id)
        self._tasks[task.id] = task
        return task

    async def fetch_tasks(self, ids: list[str], at: datetime) -> list[Task]:
        at = as_utc(at)
        return [
            task
            for task_id in ids
            if (task := self._tasks.get(task_id)) is not None and task.effective_date <= at
        ]

    async def add_outcome(self, outcome: Outcome) -> Outcome:
        if not self._has_task_uuid(outcome.task_uuid):
            raise StoreError(f"Outcome references unknown task {outcome.task_uuid}")
        if outcome.external_id is not None:
            for existing in self._outcomes:
                if existing.external_id == outcome.external_id:
                    return existing
        self._outcomes.append(outcome)
        return outcome

    async def fetch_outcomes(self, start: datetime, end: datetime) -> list[Outcome]:
        start, end = as_utc(start), as_utc(end)
        return [o for o in self._outcomes if start <= o.created_at <= end]

    def _has_task_uuid(self, task_uuid: UUID) -> bool:
        return any(t.uuid == task_uuid for t in self._tasks.values())
