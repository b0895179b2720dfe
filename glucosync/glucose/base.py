"""Canonical data models and backend interfaces for glucose sync.

``MetricSample`` is what the vital-signs store holds; ``Outcome`` is what the
care-plan store holds.  The two adapters translate between these models and
their backends, and the sync engine moves records from one to the other.

All timestamps are timezone-aware UTC datetimes.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, time, timezone
from enum import Enum
from typing import Awaitable, Callable
from uuid import UUID

from glucosync.glucose.errors import InvalidOutcome

logger = logging.getLogger("glucosync.glucose")

#: Async callback invoked by a platform when background delivery fires.
WakeHandler = Callable[[], Awaitable[None]]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime (naive values are assumed UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ---------------------------------------------------------------------------
# Authorization
# ---------------------------------------------------------------------------


class AuthorizationStatus(str, Enum):
    """Per-metric authorization state reported by the vital-signs platform.

    ``undetermined`` moves to ``authorized`` or ``denied`` once the user has
    been asked; both are terminal as far as the adapter is concerned.
    """

    UNDETERMINED = "undetermined"
    AUTHORIZED = "authorized"
    DENIED = "denied"


@dataclass(frozen=True)
class AccessResult:
    """Outcome of an access request.

    Attributes:
        status:     Authorization status after the request.
        authorized: True once the status is no longer undetermined.
    """

    status: AuthorizationStatus

    @property
    def authorized(self) -> bool:
        return self.status is not AuthorizationStatus.UNDETERMINED


# ---------------------------------------------------------------------------
# Vital-signs records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MetricSample:
    """A single point-in-time measurement from the vital-signs store.

    Attributes:
        value:       Measured value in the metric's fixed unit (mg/dL).
        timestamp:   UTC instant of the measurement (start == end).
        origin_id:   Identifier assigned by the vital-signs store; unique there.
        external_id: Sync identity of the care-plan record this sample was
                     copied from, or None for samples first written here.
        source:      Id of the writer that saved the sample, if known.
    """

    value: float
    timestamp: datetime
    origin_id: str
    external_id: str | None = None
    source: str | None = None


# ---------------------------------------------------------------------------
# Care-plan records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class OutcomeValue:
    """One recorded value of an outcome."""

    value: float
    unit: str


@dataclass(frozen=True)
class Outcome:
    """A recorded occurrence of a care-plan task.

    Attributes:
        uuid:             Store-assigned identifier.
        task_uuid:        UUID of the task this outcome belongs to.
        occurrence_index: Which daily occurrence of the task was completed.
        values:           Ordered recorded values.
        created_at:       UTC instant the outcome refers to.
        external_id:      Origin id of the vital-signs sample this outcome
                          was copied from, or None.
    """

    uuid: UUID
    task_uuid: UUID
    occurrence_index: int
    values: tuple[OutcomeValue, ...]
    created_at: datetime
    external_id: str | None = None

    @property
    def first_value(self) -> OutcomeValue | None:
        return self.values[0] if self.values else None


@dataclass(frozen=True)
class DailySchedule:
    """Recurrence rule: once a day at ``hour:minute`` UTC, from ``start`` on.

    Occurrence 0 is the occurrence on ``start``'s calendar day; occurrence
    ``n`` is ``n`` days later.
    """

    start: datetime
    hour: int = 0
    minute: int = 0
    text: str | None = None

    def __post_init__(self) -> None:
        if not (0 <= self.hour <= 23 and 0 <= self.minute <= 59):
            raise ValueError(f"Invalid schedule time {self.hour:02d}:{self.minute:02d}")
        object.__setattr__(self, "start", as_utc(self.start))

    @classmethod
    def daily_at(
        cls, hour: int, minute: int, start: datetime, text: str | None = None
    ) -> DailySchedule:
        """Build a schedule whose first occurrence is on ``start``'s day."""
        first_day = as_utc(start).date()
        anchor = datetime.combine(first_day, time(0, 0), tzinfo=timezone.utc)
        return cls(start=anchor, hour=hour, minute=minute, text=text)

    def occurrence_index(self, at: datetime) -> int:
        """Return the index of the occurrence that falls on ``at``'s calendar day.

        Raises:
            InvalidOutcome: If ``at`` is on a day before the schedule starts.
        """
        days = (as_utc(at).date() - self.start.date()).days
        if days < 0:
            raise InvalidOutcome(
                f"{as_utc(at).isoformat()} precedes the task schedule start "
                f"{self.start.date().isoformat()}"
            )
        return days


@dataclass(frozen=True)
class Task:
    """A recurring care-plan activity.

    Attributes:
        id:             Stable logical key (e.g. "bloodGlucose").
        uuid:           Store-assigned UUID, stable once created.
        title:          Human-readable title.
        schedule:       Daily recurrence rule.
        instructions:   Optional text shown with the task.
        effective_date: First instant at which this task is visible to
                        point-in-time queries.
    """

    id: str
    uuid: UUID
    title: str
    schedule: DailySchedule
    instructions: str | None = None
    effective_date: datetime = field(default_factory=utc_now)


# ---------------------------------------------------------------------------
# Backend interfaces
# ---------------------------------------------------------------------------


class VitalSignsPlatform(ABC):
    """Interface to the external vital-signs platform.

    A backend performs no authorization precondition checks of its own beyond
    what the real platform does: a denied metric is rejected here with
    ``StoreError``, an undetermined one never reaches the backend because the
    adapter refuses first.
    """

    @abstractmethod
    def is_health_data_available(self) -> bool:
        """Return True if the platform has any health-data capability."""

    @abstractmethod
    def authorization_status(self, metric_id: str) -> AuthorizationStatus:
        """Return the current authorization status for one metric type."""

    @abstractmethod
    async def request_authorization(
        self, share: frozenset[str], read: frozenset[str]
    ) -> None:
        """Prompt for write (``share``) and read permission on metric types."""

    @abstractmethod
    async def save_sample(
        self,
        metric_id: str,
        value: float,
        unit: str,
        start: datetime,
        end: datetime,
        metadata: dict[str, str] | None = None,
    ) -> MetricSample:
        """Persist one sample and return it with its store-assigned origin id."""

    @abstractmethod
    async def query_samples(
        self, metric_id: str, start: datetime, end: datetime
    ) -> list[MetricSample]:
        """Return samples in ``[start, end]`` in any order."""

    @abstractmethod
    async def enable_background_delivery(
        self, metric_id: str, handler: WakeHandler
    ) -> None:
        """Ask the platform to call ``handler`` when other writers add data."""


class CarePlanBackend(ABC):
    """Interface to the internal task/outcome store."""

    @abstractmethod
    async def add_task(self, task: Task) -> Task:
        """Store a new task.

        Raises:
            TaskAlreadyExists: If a task with ``task.id`` is already stored.
            StoreError:        On any other failure.
        """

    @abstractmethod
    async def fetch_tasks(self, ids: list[str], at: datetime) -> list[Task]:
        """Return tasks with the given ids that are effective at ``at``."""

    @abstractmethod
    async def add_outcome(self, outcome: Outcome) -> Outcome:
        """Persist an outcome and return the stored copy."""

    @abstractmethod
    async def fetch_outcomes(self, start: datetime, end: datetime) -> list[Outcome]:
        """Return outcomes with ``created_at`` in ``[start, end]``."""
