"""Bidirectional glucose sync engine.

Moves readings between the vital-signs store and the care-plan store:

1. Take the engine-wide busy flag (skip the call if a sync is in flight)
2. Compute the lookback window ``[now - window_days, now]``
3. Read source records in the window
4. Skip records already present in the destination (sync identity match)
5. Write the rest to the destination one at a time, in read order
6. Release the busy flag; on success record the last sync time

Writes are fail-fast: the first failing write aborts the batch and its
error propagates.  Earlier writes are kept; because every copied record
carries its source identity, re-running the sync resumes where the failed
run stopped without writing duplicates.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, time, timezone
from typing import Awaitable, Callable

from glucosync.glucose.adapters.care_plan import CarePlanStore
from glucosync.glucose.adapters.vital_signs import VitalSignsStore
from glucosync.glucose.base import (
    AuthorizationStatus,
    DailySchedule,
    MetricSample,
    as_utc,
    utc_now,
)
from glucosync.glucose.config_loader import SyncConfig
from glucosync.glucose.errors import InvalidOutcome, InvalidReading
from glucosync.glucose.sync.dedup import SyncIdentityCache, outcome_keys, sample_keys
from glucosync.glucose.sync.state import SyncStatePublisher

logger = logging.getLogger("glucosync.sync.engine")

VITAL_TO_CARE_PLAN = "vital_to_care_plan"
CARE_PLAN_TO_VITAL = "care_plan_to_vital"


@dataclass
class SyncReport:
    """Result of one directional sync.

    Attributes:
        direction:          ``vital_to_care_plan`` or ``care_plan_to_vital``.
        started_at:         UTC start of the call (the window end).
        finished_at:        UTC completion time.
        read:               Source records found in the window.
        written:            Records written to the destination.
        skipped_duplicates: Records already present in the destination.
        skipped_empty:      Outcomes with no values (care-plan source only).
        skipped_busy:       True if the call did nothing because another
                            sync was in flight.
    """

    direction: str
    started_at: datetime
    finished_at: datetime | None = None
    read: int = 0
    written: int = 0
    skipped_duplicates: int = 0
    skipped_empty: int = 0
    skipped_busy: bool = False


class SyncEngine:
    """Orchestrates transfers between the two stores under one busy flag.

    Usage::

        engine = SyncEngine(vital_signs, care_plan, SyncStatePublisher(), config)
        await engine.initialize()
        reports = await engine.perform_bidirectional_sync()
    """

    def __init__(
        self,
        vital_signs: VitalSignsStore,
        care_plan: CarePlanStore,
        state: SyncStatePublisher,
        config: SyncConfig,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the engine.

        Args:
            vital_signs: Adapter for the external vital-signs store.
            care_plan:   Adapter for the internal care-plan store.
            state:       Publisher that owns the busy flag and status.
            config:      Validated sync configuration.
            clock:       Returns the current UTC time (injectable for tests).
        """
        self._vital = vital_signs
        self._care = care_plan
        self._state = state
        self._config = config
        self._clock = clock
        self._wake_registered = False

    @property
    def state(self) -> SyncStatePublisher:
        return self._state

    def access_determined(self) -> bool:
        """True once vital-signs authorization is no longer undetermined."""
        return self._vital.authorization_status() is not AuthorizationStatus.UNDETERMINED

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Provision the care-plan task and enable background wake.

        The task's schedule starts on the configured ``schedule.start_date``,
        independent of the lookback window.

        Background wake is best-effort: a failure is logged and does not
        fail initialization.

        Raises:
            StoreError: If task provisioning fails for a reason other than
                        the task already existing.
        """
        task = self._config.task
        schedule = DailySchedule.daily_at(
            task.schedule_hour,
            task.schedule_minute,
            start=datetime.combine(task.schedule_start, time(), tzinfo=timezone.utc),
            text=task.instructions,
        )
        await self._care.ensure_task_exists(
            task.id, task.title, schedule, instructions=task.instructions
        )

        if self._config.sync.background_wake:
            await self.enable_background_wake()

    async def enable_background_wake(self) -> bool:
        """Register for background wake; returns False instead of raising on failure."""
        if not self._wake_registered:
            self._vital.add_wake_handler(self._on_background_wake)
            self._wake_registered = True
        try:
            await self._vital.enable_background_wake()
        except Exception as exc:
            logger.warning("Background wake not enabled: %s", exc)
            return False
        return True

    async def _on_background_wake(self) -> None:
        logger.info("Background wake received; starting bidirectional sync")
        try:
            await self.perform_bidirectional_sync()
        except Exception as exc:
            logger.warning("Background sync failed: %s", exc)

    # ------------------------------------------------------------------
    # Public sync operations
    # ------------------------------------------------------------------

    async def sync_vital_to_care_plan(self) -> SyncReport:
        """Copy vital-signs samples in the window into care-plan outcomes."""
        return await self._run_exclusive(VITAL_TO_CARE_PLAN, self._transfer_vital_to_care_plan)

    async def sync_care_plan_to_vital(self) -> SyncReport:
        """Copy care-plan outcomes in the window into vital-signs samples."""
        return await self._run_exclusive(CARE_PLAN_TO_VITAL, self._transfer_care_plan_to_vital)

    async def perform_bidirectional_sync(self) -> list[SyncReport]:
        """Sync vital-signs → care-plan, then care-plan → vital-signs.

        The busy flag is held across both directions.  An error in the first
        direction propagates and the second is not attempted.
        """
        if not self._state.try_begin():
            return [self._busy_report(VITAL_TO_CARE_PLAN), self._busy_report(CARE_PLAN_TO_VITAL)]

        error: BaseException | None = None
        try:
            first = await self._transfer_vital_to_care_plan()
            second = await self._transfer_care_plan_to_vital()
            return [first, second]
        except BaseException as exc:
            error = exc
            raise
        finally:
            self._state.end(error)

    async def record_reading(self, value: float, at: datetime | None = None) -> MetricSample:
        """Record a manually entered reading in both stores.

        The vital-signs sample is written first; the care-plan outcome is
        linked to it by origin id so later syncs treat the pair as one record.

        Both the value and the measurement time are checked before either
        store is touched.

        Raises:
            InvalidReading: If the value is outside the accepted range, or
                            ``at`` is outside the sync window or precedes
                            the task schedule.
            TaskNotFound:   If the care-plan task has not been provisioned.
            NotAuthorized:  If vital-signs authorization is undetermined.
        """
        metric = self._config.metric
        if not metric.accepts(value):
            raise InvalidReading(
                f"Reading must be greater than {metric.min_value:g} and at most "
                f"{metric.max_value:g} {metric.unit}, got {value:g}"
            )

        start, end = self.window()
        at = as_utc(at) if at is not None else end
        if not start <= at <= end:
            raise InvalidReading(
                f"Reading time {at.isoformat()} is outside the sync window "
                f"{start.isoformat()} → {end.isoformat()}"
            )
        task = await self._care.resolve_task(self._config.task.id)
        try:
            task.schedule.occurrence_index(at)
        except InvalidOutcome as exc:
            raise InvalidReading(exc.message) from exc

        sample = await self._vital.write(value, at)
        await self._care.record_outcome(
            task.id, value, metric.unit, at, external_id=sample.origin_id
        )
        logger.info("Recorded reading %g %s at %s", value, metric.unit, at.isoformat())
        return sample

    # ------------------------------------------------------------------
    # Guard
    # ------------------------------------------------------------------

    async def _run_exclusive(
        self, direction: str, transfer: Callable[[], Awaitable[SyncReport]]
    ) -> SyncReport:
        if not self._state.try_begin():
            return self._busy_report(direction)

        error: BaseException | None = None
        try:
            return await transfer()
        except BaseException as exc:
            error = exc
            raise
        finally:
            self._state.end(error)

    def _busy_report(self, direction: str) -> SyncReport:
        logger.info("Sync already in progress; skipping %s", direction)
        now = self._clock()
        return SyncReport(direction=direction, started_at=now, finished_at=now, skipped_busy=True)

    # ------------------------------------------------------------------
    # Transfers (caller holds the busy flag)
    # ------------------------------------------------------------------

    def window(self) -> tuple[datetime, datetime]:
        """Return the lookback window ``(now - window_days, now)``."""
        end = self._clock()
        return end - self._config.sync.window, end

    async def _transfer_vital_to_care_plan(self) -> SyncReport:
        start, end = self.window()
        report = SyncReport(direction=VITAL_TO_CARE_PLAN, started_at=end)
        logger.info("Sync %s: window %s → %s", report.direction, start.isoformat(), end.isoformat())

        samples = await self._vital.read(start, end)
        report.read = len(samples)

        seen: SyncIdentityCache | None = None
        if self._config.sync.deduplicate:
            seen = SyncIdentityCache.from_outcomes(await self._care.query_outcomes(start, end))

        task_id = self._config.task.id
        unit = self._config.metric.unit
        for sample in samples:
            keys = sample_keys(sample)
            if seen is not None and seen.contains_any(keys):
                report.skipped_duplicates += 1
                logger.debug("Sample %s already in care plan; skipped", sample.origin_id)
                continue
            await self._care.record_outcome(
                task_id, sample.value, unit, at=sample.timestamp, external_id=sample.origin_id
            )
            if seen is not None:
                seen.mark_seen(keys)
            report.written += 1

        return self._complete(report)

    async def _transfer_care_plan_to_vital(self) -> SyncReport:
        start, end = self.window()
        report = SyncReport(direction=CARE_PLAN_TO_VITAL, started_at=end)
        logger.info("Sync %s: window %s → %s", report.direction, start.isoformat(), end.isoformat())

        outcomes = await self._care.query_outcomes(start, end)
        report.read = len(outcomes)

        seen: SyncIdentityCache | None = None
        if self._config.sync.deduplicate:
            seen = SyncIdentityCache.from_samples(await self._vital.read(start, end))

        for outcome in outcomes:
            first = outcome.first_value
            if first is None:
                report.skipped_empty += 1
                continue
            keys = outcome_keys(outcome)
            if seen is not None and seen.contains_any(keys):
                report.skipped_duplicates += 1
                logger.debug("Outcome %s already in vital signs; skipped", outcome.uuid)
                continue
            await self._vital.write(first.value, at=outcome.created_at, external_id=str(outcome.uuid))
            if seen is not None:
                seen.mark_seen(keys)
            report.written += 1

        return self._complete(report)

    def _complete(self, report: SyncReport) -> SyncReport:
        report.finished_at = self._clock()
        self._state.mark_success(report.finished_at)
        logger.info(
            "Sync %s complete: read=%d written=%d duplicates=%d empty=%d",
            report.direction,
            report.read,
            report.written,
            report.skipped_duplicates,
            report.skipped_empty,
        )
        return report
