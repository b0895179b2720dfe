"""Tests for the care-plan store adapter and schedule arithmetic."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from glucosync.glucose.adapters import CarePlanStore
from glucosync.glucose.backends import InMemoryCarePlanBackend
from glucosync.glucose.base import DailySchedule
from glucosync.glucose.errors import InvalidOutcome, StoreError, TaskNotFound
from glucosync.glucose.tests.conftest import TASK_ID, TEST_NOW, hours_ago

SCHEDULE_START = TEST_NOW - timedelta(days=30)


def _schedule() -> DailySchedule:
    return DailySchedule.daily_at(0, 0, start=SCHEDULE_START, text="Record your blood glucose")


class TestDailySchedule:
    """Tests for DailySchedule occurrence arithmetic."""

    def test_start_anchored_to_midnight(self) -> None:
        schedule = _schedule()
        assert schedule.start == datetime(2026, 1, 24, tzinfo=timezone.utc)

    def test_occurrence_index_counts_days(self) -> None:
        schedule = _schedule()
        assert schedule.occurrence_index(schedule.start) == 0
        assert schedule.occurrence_index(schedule.start + timedelta(hours=23)) == 0
        assert schedule.occurrence_index(TEST_NOW) == 30

    def test_before_start_is_invalid(self) -> None:
        schedule = _schedule()
        with pytest.raises(InvalidOutcome):
            schedule.occurrence_index(schedule.start - timedelta(minutes=1))

    def test_invalid_time_rejected(self) -> None:
        with pytest.raises(ValueError):
            DailySchedule(start=SCHEDULE_START, hour=25)


class TestEnsureTaskExists:
    """Tests for idempotent task provisioning."""

    @pytest.mark.asyncio
    async def test_creates_task(
        self, care_plan: CarePlanStore, care_backend: InMemoryCarePlanBackend
    ) -> None:
        await care_plan.ensure_task_exists(TASK_ID, "Blood glucose measurement", _schedule())

        assert len(care_backend.tasks) == 1
        task = care_backend.tasks[0]
        assert task.id == TASK_ID
        assert task.effective_date == task.schedule.start

    @pytest.mark.asyncio
    async def test_second_call_is_noop(
        self, care_plan: CarePlanStore, care_backend: InMemoryCarePlanBackend
    ) -> None:
        await care_plan.ensure_task_exists(TASK_ID, "Blood glucose measurement", _schedule())
        first_uuid = care_backend.tasks[0].uuid

        await care_plan.ensure_task_exists(TASK_ID, "Blood glucose measurement", _schedule())

        assert len(care_backend.tasks) == 1
        assert care_backend.tasks[0].uuid == first_uuid

    @pytest.mark.asyncio
    async def test_other_store_errors_propagate(self) -> None:
        backend = AsyncMock()
        backend.add_task.side_effect = StoreError("disk full")
        store = CarePlanStore(backend)

        with pytest.raises(StoreError, match="disk full"):
            await store.ensure_task_exists(TASK_ID, "Blood glucose measurement", _schedule())


class TestOutcomes:
    """Tests for resolve_task, record_outcome and query_outcomes."""

    @pytest.mark.asyncio
    async def test_resolve_missing_task(self, care_plan: CarePlanStore) -> None:
        with pytest.raises(TaskNotFound, match=TASK_ID):
            await care_plan.resolve_task_uuid(TASK_ID)

    @pytest.mark.asyncio
    async def test_resolve_respects_effective_date(self, care_plan: CarePlanStore) -> None:
        await care_plan.ensure_task_exists(TASK_ID, "Blood glucose measurement", _schedule())
        with pytest.raises(TaskNotFound):
            await care_plan.resolve_task(TASK_ID, at=SCHEDULE_START - timedelta(days=2))

    @pytest.mark.asyncio
    async def test_record_outcome(self, care_plan: CarePlanStore) -> None:
        await care_plan.ensure_task_exists(TASK_ID, "Blood glucose measurement", _schedule())
        task_uuid = await care_plan.resolve_task_uuid(TASK_ID)

        outcome = await care_plan.record_outcome(
            TASK_ID, 125.0, "mg/dL", hours_ago(2), external_id="sample-1"
        )

        assert outcome.task_uuid == task_uuid
        assert outcome.occurrence_index == 30
        assert outcome.created_at == hours_ago(2)
        assert outcome.first_value is not None
        assert outcome.first_value.value == 125.0
        assert outcome.first_value.unit == "mg/dL"
        assert outcome.external_id == "sample-1"

    @pytest.mark.asyncio
    async def test_record_outcome_without_task(self, care_plan: CarePlanStore) -> None:
        with pytest.raises(TaskNotFound):
            await care_plan.record_outcome(TASK_ID, 125.0, "mg/dL", hours_ago(2))

    @pytest.mark.asyncio
    async def test_record_outcome_before_schedule(self, care_plan: CarePlanStore) -> None:
        await care_plan.ensure_task_exists(TASK_ID, "Blood glucose measurement", _schedule())
        with pytest.raises(InvalidOutcome):
            await care_plan.record_outcome(
                TASK_ID, 125.0, "mg/dL", SCHEDULE_START - timedelta(days=3)
            )

    @pytest.mark.asyncio
    async def test_duplicate_external_id_stored_once(
        self, care_plan: CarePlanStore, care_backend: InMemoryCarePlanBackend
    ) -> None:
        await care_plan.ensure_task_exists(TASK_ID, "Blood glucose measurement", _schedule())
        first = await care_plan.record_outcome(
            TASK_ID, 125.0, "mg/dL", hours_ago(2), external_id="sample-1"
        )
        second = await care_plan.record_outcome(
            TASK_ID, 125.0, "mg/dL", hours_ago(2), external_id="sample-1"
        )

        assert second.uuid == first.uuid
        assert len(care_backend.outcomes) == 1

    @pytest.mark.asyncio
    async def test_query_oldest_first_within_window(self, care_plan: CarePlanStore) -> None:
        await care_plan.ensure_task_exists(TASK_ID, "Blood glucose measurement", _schedule())
        await care_plan.record_outcome(TASK_ID, 110.0, "mg/dL", hours_ago(1))
        await care_plan.record_outcome(TASK_ID, 100.0, "mg/dL", hours_ago(6))
        await care_plan.record_outcome(TASK_ID, 90.0, "mg/dL", hours_ago(48))

        outcomes = await care_plan.query_outcomes(hours_ago(24), TEST_NOW)

        assert [o.first_value.value for o in outcomes] == [100.0, 110.0]
