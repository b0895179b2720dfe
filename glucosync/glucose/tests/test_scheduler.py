"""Tests for the periodic sync scheduler."""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from glucosync.glucose.errors import StoreError
from glucosync.glucose.sync.scheduler import SyncScheduler
from glucosync.glucose.sync.state import SyncStatePublisher
from glucosync.glucose.tests.conftest import TEST_NOW


def _mock_engine() -> MagicMock:
    engine = MagicMock()
    engine.state = SyncStatePublisher()
    engine.perform_bidirectional_sync = AsyncMock(return_value=[])
    engine.access_determined = MagicMock(return_value=True)
    return engine


class TestShouldSync:

    def test_never_synced(self) -> None:
        scheduler = SyncScheduler(_mock_engine(), interval_seconds=3600)
        assert scheduler.should_sync(None, TEST_NOW) is True

    def test_recent_sync(self) -> None:
        scheduler = SyncScheduler(_mock_engine(), interval_seconds=3600)
        assert scheduler.should_sync(TEST_NOW - timedelta(minutes=30), TEST_NOW) is False

    def test_stale_sync(self) -> None:
        scheduler = SyncScheduler(_mock_engine(), interval_seconds=3600)
        assert scheduler.should_sync(TEST_NOW - timedelta(hours=1), TEST_NOW) is True

    def test_invalid_interval(self) -> None:
        with pytest.raises(ValueError):
            SyncScheduler(_mock_engine(), interval_seconds=0)


class TestRunOnce:

    @pytest.mark.asyncio
    async def test_triggers_when_due(self) -> None:
        engine = _mock_engine()
        scheduler = SyncScheduler(engine, interval_seconds=3600)

        assert await scheduler.run_once(TEST_NOW) is True
        engine.perform_bidirectional_sync.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_skips_when_recent(self) -> None:
        engine = _mock_engine()
        engine.state.try_begin()
        engine.state.mark_success(TEST_NOW - timedelta(minutes=5))
        engine.state.end()
        scheduler = SyncScheduler(engine, interval_seconds=3600)

        assert await scheduler.run_once(TEST_NOW) is False
        engine.perform_bidirectional_sync.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failure_is_logged_not_raised(self) -> None:
        engine = _mock_engine()
        engine.perform_bidirectional_sync.side_effect = StoreError("offline")
        scheduler = SyncScheduler(engine, interval_seconds=3600)

        assert await scheduler.run_once(TEST_NOW) is True

    @pytest.mark.asyncio
    async def test_skips_while_access_undetermined(self, caplog: pytest.LogCaptureFixture) -> None:
        engine = _mock_engine()
        engine.access_determined.return_value = False
        scheduler = SyncScheduler(engine, interval_seconds=3600)

        with caplog.at_level(logging.WARNING):
            assert await scheduler.run_once(TEST_NOW) is False

        engine.perform_bidirectional_sync.assert_not_awaited()
        assert caplog.records == []


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_start_and_stop(self) -> None:
        engine = _mock_engine()
        scheduler = SyncScheduler(engine, interval_seconds=3600, poll_seconds=0.01)

        scheduler.start()
        assert scheduler.running is True
        await asyncio.sleep(0.05)
        await scheduler.stop()

        assert scheduler.running is False
        engine.perform_bidirectional_sync.assert_awaited()

    @pytest.mark.asyncio
    async def test_stop_without_start(self) -> None:
        scheduler = SyncScheduler(_mock_engine(), interval_seconds=3600)
        await scheduler.stop()
        assert scheduler.running is False
