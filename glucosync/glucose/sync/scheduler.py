"""Periodic sync trigger.

Runs a bidirectional sync whenever the last successful sync is older than
``sync.interval_seconds``.  The scheduler only triggers; the engine's busy
flag still decides whether a triggered sync does any work.

Usage::

    scheduler = SyncScheduler(engine, interval_seconds=3600)
    scheduler.start()
    ...
    await scheduler.stop()
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from glucosync.glucose.base import utc_now
from glucosync.glucose.sync.engine import SyncEngine

logger = logging.getLogger("glucosync.sync.scheduler")


class SyncScheduler:
    """Background loop that keeps the two stores in sync."""

    def __init__(
        self,
        engine: SyncEngine,
        interval_seconds: int,
        poll_seconds: float | None = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            engine:           Engine to trigger.
            interval_seconds: Minimum age of the last successful sync before
                              another one is triggered.
            poll_seconds:     How often the loop wakes to check; defaults to
                              a tenth of the interval, at least one second.
        """
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {interval_seconds}")
        self._engine = engine
        self._interval = interval_seconds
        self._poll = poll_seconds if poll_seconds is not None else max(interval_seconds / 10, 1.0)
        self._task: asyncio.Task | None = None
        self._stop = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def should_sync(self, last_sync_at: datetime | None, now: datetime) -> bool:
        """Return True if a sync is due.

        Args:
            last_sync_at: UTC datetime of last successful sync (None = never).
            now:          Current UTC datetime.
        """
        if last_sync_at is None:
            return True
        return (now - last_sync_at).total_seconds() >= self._interval

    async def run_once(self, now: datetime) -> bool:
        """Trigger a sync if one is due. Returns True if a sync was started.

        Nothing runs until vital-signs access has been requested.
        """
        if not self._engine.access_determined():
            logger.debug("Vital-signs access not yet requested; scheduled sync skipped")
            return False
        if not self.should_sync(self._engine.state.last_sync_date, now):
            return False
        try:
            await self._engine.perform_bidirectional_sync()
        except Exception as exc:
            logger.warning("Scheduled sync failed: %s", exc)
        return True

    def start(self) -> None:
        """Start the background loop on the running event loop."""
        if self.running:
            return
        self._stop.clear()
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.info("Sync scheduler started (interval=%ds)", self._interval)

    async def stop(self) -> None:
        """Stop the loop and wait for an in-flight sync to finish."""
        if self._task is None:
            return
        self._stop.set()
        await self._task
        self._task = None
        logger.info("Sync scheduler stopped")

    async def _run(self) -> None:
        while not self._stop.is_set():
            await self.run_once(utc_now())
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self._poll)
            except asyncio.TimeoutError:
                continue
