"""Observable sync status.

``SyncStatePublisher`` owns the busy flag and the last-success timestamp.
Only the sync engine mutates it, always from the event loop thread; any
number of observers may read snapshots or subscribe to changes.

The busy flag doubles as the engine-wide mutual exclusion: ``try_begin()``
checks and sets it in one synchronous step, so two triggers scheduled on
the same loop can never both see it clear.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

logger = logging.getLogger("glucosync.sync.state")


@dataclass(frozen=True)
class SyncStatus:
    """Point-in-time view of the sync state.

    Attributes:
        is_syncing:     True while a sync call is in flight.
        last_sync_date: UTC time of the last successful sync, if any.
        last_error:     Message of the last failed sync, cleared on success.
    """

    is_syncing: bool = False
    last_sync_date: datetime | None = None
    last_error: str | None = None


SyncStatusListener = Callable[[SyncStatus], None]


class SyncStatePublisher:
    """Holds ``SyncStatus`` and notifies subscribers of every change."""

    def __init__(self) -> None:
        self._status = SyncStatus()
        self._listeners: list[SyncStatusListener] = []

    @property
    def is_syncing(self) -> bool:
        return self._status.is_syncing

    @property
    def last_sync_date(self) -> datetime | None:
        return self._status.last_sync_date

    @property
    def last_error(self) -> str | None:
        return self._status.last_error

    def snapshot(self) -> SyncStatus:
        return self._status

    def subscribe(self, listener: SyncStatusListener) -> Callable[[], None]:
        """Register ``listener`` and return a callable that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------
    # Engine-only mutators
    # ------------------------------------------------------------------

    def try_begin(self) -> bool:
        """Set the busy flag if it is clear.

        Returns:
            True if the caller now owns the flag, False if a sync is in flight.
        """
        if self._status.is_syncing:
            return False
        self._publish(
            SyncStatus(
                is_syncing=True,
                last_sync_date=self._status.last_sync_date,
                last_error=self._status.last_error,
            )
        )
        return True

    def mark_success(self, at: datetime) -> None:
        """Record a successful sync without releasing the busy flag."""
        self._publish(
            SyncStatus(is_syncing=self._status.is_syncing, last_sync_date=at, last_error=None)
        )

    def end(self, error: BaseException | None = None) -> None:
        """Release the busy flag, recording ``error`` if the sync failed."""
        self._publish(
            SyncStatus(
                is_syncing=False,
                last_sync_date=self._status.last_sync_date,
                last_error=str(error) if error is not None else self._status.last_error,
            )
        )

    def _publish(self, status: SyncStatus) -> None:
        self._status = status
        for listener in list(self._listeners):
            try:
                listener(status)
            except Exception:
                logger.exception("Sync status listener %r failed", listener)
