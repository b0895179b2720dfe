"""Vital-signs store adapter.

Typed read/write access to the external platform for exactly one metric
type, plus the background-wake subscription.  All platform access goes
through a ``VitalSignsPlatform`` backend injected at construction.

Every read, write and wake registration requires the authorization status
to be anything but ``undetermined``.  A ``denied`` status is deliberately
let through: the platform rejects the call itself, which keeps the adapter
correct on platforms whose permissions are finer-grained than one flag.
"""

from __future__ import annotations

import logging
from datetime import datetime

from glucosync.glucose.base import (
    AccessResult,
    AuthorizationStatus,
    MetricSample,
    VitalSignsPlatform,
    WakeHandler,
    as_utc,
)
from glucosync.glucose.errors import AccessError, NotAuthorized, StoreError

logger = logging.getLogger("glucosync.adapters.vital_signs")


class VitalSignsStore:
    """Adapter over the vital-signs platform for a single metric.

    Attributes:
        is_authorized:      Process-wide flag; True once the status is no
                            longer undetermined.
        last_access_error:  The error raised by the most recent failed
                            ``request_access()``, cleared on success.
    """

    def __init__(
        self,
        platform: VitalSignsPlatform,
        metric_id: str,
        unit: str = "mg/dL",
        read_scopes: list[str] | None = None,
        write_scopes: list[str] | None = None,
    ) -> None:
        """Initialize the adapter.

        Args:
            platform:     Backend implementing the platform calls.
            metric_id:    The single metric type this adapter handles.
            unit:         Fixed unit for the metric.
            read_scopes:  Metric types to request read access for
                          (defaults to ``[metric_id]``).
            write_scopes: Metric types to request write access for
                          (defaults to ``[metric_id]``).
        """
        self._platform = platform
        self.metric_id = metric_id
        self.unit = unit
        self._read_scopes = frozenset(
            read_scopes if read_scopes is not None else [metric_id]
        )
        self._write_scopes = frozenset(
            write_scopes if write_scopes is not None else [metric_id]
        )
        self._wake_handlers: list[WakeHandler] = []
        self.last_access_error: AccessError | None = None
        self.is_authorized = False
        self._refresh_authorization_flag()

    # ------------------------------------------------------------------
    # Authorization
    # ------------------------------------------------------------------

    def authorization_status(self) -> AuthorizationStatus:
        return self._platform.authorization_status(self.metric_id)

    def is_available(self) -> bool:
        return self._platform.is_health_data_available()

    async def request_access(self) -> AccessResult:
        """Ask the platform for read and write permission on the metric.

        Raises:
            AccessError: If the platform has no health-data capability, if no
                         read/write scopes are configured, or if the platform
                         fails the request.
        """
        try:
            await self._request_access()
        except AccessError as exc:
            self.last_access_error = exc
            self._refresh_authorization_flag()
            logger.warning("Vital-signs access request failed: %s", exc)
            raise

        self.last_access_error = None
        status = self._refresh_authorization_flag()
        logger.info("Vital-signs access requested for %s: %s", self.metric_id, status.value)
        return AccessResult(status=status)

    async def _request_access(self) -> None:
        if not self._platform.is_health_data_available():
            raise AccessError("Health data is not available on this platform")

        if not self._read_scopes or not self._write_scopes:
            raise AccessError("No read/write scopes are configured for the vital-signs store")

        logger.debug(
            "Requesting access (status before: %s, read=%s, write=%s)",
            self.authorization_status().value,
            sorted(self._read_scopes),
            sorted(self._write_scopes),
        )
        try:
            await self._platform.request_authorization(
                share=self._write_scopes, read=self._read_scopes
            )
        except StoreError as exc:
            raise AccessError(f"Authorization request failed: {exc}") from exc

    def _refresh_authorization_flag(self) -> AuthorizationStatus:
        status = self.authorization_status()
        self.is_authorized = status is not AuthorizationStatus.UNDETERMINED
        return status

    def _require_determined(self) -> None:
        if self.authorization_status() is AuthorizationStatus.UNDETERMINED:
            raise NotAuthorized(
                f"Vital-signs access for {self.metric_id!r} has not been granted"
            )

    # ------------------------------------------------------------------
    # Reads / writes
    # ------------------------------------------------------------------

    async def write(
        self, value: float, at: datetime, external_id: str | None = None
    ) -> MetricSample:
        """Save one point-in-time sample and return it as stored.

        Args:
            value:       Reading in the metric's unit.
            at:          Measurement instant; used as both start and end.
            external_id: Sync identity of the care-plan record this value
                         came from, stored as sample metadata.

        Raises:
            NotAuthorized: If authorization is undetermined.
            StoreError:    If the platform rejects the save.
        """
        self._require_determined()
        at = as_utc(at)
        metadata = {"external_id": external_id} if external_id else None
        sample = await self._platform.save_sample(
            self.metric_id, float(value), self.unit, start=at, end=at, metadata=metadata
        )
        logger.debug("Saved %s sample %s = %s %s", self.metric_id, sample.origin_id, value, self.unit)
        return sample

    async def read(self, start: datetime, end: datetime) -> list[MetricSample]:
        """Return samples in ``[start, end]``, newest first.

        Raises:
            NotAuthorized: If authorization is undetermined.
            StoreError:    If the platform query fails.
        """
        self._require_determined()
        samples = await self._platform.query_samples(
            self.metric_id, as_utc(start), as_utc(end)
        )
        return sorted(samples, key=lambda s: s.timestamp, reverse=True)

    # ------------------------------------------------------------------
    # Background wake
    # ------------------------------------------------------------------

    def add_wake_handler(self, handler: WakeHandler) -> None:
        """Register a callback to run when background delivery fires."""
        self._wake_handlers.append(handler)

    async def enable_background_wake(self) -> None:
        """Ask the platform to wake the process when new data arrives.

        Best-effort: callers are expected to log and continue on failure.

        Raises:
            NotAuthorized: If authorization is undetermined.
            StoreError:    If the platform refuses the registration.
        """
        self._require_determined()
        await self._platform.enable_background_delivery(self.metric_id, self._dispatch_wake)
        logger.info("Background delivery enabled for %s", self.metric_id)

    async def _dispatch_wake(self) -> None:
        logger.debug("Background wake for %s (%d handlers)", self.metric_id, len(self._wake_handlers))
        for handler in list(self._wake_handlers):
            await handler()
