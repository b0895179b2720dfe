"""Service wiring for glucosync.

Builds one instance of each adapter, the status publisher, the engine and
the optional scheduler, and hands them out explicitly.  Nothing here is a
module-level singleton: the app creates a ``SyncServices`` at startup and
stores it on ``app.state``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable

from glucosync.config import Settings
from glucosync.glucose.adapters import CarePlanStore, VitalSignsStore
from glucosync.glucose.backends import (
    InMemoryCarePlanBackend,
    InMemoryVitalSignsPlatform,
    PostgresCarePlanBackend,
)
from glucosync.glucose.base import CarePlanBackend, VitalSignsPlatform, utc_now
from glucosync.glucose.config_loader import SyncConfig, get_sync_config, load_sync_config
from glucosync.glucose.sync.engine import SyncEngine
from glucosync.glucose.sync.scheduler import SyncScheduler
from glucosync.glucose.sync.state import SyncStatePublisher
from glucosync.services.postgres import close_pool, init_pool

logger = logging.getLogger("glucosync.service")


@dataclass
class SyncServices:
    """Everything the HTTP layer and triggers need, constructed once."""

    config: SyncConfig
    platform: VitalSignsPlatform
    vital_signs: VitalSignsStore
    care_plan: CarePlanStore
    state: SyncStatePublisher
    engine: SyncEngine
    scheduler: SyncScheduler | None = None
    uses_database: bool = False

    async def start(self) -> None:
        """Initialize the engine, then start the scheduler if configured."""
        await self.engine.initialize()
        if self.scheduler is not None:
            self.scheduler.start()

    async def stop(self) -> None:
        if self.scheduler is not None:
            await self.scheduler.stop()
        if self.uses_database:
            await close_pool()


def build_services(
    config: SyncConfig,
    platform: VitalSignsPlatform,
    care_backend: CarePlanBackend,
    enable_scheduler: bool = False,
    clock: Callable[[], datetime] = utc_now,
) -> SyncServices:
    """Wire adapters, publisher, engine and scheduler around two backends."""
    vital_signs = VitalSignsStore(
        platform,
        metric_id=config.metric.id,
        unit=config.metric.unit,
        read_scopes=config.metric.read_scopes,
        write_scopes=config.metric.write_scopes,
    )
    care_plan = CarePlanStore(care_backend)
    state = SyncStatePublisher()
    engine = SyncEngine(vital_signs, care_plan, state, config, clock=clock)

    scheduler = None
    if enable_scheduler and config.sync.interval_seconds > 0:
        scheduler = SyncScheduler(engine, interval_seconds=config.sync.interval_seconds)

    return SyncServices(
        config=config,
        platform=platform,
        vital_signs=vital_signs,
        care_plan=care_plan,
        state=state,
        engine=engine,
        scheduler=scheduler,
    )


async def create_services(settings: Settings) -> SyncServices:
    """Build services from application settings.

    Uses the Postgres care-plan store when ``database_url`` is set, the
    in-memory one otherwise.  The vital-signs platform is always the
    in-process platform.
    """
    if settings.sync_config_path:
        config = load_sync_config(Path(settings.sync_config_path))
    else:
        config = get_sync_config()

    platform = InMemoryVitalSignsPlatform(
        available=settings.vital_signs_available,
        grant=settings.auto_grant_access,
    )

    backend: CarePlanBackend
    if settings.database_url:
        pool = await init_pool(settings)
        postgres = PostgresCarePlanBackend(pool)
        await postgres.ensure_schema()
        backend = postgres
        logger.info("Using Postgres care-plan store")
    else:
        backend = InMemoryCarePlanBackend()
        logger.info("Using in-memory care-plan store")

    services = build_services(
        config, platform, backend, enable_scheduler=settings.enable_scheduler
    )
    services.uses_database = bool(settings.database_url)
    return services
