"""Shared fixtures for glucose sync tests."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from glucosync.glucose.adapters import CarePlanStore, VitalSignsStore
from glucosync.glucose.backends import InMemoryCarePlanBackend, InMemoryVitalSignsPlatform
from glucosync.glucose.base import AuthorizationStatus
from glucosync.glucose.config_loader import SyncConfig, load_sync_config
from glucosync.glucose.sync.engine import SyncEngine
from glucosync.glucose.sync.state import SyncStatePublisher

# Fixed "now" used by every engine under test
TEST_NOW = datetime(2026, 2, 23, 12, 0, tzinfo=timezone.utc)
METRIC_ID = "blood_glucose"
TASK_ID = "bloodGlucose"


def fixed_clock() -> datetime:
    return TEST_NOW


def hours_ago(hours: float) -> datetime:
    return TEST_NOW - timedelta(hours=hours)


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def sync_config() -> SyncConfig:
    """Load the real bundled sync config for tests."""
    return load_sync_config()


@pytest.fixture
def engine_config(sync_config: SyncConfig) -> SyncConfig:
    """Bundled config with background wake off, so seeding samples does not trigger syncs."""
    return replace(sync_config, sync=replace(sync_config.sync, background_wake=False))


# ---------------------------------------------------------------------------
# Backend fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def platform() -> InMemoryVitalSignsPlatform:
    """Platform with the glucose metric already authorized."""
    p = InMemoryVitalSignsPlatform()
    p.set_authorization(METRIC_ID, AuthorizationStatus.AUTHORIZED)
    return p


@pytest.fixture
def undetermined_platform() -> InMemoryVitalSignsPlatform:
    return InMemoryVitalSignsPlatform()


@pytest.fixture
def care_backend() -> InMemoryCarePlanBackend:
    return InMemoryCarePlanBackend()


# ---------------------------------------------------------------------------
# Adapter / engine fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def vital_signs(platform: InMemoryVitalSignsPlatform) -> VitalSignsStore:
    return VitalSignsStore(platform, metric_id=METRIC_ID)


@pytest.fixture
def care_plan(care_backend: InMemoryCarePlanBackend) -> CarePlanStore:
    return CarePlanStore(care_backend)


@pytest.fixture
def state() -> SyncStatePublisher:
    return SyncStatePublisher()


@pytest.fixture
def engine(
    vital_signs: VitalSignsStore,
    care_plan: CarePlanStore,
    state: SyncStatePublisher,
    engine_config: SyncConfig,
) -> SyncEngine:
    """Engine over in-memory stores with the clock pinned to TEST_NOW."""
    return SyncEngine(vital_signs, care_plan, state, engine_config, clock=fixed_clock)
