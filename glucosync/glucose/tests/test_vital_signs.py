"""Tests for the vital-signs store adapter."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from glucosync.glucose.adapters import VitalSignsStore
from glucosync.glucose.backends import InMemoryVitalSignsPlatform
from glucosync.glucose.base import AuthorizationStatus
from glucosync.glucose.errors import AccessError, NotAuthorized, StoreError
from glucosync.glucose.tests.conftest import METRIC_ID, hours_ago


class TestRequestAccess:
    """Tests for request_access()."""

    @pytest.mark.asyncio
    async def test_grant_sets_flag(self, undetermined_platform: InMemoryVitalSignsPlatform) -> None:
        store = VitalSignsStore(undetermined_platform, metric_id=METRIC_ID)
        assert store.is_authorized is False

        result = await store.request_access()

        assert result.status is AuthorizationStatus.AUTHORIZED
        assert result.authorized is True
        assert store.is_authorized is True
        assert store.last_access_error is None

    @pytest.mark.asyncio
    async def test_denial_still_counts_as_determined(self) -> None:
        platform = InMemoryVitalSignsPlatform(grant=False)
        store = VitalSignsStore(platform, metric_id=METRIC_ID)

        result = await store.request_access()

        assert result.status is AuthorizationStatus.DENIED
        assert store.is_authorized is True

    @pytest.mark.asyncio
    async def test_platform_unavailable(self) -> None:
        platform = InMemoryVitalSignsPlatform(available=False)
        store = VitalSignsStore(platform, metric_id=METRIC_ID)

        with pytest.raises(AccessError, match="not available"):
            await store.request_access()
        assert isinstance(store.last_access_error, AccessError)
        assert store.is_authorized is False

    @pytest.mark.asyncio
    async def test_empty_scopes(self, undetermined_platform: InMemoryVitalSignsPlatform) -> None:
        store = VitalSignsStore(undetermined_platform, metric_id=METRIC_ID, write_scopes=[])
        with pytest.raises(AccessError, match="scopes"):
            await store.request_access()
        assert undetermined_platform.authorization_status(METRIC_ID) is AuthorizationStatus.UNDETERMINED

    @pytest.mark.asyncio
    async def test_platform_failure_wrapped(self) -> None:
        platform = MagicMock()
        platform.is_health_data_available.return_value = True
        platform.authorization_status.return_value = AuthorizationStatus.UNDETERMINED
        platform.request_authorization = AsyncMock(side_effect=StoreError("prompt failed"))
        store = VitalSignsStore(platform, metric_id=METRIC_ID)

        with pytest.raises(AccessError, match="prompt failed"):
            await store.request_access()

    @pytest.mark.asyncio
    async def test_success_clears_last_error(self) -> None:
        platform = InMemoryVitalSignsPlatform(available=False)
        store = VitalSignsStore(platform, metric_id=METRIC_ID)
        with pytest.raises(AccessError):
            await store.request_access()

        platform._available = True
        await store.request_access()
        assert store.last_access_error is None


class TestReadWrite:
    """Tests for write() and read()."""

    @pytest.mark.asyncio
    async def test_undetermined_never_reaches_platform(self) -> None:
        platform = MagicMock()
        platform.authorization_status.return_value = AuthorizationStatus.UNDETERMINED
        platform.save_sample = AsyncMock()
        platform.query_samples = AsyncMock()
        store = VitalSignsStore(platform, metric_id=METRIC_ID)

        with pytest.raises(NotAuthorized):
            await store.write(120.0, hours_ago(1))
        with pytest.raises(NotAuthorized):
            await store.read(hours_ago(2), hours_ago(0))

        platform.save_sample.assert_not_awaited()
        platform.query_samples.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_denied_rejected_by_platform(self) -> None:
        platform = InMemoryVitalSignsPlatform()
        platform.set_authorization(METRIC_ID, AuthorizationStatus.DENIED)
        store = VitalSignsStore(platform, metric_id=METRIC_ID)

        with pytest.raises(StoreError, match="Not authorized"):
            await store.write(120.0, hours_ago(1))

    @pytest.mark.asyncio
    async def test_write_is_point_in_time(
        self, vital_signs: VitalSignsStore, platform: InMemoryVitalSignsPlatform
    ) -> None:
        at = hours_ago(3)
        sample = await vital_signs.write(142.0, at, external_id="outcome-1")

        assert sample.value == 142.0
        assert sample.timestamp == at
        assert sample.external_id == "outcome-1"
        assert sample.origin_id
        assert platform.samples(METRIC_ID) == [sample]

    @pytest.mark.asyncio
    async def test_read_newest_first(self, vital_signs: VitalSignsStore) -> None:
        await vital_signs.write(100.0, hours_ago(5))
        await vital_signs.write(110.0, hours_ago(1))
        await vital_signs.write(105.0, hours_ago(3))

        samples = await vital_signs.read(hours_ago(24), hours_ago(0))

        assert [s.value for s in samples] == [110.0, 105.0, 100.0]

    @pytest.mark.asyncio
    async def test_read_bounds_inclusive(self, vital_signs: VitalSignsStore) -> None:
        await vital_signs.write(90.0, hours_ago(10))
        await vital_signs.write(95.0, hours_ago(2))
        await vital_signs.write(99.0, hours_ago(30))

        samples = await vital_signs.read(hours_ago(10), hours_ago(2))

        assert sorted(s.value for s in samples) == [90.0, 95.0]


class TestBackgroundWake:
    """Tests for background wake registration and dispatch."""

    @pytest.mark.asyncio
    async def test_external_sample_wakes_handlers(
        self, vital_signs: VitalSignsStore, platform: InMemoryVitalSignsPlatform
    ) -> None:
        handler = AsyncMock()
        vital_signs.add_wake_handler(handler)
        await vital_signs.enable_background_wake()

        await platform.add_external_sample(METRIC_ID, 130.0, hours_ago(1))

        handler.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_enable_requires_determined_status(
        self, undetermined_platform: InMemoryVitalSignsPlatform
    ) -> None:
        store = VitalSignsStore(undetermined_platform, metric_id=METRIC_ID)
        with pytest.raises(NotAuthorized):
            await store.enable_background_wake()

    @pytest.mark.asyncio
    async def test_enable_refused_when_denied(self) -> None:
        platform = InMemoryVitalSignsPlatform()
        platform.set_authorization(METRIC_ID, AuthorizationStatus.DENIED)
        store = VitalSignsStore(platform, metric_id=METRIC_ID)
        with pytest.raises(StoreError):
            await store.enable_background_wake()

    @pytest.mark.asyncio
    async def test_enable_twice_registers_once(
        self, vital_signs: VitalSignsStore, platform: InMemoryVitalSignsPlatform
    ) -> None:
        handler = AsyncMock()
        vital_signs.add_wake_handler(handler)
        await vital_signs.enable_background_wake()
        await vital_signs.enable_background_wake()

        await platform.add_external_sample(METRIC_ID, 130.0, hours_ago(1))

        assert handler.await_count == 1
