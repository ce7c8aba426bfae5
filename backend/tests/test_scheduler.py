"""Tests for the cache maintenance scheduler."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from gallerysync.errors import CacheWriteError, Result
from gallerysync.services.scheduler import CacheMaintenanceScheduler


def _sync(result: Result) -> MagicMock:
    sync = MagicMock()
    sync.clear_old_cache = AsyncMock(return_value=result)
    return sync


@pytest.mark.asyncio
async def test_eviction_pass_uses_max_age():
    sync = _sync(Result.success(5))
    scheduler = CacheMaintenanceScheduler(sync, interval_seconds=60, max_age_ms=1234)

    assert await scheduler.evict_old_entries() == 5
    sync.clear_old_cache.assert_awaited_once_with(1234)


@pytest.mark.asyncio
async def test_eviction_failure_is_logged_not_raised(caplog):
    sync = _sync(Result.failure(CacheWriteError(OSError("locked"))))
    scheduler = CacheMaintenanceScheduler(sync, interval_seconds=60, max_age_ms=1000)

    assert await scheduler.evict_old_entries() == 0
    assert "Cache eviction failed" in caplog.text


@pytest.mark.asyncio
async def test_start_registers_job_and_stop_shuts_down():
    scheduler = CacheMaintenanceScheduler(_sync(Result.success(0)), interval_seconds=3600, max_age_ms=1000)

    scheduler.start()
    try:
        assert scheduler.running
        job = scheduler._scheduler.get_job("evict_old_cache")
        assert job is not None
        assert job.trigger.interval.total_seconds() == 3600
    finally:
        await scheduler.stop()
