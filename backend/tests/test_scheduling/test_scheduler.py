"""
Unit tests for phimchill.scheduling.scheduler

  start_scheduler / shutdown_scheduler — both housekeeping jobs registered
                                         with the configured intervals
  _persist_cache / _evict_cache        — call through to the cache and never
                                         let an exception escape
"""
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from phimchill.scheduling import scheduler
from tests.conftest import mock_settings


@pytest.mark.asyncio
async def test_start_scheduler_registers_both_jobs():
    cache = MagicMock()
    s = mock_settings(cache_save_interval=30.0, cache_cleanup_interval=300.0)

    sched = scheduler.start_scheduler(cache, s)
    try:
        jobs = {job.id: job for job in sched.get_jobs()}
        assert set(jobs) == {"cache_persist", "cache_evict"}
        assert jobs["cache_persist"].trigger.interval == timedelta(seconds=30)
        assert jobs["cache_evict"].trigger.interval == timedelta(seconds=300)
        assert jobs["cache_persist"].args == (cache,)
    finally:
        scheduler.shutdown_scheduler()

    assert scheduler._scheduler is None


def test_shutdown_without_start_is_noop():
    scheduler.shutdown_scheduler()
    assert scheduler._scheduler is None


@pytest.mark.asyncio
async def test_persist_job_saves_snapshot():
    cache = MagicMock()
    cache.save_snapshot = AsyncMock(return_value=3)

    await scheduler._persist_cache(cache)

    cache.save_snapshot.assert_awaited_once()


@pytest.mark.asyncio
async def test_persist_job_swallows_errors():
    cache = MagicMock()
    cache.save_snapshot = AsyncMock(side_effect=RuntimeError("disk gone"))

    await scheduler._persist_cache(cache)  # must not raise


@pytest.mark.asyncio
async def test_evict_job_sweeps_and_swallows_errors():
    cache = MagicMock()
    cache.evict_expired.return_value = 2
    await scheduler._evict_cache(cache)
    cache.evict_expired.assert_called_once()

    cache.evict_expired.side_effect = RuntimeError("boom")
    await scheduler._evict_cache(cache)  # must not raise
