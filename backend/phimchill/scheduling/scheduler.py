"""
Scheduler — APScheduler interval jobs for response cache housekeeping.

Each job handles its own errors — a failed sweep must never crash the
scheduler or stop the other job.

Schedule (defaults, see config.py):
  Cache Persist:  every 60 s   — rewrite the snapshot file (entries <= 24 h old)
  Cache Evict:    every 10 min — drop live entries older than 2 h

Notes:
  - The live store is capped at 2 h; the snapshot keeps up to 24 h so a
    restart can warm-start from it.
  - Both jobs run on the app's event loop, the same thread that serves
    requests, so they never race with cache reads or writes.
"""

import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from phimchill.config import Settings
from phimchill.data.cache import ResponseCache

logger = logging.getLogger(__name__)

_scheduler: Optional[AsyncIOScheduler] = None


# ── Jobs ────────────────────────────────────────────────────────────────────

async def _persist_cache(cache: ResponseCache) -> None:
    try:
        saved = await cache.save_snapshot()
        logger.debug(f"Scheduler: Cache Persist wrote {saved} entries.")
    except Exception as e:
        logger.error(f"Scheduler: Cache Persist failed: {e}", exc_info=True)


async def _evict_cache(cache: ResponseCache) -> None:
    try:
        removed = cache.evict_expired()
        logger.debug(f"Scheduler: Cache Evict removed {removed} entries.")
    except Exception as e:
        logger.error(f"Scheduler: Cache Evict failed: {e}", exc_info=True)


# ── Lifecycle ───────────────────────────────────────────────────────────────

def start_scheduler(cache: ResponseCache, settings: Settings) -> AsyncIOScheduler:
    """
    Initialize and start the AsyncIOScheduler.
    Called from FastAPI lifespan startup, after the cache is open.
    """
    global _scheduler

    _scheduler = AsyncIOScheduler()

    _scheduler.add_job(
        _persist_cache,
        IntervalTrigger(seconds=settings.cache_save_interval),
        args=[cache],
        id="cache_persist",
        name="Cache Persist",
        max_instances=1,
        replace_existing=True,
    )
    _scheduler.add_job(
        _evict_cache,
        IntervalTrigger(seconds=settings.cache_cleanup_interval),
        args=[cache],
        id="cache_evict",
        name="Cache Evict",
        max_instances=1,
        replace_existing=True,
    )

    _scheduler.start()
    job_names = [j.name for j in _scheduler.get_jobs()]
    logger.info(f"Scheduler started — {len(job_names)} jobs: {', '.join(job_names)}")
    return _scheduler


def shutdown_scheduler() -> None:
    """Stop the scheduler gracefully. Called from FastAPI lifespan shutdown."""
    global _scheduler
    if _scheduler and _scheduler.running:
        _scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped.")
    _scheduler = None
