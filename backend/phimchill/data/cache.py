"""
Stale-while-revalidate response cache for the upstream movie APIs.

Keys are full upstream URLs (query string included). A fresh hit is served
from memory, a stale hit is served from memory while a detached task refetches
it, and only a true miss waits on the network. The store is warm-started from
a JSON snapshot in open() and written back / swept by the scheduler jobs in
phimchill.scheduling.scheduler.

All store mutation happens on the event loop thread. The blocking requests call
and snapshot file I/O run in worker threads via asyncio.to_thread.

Snapshot format (data/cache_store.json by default):
    [[url, {"data": <json>, "timestamp": <epoch ms>}], ...]
"""

import asyncio
import json
import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional

import requests

from phimchill.errors import UpstreamError

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)


@dataclass
class CacheEntry:
    data: Any
    timestamp: float  # epoch seconds at fetch completion


class ResponseCache:
    def __init__(
        self,
        snapshot_path: Path | str,
        default_ttl: float = 600.0,
        default_timeout: float = 3.0,
        max_age: float = 2 * 60 * 60,
        snapshot_retention: float = 24 * 60 * 60,
        user_agent: str = DEFAULT_USER_AGENT,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Args:
            snapshot_path: JSON file read on open() and rewritten by save_snapshot().
            default_ttl: Seconds before an entry is stale and gets revalidated.
            default_timeout: Total deadline in seconds for one upstream request.
            max_age: evict_expired() drops live entries older than this.
            snapshot_retention: save_snapshot() skips entries older than this.
            user_agent: Sent on every upstream request.
            clock: Wall-clock source in epoch seconds (snapshots persist it).
        """
        self._snapshot_path = Path(snapshot_path)
        self._default_ttl = default_ttl
        self._default_timeout = default_timeout
        self._max_age = max_age
        self._snapshot_retention = snapshot_retention
        self._user_agent = user_agent
        self._clock = clock

        self._store: dict[str, CacheEntry] = {}
        self._inflight: dict[str, asyncio.Task] = {}
        self._refreshing: dict[str, asyncio.Task] = {}
        self._session: Optional[requests.Session] = None
        self._stats = {
            "hits": 0,
            "stale_hits": 0,
            "misses": 0,
            "refreshes": 0,
            "refresh_failures": 0,
        }

    @classmethod
    def from_settings(cls, settings) -> "ResponseCache":
        """Build a cache from phimchill.config.Settings."""
        return cls(
            snapshot_path=settings.cache_file,
            default_ttl=settings.cache_default_ttl,
            default_timeout=settings.cache_timeout,
            max_age=settings.cache_max_age,
            snapshot_retention=settings.cache_snapshot_retention,
            user_agent=settings.upstream_user_agent,
        )

    # ── Lifecycle ──────────────────────────────────────────────────────────

    @property
    def is_open(self) -> bool:
        return self._session is not None

    async def open(self) -> None:
        """Create the HTTP session and seed the store from the snapshot, if any."""
        if self.is_open:
            return
        self._session = requests.Session()
        self._session.headers["User-Agent"] = self._user_agent

        loaded = await asyncio.to_thread(self._read_snapshot)
        self._store.update(loaded)
        logger.info(f"Response cache opened with {len(loaded)} entries from {self._snapshot_path}")

    async def close(self) -> None:
        """Cancel background refreshes, let cold misses finish, save, release the session."""
        if not self.is_open:
            return
        refreshes = list(self._refreshing.values())
        for task in refreshes:
            task.cancel()
        await asyncio.gather(*refreshes, return_exceptions=True)
        # Cold misses still have waiters; let them finish on the open session.
        await asyncio.gather(*list(self._inflight.values()), return_exceptions=True)

        await self.save_snapshot()
        self._session.close()
        self._session = None
        logger.info("Response cache closed.")

    # ── Fetch ──────────────────────────────────────────────────────────────

    async def fetch(
        self,
        key: str,
        ttl: Optional[float] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """
        Return the payload for `key`, going upstream only on a miss.

        A stale hit returns the cached payload at once and starts a background
        refetch. Concurrent misses for the same key share one upstream request.

        Raises:
            UpstreamError: on a miss whose upstream request failed.
        """
        if not self.is_open:
            raise RuntimeError("ResponseCache.fetch() called before open()")
        ttl = self._default_ttl if ttl is None else ttl
        timeout = self._default_timeout if timeout is None else timeout

        entry = self._store.get(key)
        if entry is not None:
            if self._clock() - entry.timestamp > ttl:
                self._stats["stale_hits"] += 1
                self._revalidate(key, timeout)
            else:
                self._stats["hits"] += 1
            return entry.data

        self._stats["misses"] += 1
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.create_task(self._fetch_and_store(key, timeout))
            self._inflight[key] = task
            task.add_done_callback(lambda t: _forget(self._inflight, key, t))
        return await asyncio.shield(task)

    def _revalidate(self, key: str, timeout: float) -> None:
        if key in self._refreshing or key in self._inflight:
            return
        task = asyncio.create_task(self._refresh(key, timeout))
        self._refreshing[key] = task
        task.add_done_callback(lambda t: _forget(self._refreshing, key, t))

    async def _refresh(self, key: str, timeout: float) -> None:
        self._stats["refreshes"] += 1
        try:
            await self._fetch_and_store(key, timeout)
        except UpstreamError as e:
            # The stale entry stays; the next stale hit retries.
            self._stats["refresh_failures"] += 1
            logger.debug(f"Background refresh failed, keeping stale entry: {e}")

    async def _fetch_and_store(self, key: str, timeout: float) -> Any:
        # requests only bounds each connect/read; the whole call gets `timeout` in total.
        try:
            data = await asyncio.wait_for(asyncio.to_thread(self._request, key, timeout), timeout)
        except asyncio.TimeoutError as e:
            raise UpstreamError(key, f"timed out after {timeout}s") from e
        self._store[key] = CacheEntry(data=data, timestamp=self._clock())
        return data

    def _request(self, url: str, timeout: float) -> Any:
        try:
            resp = self._session.get(url, timeout=timeout)
            resp.raise_for_status()
            return resp.json()
        except requests.RequestException as e:
            raise UpstreamError(url, str(e)) from e

    async def drain(self) -> None:
        """Wait for every background refresh currently in flight."""
        while self._refreshing:
            await asyncio.gather(*self._refreshing.values(), return_exceptions=True)

    # ── Housekeeping ───────────────────────────────────────────────────────

    def evict_expired(self) -> int:
        """Drop live entries older than max_age. Returns the number removed."""
        now = self._clock()
        expired = [k for k, e in self._store.items() if now - e.timestamp > self._max_age]
        for key in expired:
            del self._store[key]
        if expired:
            logger.info(f"Response cache evicted {len(expired)} expired entries.")
        return len(expired)

    async def save_snapshot(self) -> int:
        """
        Overwrite the snapshot with entries younger than snapshot_retention.
        Best effort: failures are logged and 0 is returned.
        """
        now = self._clock()
        rows = [
            [key, {"data": e.data, "timestamp": round(e.timestamp * 1000)}]
            for key, e in self._store.items()
            if now - e.timestamp <= self._snapshot_retention
        ]
        try:
            await asyncio.to_thread(self._write_snapshot, rows)
        except (OSError, TypeError, ValueError) as e:
            logger.warning(f"Response cache snapshot save failed: {e}")
            return 0
        logger.debug(f"Response cache snapshot saved ({len(rows)} entries).")
        return len(rows)

    def _write_snapshot(self, rows: list) -> None:
        payload = json.dumps(rows, ensure_ascii=False)
        self._snapshot_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._snapshot_path.with_name(self._snapshot_path.name + ".tmp")
        tmp_path.write_text(payload, encoding="utf-8")
        os.replace(tmp_path, self._snapshot_path)

    def _read_snapshot(self) -> dict[str, CacheEntry]:
        if not self._snapshot_path.exists():
            return {}
        try:
            raw = json.loads(self._snapshot_path.read_text(encoding="utf-8"))
            if not isinstance(raw, list):
                raise ValueError("snapshot is not a list of [key, entry] pairs")
            return {
                str(key): CacheEntry(data=value["data"], timestamp=value["timestamp"] / 1000)
                for key, value in raw
            }
        except (OSError, ValueError, TypeError, KeyError) as e:
            logger.warning(f"Response cache snapshot unreadable, starting cold: {e}")
            return {}

    # ── Introspection ──────────────────────────────────────────────────────

    def peek(self, key: str) -> Optional[CacheEntry]:
        """Return the stored entry without counting a hit or revalidating."""
        return self._store.get(key)

    def prime(self, key: str, data: Any, timestamp: Optional[float] = None) -> None:
        """Insert an entry directly, e.g. to warm the cache from a known payload."""
        self._store[key] = CacheEntry(
            data=data,
            timestamp=self._clock() if timestamp is None else timestamp,
        )

    def stats(self) -> dict[str, int]:
        return {
            "size": len(self._store),
            **self._stats,
            "inflight": len(self._inflight) + len(self._refreshing),
        }

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, key: str) -> bool:
        return key in self._store


def _forget(tasks: dict[str, asyncio.Task], key: str, task: asyncio.Task) -> None:
    if tasks.get(key) is task:
        del tasks[key]
    if task.cancelled():
        return
    # Retrieve the exception so an abandoned task stays quiet; anything other
    # than an upstream failure is a bug and gets logged.
    exc = task.exception()
    if exc is not None and not isinstance(exc, UpstreamError):
        logger.warning(f"Response cache task for {key} failed: {exc!r}", exc_info=exc)
