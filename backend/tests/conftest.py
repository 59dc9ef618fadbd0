"""
Shared pytest fixtures for PhimChill backend tests.
"""
import threading
from unittest.mock import AsyncMock, MagicMock

import pytest

from phimchill.data.cache import ResponseCache


class FakeClock:
    """Settable epoch-seconds clock. Safe to advance from the worker thread."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start
        self._lock = threading.Lock()

    def __call__(self) -> float:
        with self._lock:
            return self.now

    def advance(self, seconds: float) -> None:
        with self._lock:
            self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def snapshot_path(tmp_path):
    return tmp_path / "cache_store.json"


@pytest.fixture
def make_cache(snapshot_path, clock):
    """
    Factory for a ResponseCache on a temp snapshot file and the fake clock.
    Tests patch `cache._request` to stand in for the upstream HTTP call.
    """
    def _make(**overrides) -> ResponseCache:
        kwargs = {"snapshot_path": snapshot_path, "clock": clock}
        kwargs.update(overrides)
        return ResponseCache(**kwargs)
    return _make


@pytest.fixture
def catalog_cache():
    """A stand-in cache whose fetch() is an AsyncMock."""
    cache = MagicMock()
    cache.fetch = AsyncMock()
    return cache


def mock_settings(**overrides):
    """
    Return a MagicMock carrying the cache settings the scheduler and
    ResponseCache.from_settings read. Pass keyword args to override.
    """
    s = MagicMock()
    s.cache_file = overrides.get('cache_file', 'data/cache_store.json')
    s.cache_default_ttl = overrides.get('cache_default_ttl', 600.0)
    s.cache_timeout = overrides.get('cache_timeout', 3.0)
    s.cache_save_interval = overrides.get('cache_save_interval', 60.0)
    s.cache_cleanup_interval = overrides.get('cache_cleanup_interval', 600.0)
    s.cache_max_age = overrides.get('cache_max_age', 7200.0)
    s.cache_snapshot_retention = overrides.get('cache_snapshot_retention', 86400.0)
    s.upstream_user_agent = overrides.get('upstream_user_agent', 'test-agent')
    return s
