"""
Unit tests for phimchill.config.Settings — env parsing and validation.
"""
from pathlib import Path

import pytest
from pydantic import ValidationError

from phimchill.config import Settings


def test_defaults(monkeypatch):
    for var in ("CACHE_FILE", "CACHE_DEFAULT_TTL", "LOG_LEVEL", "CORS_ORIGINS"):
        monkeypatch.delenv(var, raising=False)

    s = Settings(_env_file=None)

    assert s.cache_file == Path("data/cache_store.json")
    assert s.cache_default_ttl == 600.0
    assert s.cache_timeout == 3.0
    assert s.cache_save_interval == 60.0
    assert s.cache_cleanup_interval == 600.0
    assert s.cache_max_age == 7200.0
    assert s.cache_snapshot_retention == 86400.0
    assert s.cors_origin_list == ["*"]


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("CACHE_DEFAULT_TTL", "30")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("CORS_ORIGINS", "http://localhost:5173, https://phimchill.example")

    s = Settings(_env_file=None)

    assert s.cache_default_ttl == 30.0
    assert s.log_level == "DEBUG"
    assert s.cors_origin_list == ["http://localhost:5173", "https://phimchill.example"]


def test_invalid_log_level_rejected(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "chatty")
    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_non_positive_duration_rejected(monkeypatch):
    monkeypatch.setenv("CACHE_MAX_AGE", "0")
    with pytest.raises(ValidationError):
        Settings(_env_file=None)
