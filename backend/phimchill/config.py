"""
Application configuration loaded from environment variables via pydantic-settings.
All settings are validated at startup — bad values fail fast and loudly.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from phimchill.data.cache import DEFAULT_USER_AGENT


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Upstream movie APIs ────────────────────────────────────────────────
    kkphim_base_url: str = Field(default="https://phimapi.com", alias="KKPHIM_BASE_URL")
    iphim_base_url: str = Field(default="https://iphim.cc/api/films", alias="IPHIM_BASE_URL")
    upstream_user_agent: str = Field(default=DEFAULT_USER_AGENT, alias="UPSTREAM_USER_AGENT")

    # ── Response cache (all durations in seconds) ──────────────────────────
    cache_file: Path = Field(default=Path("data/cache_store.json"), alias="CACHE_FILE")
    cache_default_ttl: float = Field(default=600.0, alias="CACHE_DEFAULT_TTL")
    cache_timeout: float = Field(default=3.0, alias="CACHE_TIMEOUT")
    cache_save_interval: float = Field(default=60.0, alias="CACHE_SAVE_INTERVAL")
    cache_cleanup_interval: float = Field(default=600.0, alias="CACHE_CLEANUP_INTERVAL")
    cache_max_age: float = Field(default=2 * 60 * 60, alias="CACHE_MAX_AGE")
    cache_snapshot_retention: float = Field(
        default=24 * 60 * 60, alias="CACHE_SNAPSHOT_RETENTION"
    )

    # ── App config ─────────────────────────────────────────────────────────
    cors_origins: str = Field(default="*", alias="CORS_ORIGINS")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    backend_port: int = Field(default=5000, alias="BACKEND_PORT")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid:
            raise ValueError(f"LOG_LEVEL must be one of {valid}")
        return upper

    @field_validator(
        "cache_default_ttl",
        "cache_timeout",
        "cache_save_interval",
        "cache_cleanup_interval",
        "cache_max_age",
        "cache_snapshot_retention",
    )
    @classmethod
    def validate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("cache durations must be positive")
        return v

    @property
    def cors_origin_list(self) -> list[str]:
        """Parse comma-separated CORS_ORIGINS into a list."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()
