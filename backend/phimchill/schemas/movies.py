"""
Movie API request/response schemas.
"""

from typing import Optional

from pydantic import BaseModel, Field


class RecommendationRequest(BaseModel):
    genres: list[str] = Field(default_factory=list)


class BatchDetailRequest(BaseModel):
    slugs: list[str] = Field(default_factory=list, max_length=100)


class CacheStats(BaseModel):
    size: int
    hits: int
    stale_hits: int
    misses: int
    refreshes: int
    refresh_failures: int
    inflight: int


class HealthResponse(BaseModel):
    status: str
    version: str
    cache: CacheStats


class ErrorResponse(BaseModel):
    error: str
    detail: Optional[str] = None

