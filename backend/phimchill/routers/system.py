"""
System routes — liveness text and a health check with cache statistics.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from phimchill import __version__
from phimchill.data.cache import ResponseCache
from phimchill.dependencies import get_cache
from phimchill.schemas.movies import HealthResponse

router = APIRouter()


@router.get("/", response_class=PlainTextResponse)
async def check() -> str:
    return "Backend is running!"


@router.get("/health", response_model=HealthResponse)
async def health(cache: ResponseCache = Depends(get_cache)) -> dict:
    return {
        "status": "ok" if cache.is_open else "degraded",
        "version": __version__,
        "cache": cache.stats(),
    }
