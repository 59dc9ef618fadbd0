"""
FastAPI dependencies — hand the app-scoped cache and catalog to routers.
Both are built in the lifespan (main.py) and live on app.state.
"""

from fastapi import Request

from phimchill.data.cache import ResponseCache
from phimchill.services.movies import MovieCatalog


def get_cache(request: Request) -> ResponseCache:
    return request.app.state.cache


def get_catalog(request: Request) -> MovieCatalog:
    return request.app.state.catalog
