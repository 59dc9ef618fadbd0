"""
PhimChill — FastAPI application entry point.

Opens the response cache (warm-starting it from the last snapshot), starts the
housekeeping scheduler, and registers the routers. Shutdown reverses both and
writes a final snapshot.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from phimchill import __version__
from phimchill.config import get_settings
from phimchill.data.cache import ResponseCache
from phimchill.routers import movies, system
from phimchill.scheduling.scheduler import shutdown_scheduler, start_scheduler
from phimchill.services.movies import MovieCatalog

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting PhimChill backend...")
    cache = ResponseCache.from_settings(settings)
    await cache.open()
    app.state.cache = cache
    app.state.catalog = MovieCatalog(
        cache,
        kkphim_base_url=settings.kkphim_base_url,
        iphim_base_url=settings.iphim_base_url,
    )

    start_scheduler(cache, settings)
    yield
    logger.info("Shutting down...")
    shutdown_scheduler()
    await cache.close()


app = FastAPI(
    title="PhimChill",
    description="Movie catalog API backed by a stale-while-revalidate upstream cache.",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ────────────────────────────────────────────────────────────────
app.include_router(system.router, tags=["system"])
app.include_router(movies.router, prefix="/api/movies", tags=["movies"])
