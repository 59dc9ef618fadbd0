"""
Movies API — catalog listings, search, recommendations and details.

Upstream failures never surface as tracebacks: listings answer 500 with a
generic error body, year listings and recommendations fall back to empty
results, and details answer 404.
"""

import logging

from fastapi import APIRouter, Depends, Query, Response
from fastapi.responses import JSONResponse

from phimchill.dependencies import get_catalog
from phimchill.errors import MovieNotFoundError, UpstreamError
from phimchill.schemas.movies import BatchDetailRequest, ErrorResponse, RecommendationRequest
from phimchill.services.movies import MovieCatalog

logger = logging.getLogger(__name__)
router = APIRouter()

_ERROR = {500: {"model": ErrorResponse}}
_DETAIL_CACHE_CONTROL = "public, max-age=300"


def _upstream_failed(what: str, e: UpstreamError) -> JSONResponse:
    logger.warning(f"Movies: {what} failed: {e}")
    return JSONResponse({"error": "Error"}, status_code=500)


# ── Reference lists ─────────────────────────────────────────────────────────

@router.get("/genres", responses=_ERROR)
async def get_genres(catalog: MovieCatalog = Depends(get_catalog)):
    try:
        return await catalog.get_genres()
    except UpstreamError as e:
        return _upstream_failed("genres", e)


@router.get("/countries", responses=_ERROR)
async def get_countries(catalog: MovieCatalog = Depends(get_catalog)):
    try:
        return await catalog.get_countries()
    except UpstreamError as e:
        return _upstream_failed("countries", e)


# ── Listings ────────────────────────────────────────────────────────────────

@router.get("/genre/{slug}", responses=_ERROR)
async def get_movies_by_genre(
    slug: str,
    page: int = Query(1, ge=1),
    catalog: MovieCatalog = Depends(get_catalog),
):
    try:
        return await catalog.get_by_genre(slug, page)
    except UpstreamError as e:
        return _upstream_failed(f"genre {slug}", e)


@router.get("/country/{slug}", responses=_ERROR)
async def get_movies_by_country(
    slug: str,
    page: int = Query(1, ge=1),
    catalog: MovieCatalog = Depends(get_catalog),
):
    try:
        return await catalog.get_by_country(slug, page)
    except UpstreamError as e:
        return _upstream_failed(f"country {slug}", e)


@router.get("/year/{year}")
async def get_movies_by_year(
    year: int,
    page: int = Query(1, ge=1),
    catalog: MovieCatalog = Depends(get_catalog),
):
    """Backup source only — an empty listing beats an error page here."""
    try:
        return await catalog.get_by_year(year, page)
    except UpstreamError as e:
        logger.warning(f"Movies: year {year} failed: {e}")
        return {"title": "Movies", "items": []}


@router.get("/popular", responses=_ERROR)
async def get_popular(
    page: int = Query(1, ge=1),
    catalog: MovieCatalog = Depends(get_catalog),
):
    try:
        return await catalog.get_popular(page)
    except UpstreamError as e:
        return _upstream_failed("popular", e)


@router.get("/list/{list_slug}", responses=_ERROR)
async def get_movies_by_list(
    list_slug: str,
    page: int = Query(1, ge=1),
    catalog: MovieCatalog = Depends(get_catalog),
):
    try:
        return await catalog.get_by_list(list_slug, page)
    except UpstreamError as e:
        return _upstream_failed(f"list {list_slug}", e)


# ── Search & recommendations ────────────────────────────────────────────────

@router.get("/search", responses=_ERROR)
async def search_movies(
    query: str = Query(""),
    catalog: MovieCatalog = Depends(get_catalog),
):
    try:
        return await catalog.search(query)
    except UpstreamError as e:
        return _upstream_failed("search", e)


@router.post("/recommendations")
async def get_recommendations(
    body: RecommendationRequest,
    catalog: MovieCatalog = Depends(get_catalog),
):
    try:
        return await catalog.recommend(body.genres)
    except UpstreamError as e:
        logger.error(f"Movies: recommendations failed: {e}")
        return {"items": []}


# ── Details ─────────────────────────────────────────────────────────────────

@router.post("/batch")
async def get_movie_batch(
    body: BatchDetailRequest,
    catalog: MovieCatalog = Depends(get_catalog),
):
    """Details for many slugs at once (history / watchlist enrichment)."""
    return await catalog.get_details(body.slugs)


@router.get("/detail/{slug}", responses={404: {"model": ErrorResponse}})
async def get_movie_detail(
    slug: str,
    response: Response,
    catalog: MovieCatalog = Depends(get_catalog),
):
    """Races both sources; the not-found answer is cacheable too."""
    try:
        movie = await catalog.get_detail(slug)
    except MovieNotFoundError:
        return JSONResponse(
            {"error": "NotFound"},
            status_code=404,
            headers={"Cache-Control": _DETAIL_CACHE_CONTROL},
        )
    response.headers["Cache-Control"] = _DETAIL_CACHE_CONTROL
    return movie
