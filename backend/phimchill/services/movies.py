"""
Movie catalog — listings, search, recommendations and details aggregated from
KKPhim (phimapi.com, primary) and iPhim (backup).

Every upstream call goes through the shared ResponseCache. Payloads coming back
from the cache are shared objects, so they are copied before items are cleaned.
"""

import asyncio
import logging
import random
import re
from typing import Any, Optional
from urllib.parse import quote

from phimchill.data.cache import ResponseCache
from phimchill.errors import MovieNotFoundError, UpstreamError

logger = logging.getLogger(__name__)

LIST_TTL = 24 * 60 * 60       # genre / country lists barely change
POPULAR_TTL = 30 * 60
SEARCH_TTL = 30 * 60
DETAIL_TIMEOUT = 3.0
RECOMMENDATION_LIMIT = 12
DEFAULT_GENRE = "hanh-dong"

_BRACKETS = re.compile(r"\[.*?\]")
_PARENS = re.compile(r"\(.*?\)")
_EPISODE_SUFFIX = re.compile(r"- Tập \d+.*$")
_CATEGORY_YEAR = re.compile(r"(?:Năm\s+)?(\d{4})")
_NAME_YEAR = re.compile(r"\((\d{4})\)")
_ORIGIN_YEAR = re.compile(r"\b(\d{4})\b")


def clean_movie(movie: Optional[dict]) -> Optional[dict]:
    """Normalize a raw upstream movie: display name, year and image fallbacks."""
    if not movie:
        return None

    name = movie.get("name") or movie.get("title") or movie.get("origin_name") or "Unknown"
    name = _BRACKETS.sub("", name)
    name = _PARENS.sub("", name)
    name = _EPISODE_SUFFIX.sub("", name).strip()

    return {
        **movie,
        "original_name": movie.get("origin_name") or movie.get("original_name"),
        "clean_name": name,
        "poster_url": movie.get("poster_url") or movie.get("thumb_url") or "",
        "thumb_url": movie.get("thumb_url") or movie.get("poster_url") or "",
        "year": _extract_year(movie) or "",
    }


def _extract_year(movie: dict) -> Any:
    if movie.get("year"):
        return movie["year"]

    categories = movie.get("category")
    if isinstance(categories, list):
        for cat in categories:
            cat_name = cat.get("name") if isinstance(cat, dict) else None
            if cat_name:
                match = _CATEGORY_YEAR.search(cat_name)
                if match:
                    return match.group(1)

    match = _NAME_YEAR.search(movie.get("name") or "")
    if match:
        return match.group(1)
    match = _ORIGIN_YEAR.search(movie.get("origin_name") or "")
    if match:
        return match.group(1)
    return None


def _listing_items(data: Any) -> list:
    """Listings put items at the top level or under data.items depending on endpoint."""
    if not isinstance(data, dict):
        return []
    items = data.get("items")
    if not items and isinstance(data.get("data"), dict):
        items = data["data"].get("items")
    return items or []


def _with_clean_items(data: Any, items: list) -> dict:
    base = data if isinstance(data, dict) else {}
    return {**base, "items": [clean_movie(m) for m in items]}


class MovieCatalog:
    def __init__(
        self,
        cache: ResponseCache,
        kkphim_base_url: str = "https://phimapi.com",
        iphim_base_url: str = "https://iphim.cc/api/films",
    ) -> None:
        self._cache = cache
        self._kkphim = kkphim_base_url.rstrip("/")
        self._iphim = iphim_base_url.rstrip("/")

    # ── Reference lists ────────────────────────────────────────────────────

    async def get_genres(self) -> Any:
        return await self._cache.fetch(f"{self._kkphim}/the-loai", ttl=LIST_TTL)

    async def get_countries(self) -> Any:
        return await self._cache.fetch(f"{self._kkphim}/quoc-gia", ttl=LIST_TTL)

    # ── Listings ───────────────────────────────────────────────────────────

    async def get_by_genre(self, slug: str, page: int = 1) -> dict:
        data = await self._cache.fetch(f"{self._kkphim}/v1/api/the-loai/{slug}?page={page}")
        return _with_clean_items(data, _listing_items(data))

    async def get_by_country(self, slug: str, page: int = 1) -> dict:
        data = await self._cache.fetch(f"{self._kkphim}/v1/api/quoc-gia/{slug}?page={page}")
        return _with_clean_items(data, _listing_items(data))

    async def get_by_year(self, year: int, page: int = 1) -> dict:
        data = await self._cache.fetch(f"{self._iphim}/nam-phat-hanh/{year}?page={page}")
        return _with_clean_items(data, _listing_items(data))

    async def get_by_list(self, list_slug: str, page: int = 1) -> dict:
        data = await self._cache.fetch(f"{self._kkphim}/danh-sach/{list_slug}?page={page}")
        return _with_clean_items(data, _listing_items(data))

    async def get_popular(self, page: int = 1) -> dict:
        """Recently updated titles, minus entries without a usable poster."""
        data = await self._cache.fetch(
            f"{self._kkphim}/danh-sach/phim-moi-cap-nhat?page={page}",
            ttl=POPULAR_TTL,
        )
        result = _with_clean_items(data, _listing_items(data))
        result["items"] = [
            m for m in result["items"]
            if m and m["poster_url"] and "not-found" not in m["poster_url"]
        ]
        return result

    # ── Search & recommendations ───────────────────────────────────────────

    async def search(self, query: str) -> dict:
        if not query:
            return {"items": []}
        data = await self._cache.fetch(
            f"{self._kkphim}/v1/api/tim-kiem?keyword={quote(query)}",
            ttl=SEARCH_TTL,
        )
        inner = data.get("data") if isinstance(data, dict) else None
        img_domain = inner.get("APP_DOMAIN_CDN_IMAGE", "") if isinstance(inner, dict) else ""

        result = _with_clean_items(data, _listing_items(data))
        if img_domain:
            for movie in filter(None, result["items"]):
                for field in ("poster_url", "thumb_url"):
                    # Search returns CDN-relative image paths
                    if movie[field] and not movie[field].startswith("http"):
                        movie[field] = f"{img_domain}/{movie[field]}"
        return result

    async def recommend(
        self,
        genres: Optional[list[str]] = None,
        rng: Optional[random.Random] = None,
    ) -> dict:
        """Up to 12 shuffled titles from one randomly chosen genre."""
        rng = rng or random.Random()
        genre = rng.choice(genres or [DEFAULT_GENRE])

        data = await self._cache.fetch(f"{self._kkphim}/v1/api/the-loai/{genre}")
        items = list(_listing_items(data))
        if not items:
            return {"items": []}

        rng.shuffle(items)
        return {
            "items": [clean_movie(m) for m in items[:RECOMMENDATION_LIMIT]],
            "source_genre": genre,
        }

    # ── Details ────────────────────────────────────────────────────────────

    async def get_detail(self, slug: str) -> dict:
        """
        Race every detail source and take the first valid answer.

        Losing requests are abandoned, not cancelled upstream: they still land
        in the cache when they complete.

        Raises:
            MovieNotFoundError: no source returned a valid payload.
        """
        urls = [f"{self._kkphim}/phim/{slug}", f"{self._iphim}/phim/{slug}"]
        tasks = [asyncio.create_task(self._fetch_detail(url)) for url in urls]

        winner: Optional[dict] = None
        try:
            for next_done in asyncio.as_completed(tasks):
                try:
                    winner = await next_done
                    break
                except UpstreamError as e:
                    logger.debug(f"Detail source failed for {slug}: {e}")
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        if winner is None:
            logger.warning(f"Movie detail failed on every source: {slug}")
            raise MovieNotFoundError(slug)

        raw = winner.get("movie") or winner
        movie = clean_movie(raw)
        return {**movie, "episodes": winner.get("episodes") or raw.get("episodes")}

    async def _fetch_detail(self, url: str) -> dict:
        data = await self._cache.fetch(url, timeout=DETAIL_TIMEOUT)
        if not isinstance(data, dict) or not (data.get("movie") or data.get("status")):
            raise UpstreamError(url, "response has neither movie nor status")
        return data

    async def get_details(self, slugs: list[str]) -> list[dict]:
        """
        Enrich a list of movie slugs (history / watchlist rows) with KKPhim
        details. Slugs that fail or have no movie are dropped; order is kept.
        """
        results = await asyncio.gather(*[self._detail_or_none(s) for s in slugs])
        return [m for m in results if m is not None]

    async def _detail_or_none(self, slug: str) -> Optional[dict]:
        try:
            data = await self._cache.fetch(f"{self._kkphim}/phim/{slug}")
        except UpstreamError as e:
            logger.debug(f"Enrichment skipped {slug}: {e}")
            return None
        if not isinstance(data, dict) or not data.get("movie"):
            return None
        return clean_movie(data["movie"])
