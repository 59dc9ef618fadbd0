"""
Domain exceptions. Routers map these onto HTTP responses.
"""


class PhimChillError(Exception):
    """Base class for errors raised by the backend."""


class UpstreamError(PhimChillError):
    """An upstream movie API call failed (network, timeout, HTTP status or bad JSON)."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"Upstream fetch failed for {url}: {reason}")
        self.url = url
        self.reason = reason


class MovieNotFoundError(PhimChillError):
    def __init__(self, slug: str) -> None:
        super().__init__(f"No source returned movie '{slug}'")
        self.slug = slug
