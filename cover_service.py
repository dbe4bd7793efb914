import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional

import httpx

from cache_manager import CacheManager
from http_client import OptimizedHTTPClient

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_URL = "https://openlibrary.org/search.json"
DEFAULT_COVER_URL = "https://covers.openlibrary.org/b/isbn/{isbn}-L.jpg"


class CoverLookupError(Exception):
    """Raised internally when the catalog response can't be used."""


def cover_url_from_search(data: Any, cover_url_template: str = DEFAULT_COVER_URL) -> Optional[str]:
    """Derive a cover URL from an Open Library search payload.

    Returns None when the search found nothing or the first match carries no
    ISBN. Raises CoverLookupError for payloads that aren't search results.
    """
    if not isinstance(data, dict):
        raise CoverLookupError(f"Unexpected search payload type: {type(data).__name__}")
    if data.get("numFound") == 0:
        return None

    docs = data.get("docs")
    if not isinstance(docs, list):
        raise CoverLookupError("Search payload has no docs list")
    if not docs:
        return None

    isbns = docs[0].get("isbn") if isinstance(docs[0], dict) else None
    if isbns and isinstance(isbns, list):
        return cover_url_template.format(isbn=isbns[0])
    return None


class CoverService:
    """Looks up cover image URLs for book titles on Open Library."""

    def __init__(self, http_client: OptimizedHTTPClient, cache: Optional[CacheManager] = None,
                 search_url: str = DEFAULT_SEARCH_URL, cover_url_template: str = DEFAULT_COVER_URL,
                 cache_ttl: int = 3600):
        self.http_client = http_client
        self.cache = cache
        self.search_url = search_url
        self.cover_url_template = cover_url_template
        self.cache_ttl = cache_ttl

    @staticmethod
    def _cache_key(title: str) -> str:
        return f"cover:{title.strip().lower()}"

    async def fetch_cover_url(self, title: str) -> Optional[str]:
        """Return a cover URL for ``title``, or None.

        Any network, HTTP status or parsing failure is logged and turned
        into None; it never propagates to the caller.
        """
        key = self._cache_key(title)
        if self.cache is not None:
            entry: Optional[Dict[str, Any]] = self.cache.get(key)
            if entry is not None:
                return entry["url"]

        try:
            response = await self.http_client.get(self.search_url, params={"title": title})
            response.raise_for_status()
            cover_url = cover_url_from_search(response.json(), self.cover_url_template)
        except (httpx.HTTPError, ValueError, CoverLookupError) as e:
            logger.warning("Error fetching book cover for %r: %s", title, e)
            return None

        # Failures above are not cached; "no cover" answers are
        if self.cache is not None:
            self.cache.set(key, {"url": cover_url}, self.cache_ttl)
        return cover_url

    async def fetch_cover_urls(self, titles: Iterable[str]) -> List[Optional[str]]:
        """Look up several titles concurrently; results keep the input order."""
        return list(await asyncio.gather(*(self.fetch_cover_url(title) for title in titles)))
