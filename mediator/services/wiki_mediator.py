"""Read-through mediator between API requests and the MediaWiki client."""
from typing import List, Optional
import logging
import re

from pydantic import BaseModel, ConfigDict
from starlette.concurrency import run_in_threadpool

from mediator.config import settings
from mediator.services.cache import Cache, NotFound
from mediator.services.wiki_client import WikiClient

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


def normalize_query(query: str) -> str:
    return _WHITESPACE.sub(" ", query.strip()).lower()


def normalize_title(title: str) -> str:
    """MediaWiki canonical form: trimmed, first letter upper-cased, underscores for spaces."""
    title = _WHITESPACE.sub(" ", title.replace("_", " ").strip())
    return (title[:1].upper() + title[1:]).replace(" ", "_")


class SearchResult(BaseModel):
    """Cached titles for one (query, limit) pair."""
    model_config = ConfigDict(frozen=True)

    query: str
    limit: int
    titles: List[str]

    @staticmethod
    def key_for(query: str, limit: int) -> str:
        return f"search:{limit}:{normalize_query(query)}"

    def id(self) -> str:
        return self.key_for(self.query, self.limit)


class PageText(BaseModel):
    """Cached wikitext of one page."""
    model_config = ConfigDict(frozen=True)

    title: str
    text: str

    @staticmethod
    def key_for(title: str) -> str:
        return f"page:{normalize_title(title)}"

    def id(self) -> str:
        return self.key_for(self.title)


class WikiMediator:
    """Serves search and page requests, going to Wikipedia only on a cache miss.

    The cache lock is never held while the client is talking to the network,
    so concurrent misses for the same key may both fetch. The later ``put``
    then refreshes the entry instead of inserting a duplicate.
    """

    def __init__(self, client: WikiClient, cache: Cache):
        self.client = client
        self.cache = cache

    async def simple_search(self, query: str, limit: int) -> List[str]:
        """Titles of up to ``limit`` pages matching ``query``."""
        if limit <= 0 or not query.strip():
            return []

        key = SearchResult.key_for(query, limit)
        cached = self._lookup(key)
        if cached is not None:
            return list(cached.titles)

        titles = await run_in_threadpool(self.client.search, query, limit)
        self.cache.put(SearchResult(query=query, limit=limit, titles=titles))
        return titles

    async def get_page(self, title: str) -> str:
        """Wikitext of ``title``; "" for a page that does not exist."""
        if not title.strip():
            return ""

        key = PageText.key_for(title)
        cached = self._lookup(key)
        if cached is not None:
            return cached.text

        text = await run_in_threadpool(self.client.get_page, title)
        self.cache.put(PageText(title=title, text=text))
        return text

    def _lookup(self, key: str):
        try:
            value = self.cache.get(key)
        except NotFound:
            logger.info(f"Cache miss for {key!r}")
            return None
        logger.debug(f"Cache hit for {key!r}")
        return value


def create_mediator(client: Optional[WikiClient] = None, cache: Optional[Cache] = None) -> WikiMediator:
    """Factory wiring the mediator from application settings."""
    if cache is None:
        cache = Cache(capacity=settings.cache_capacity, timeout=settings.cache_timeout_seconds)
    return WikiMediator(client=client or WikiClient(), cache=cache)
