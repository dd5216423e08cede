"""MediaWiki API client used for cache misses."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from mediator.config import settings

logger = logging.getLogger(__name__)

# MediaWiki caps list=search at 500 results for regular clients
MAX_SEARCH_LIMIT = 500


class WikiClientError(Exception):
    """Raised when the MediaWiki API cannot be reached or returns an error."""


def build_session(user_agent: str) -> requests.Session:
    """Requests session with connection pooling + light retries."""
    session = requests.Session()
    retry = Retry(
        total=2,
        connect=2,
        read=2,
        backoff_factor=0.2,
        status_forcelist=(429, 500, 502, 503, 504),
        allowed_methods=("GET",),
        raise_on_status=False,
    )
    adapter = HTTPAdapter(pool_connections=20, pool_maxsize=20, max_retries=retry)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    session.headers.update({"User-Agent": user_agent, "Accept": "application/json"})
    return session


class WikiClient:
    """Blocking client for the two lookups the mediator caches."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        user_agent: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url or settings.wiki_api_url
        self.timeout = timeout or settings.wiki_request_timeout
        self.session = session or build_session(user_agent or settings.wiki_user_agent)
        logger.info(f"Wiki client initialized for {self.base_url} with {self.timeout}s timeout")

    def search(self, query: str, limit: int) -> List[str]:
        """Return up to ``limit`` page titles matching ``query``."""
        if limit <= 0 or not query.strip():
            return []

        data = self._get({
            "action": "query",
            "list": "search",
            "srsearch": query,
            "srlimit": min(limit, MAX_SEARCH_LIMIT),
            "srprop": "",
        })
        error = data.get("error")
        if error:
            raise WikiClientError(f"Search failed: {error.get('info', error.get('code', 'unknown'))}")

        hits = data.get("query", {}).get("search", [])
        return [hit["title"] for hit in hits if "title" in hit][:limit]

    def get_page(self, title: str) -> str:
        """Return the wikitext of ``title``, or "" if the page does not exist."""
        if not title.strip():
            return ""

        data = self._get({
            "action": "parse",
            "page": title,
            "prop": "wikitext",
            "redirects": 1,
        })
        error = data.get("error")
        if error:
            if error.get("code") == "missingtitle":
                logger.info(f"Page not found: {title!r}")
                return ""
            raise WikiClientError(f"Page fetch failed: {error.get('info', error.get('code', 'unknown'))}")

        wikitext = data.get("parse", {}).get("wikitext", "")
        return wikitext if isinstance(wikitext, str) else ""

    def _get(self, params: Dict[str, Any]) -> Dict[str, Any]:
        params = {**params, "format": "json", "formatversion": 2}
        logger.debug(f"MediaWiki request: {params.get('action')} {params}")
        try:
            response = self.session.get(self.base_url, params=params, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.Timeout as e:
            logger.error(f"MediaWiki request timed out after {self.timeout}s")
            raise WikiClientError("MediaWiki request timed out") from e
        except requests.RequestException as e:
            logger.error(f"MediaWiki request failed: {type(e).__name__}: {e}")
            raise WikiClientError(f"MediaWiki request failed: {str(e)[:100]}") from e
        except ValueError as e:
            logger.error(f"MediaWiki returned invalid JSON: {e}")
            raise WikiClientError("MediaWiki returned invalid JSON") from e

        if not isinstance(data, dict):
            logger.error(f"MediaWiki returned {type(data).__name__} instead of a JSON object")
            raise WikiClientError("MediaWiki returned an unexpected response")
        return data
