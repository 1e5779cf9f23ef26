"""Brave Search client: web-search fallback for recovering TVDB ids."""

from __future__ import annotations

import logging
import re
from typing import Any

from curatarr.clients.base import BaseClient
from curatarr.models import MediaKind

logger = logging.getLogger(__name__)

BRAVE_API_URL = "https://api.search.brave.com/res/v1"

_TVDB_URL_PATTERNS = [
    re.compile(r"thetvdb\.com/(?:dereferrer/)?(?:series|movies?)/(\d+)(?![\w-])", re.I),
    re.compile(r"thetvdb\.com/\?[^\s\"'<>]*?\bid=(\d+)", re.I),
]


def tvdb_id_from_url(url: str) -> int | None:
    """Extract a numeric TVDB id from a thetvdb.com URL, if it carries one."""
    for pattern in _TVDB_URL_PATTERNS:
        match = pattern.search(url)
        if match:
            return int(match.group(1))
    return None


class BraveSearchClient(BaseClient):
    """Client for the Brave web search API.

    Searches thetvdb.com for a name and returns the first TVDB id found in
    the result URLs. Slug-only URLs carry no id and are skipped.
    """

    service_name = "brave"

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = BRAVE_API_URL,
        result_count: int = 10,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            base_url,
            headers={"X-Subscription-Token": api_key, "Accept": "application/json"},
            **kwargs,
        )
        self.result_count = result_count

    async def search_for_id(
        self, text: str, *, kind: MediaKind, year: int | None = None
    ) -> int | None:
        """Return the first TVDB id found for the text, or None."""
        query = f'"{text}"'
        if year:
            query += f" {year}"
        query += " site:thetvdb.com"
        data = await self._get_or_none(
            "/web/search", {"q": query, "count": self.result_count}
        )
        if not data:
            return None

        section = "series" if kind is MediaKind.TV else "movies"
        results = (data.get("web") or {}).get("results") or []
        fallback: int | None = None
        for result in results:
            url = result.get("url") or ""
            tvdb_id = tvdb_id_from_url(url)
            if tvdb_id is None:
                continue
            if f"/{section}/" in url:
                logger.debug("Web search found TVDB id %d for %r", tvdb_id, text)
                return tvdb_id
            fallback = fallback or tvdb_id
        if fallback is None:
            logger.debug("Web search found no TVDB id for %r", text)
        return fallback
