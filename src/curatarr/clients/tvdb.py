"""TheTVDB v4 client: the primary catalog."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from curatarr.clients.base import BaseClient, RateLimitedError
from curatarr.models import CatalogDetail, CatalogSearchResult, MediaKind
from curatarr.similarity import language_code

logger = logging.getLogger(__name__)

TVDB_API_URL = "https://api4.thetvdb.com/v4"
POSTER_ARTWORK_TYPES = {2, 14}


def _to_int(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _to_year(value: Any) -> int | None:
    if value in (None, ""):
        return None
    return _to_int(str(value)[:4])


class TvdbClient(BaseClient):
    """Client for TheTVDB, authenticated with a bearer token from ``/login``.

    The token is fetched lazily on first use and reused for the lifetime of
    the client.

    Example:
        async with TvdbClient("api-key") as tvdb:
            hits = await tvdb.search("Kurukshetra", kind=MediaKind.TV)
            detail = await tvdb.get_detail(hits[0].id, kind=MediaKind.TV)
    """

    name = "tvdb"
    service_name = "tvdb"

    def __init__(
        self,
        api_key: str,
        *,
        pin: str | None = None,
        base_url: str = TVDB_API_URL,
        **kwargs: Any,
    ) -> None:
        super().__init__(base_url, **kwargs)
        self.api_key = api_key
        self.pin = pin
        self._token: str | None = None
        self._login_lock = asyncio.Lock()

    async def _ensure_token(self) -> None:
        async with self._login_lock:
            if self._token is not None:
                return
            body: dict[str, Any] = {"apikey": self.api_key}
            if self.pin:
                body["pin"] = self.pin
            data = await self._request_with_retry("POST", "/login", json=body)
            self._token = data["data"]["token"]
            self.client.headers["Authorization"] = f"Bearer {self._token}"
            logger.debug("Authenticated with TVDB")

    async def _fetch(self, endpoint: str, params: dict[str, Any] | None = None) -> Any:
        try:
            await self._ensure_token()
        except (httpx.HTTPError, RateLimitedError, KeyError, TypeError) as e:
            logger.warning("TVDB login failed: %s", e)
            return None
        return await self._get_or_none(endpoint, params)

    async def search(
        self, text: str, *, kind: MediaKind, year: int | None = None
    ) -> list[CatalogSearchResult]:
        """Search TVDB for series or movies.

        Returns:
            Matching results; empty on no match or any failure
        """
        params: dict[str, Any] = {
            "query": text,
            "type": "series" if kind is MediaKind.TV else "movie",
        }
        if year:
            params["year"] = year
        data = await self._fetch("/search", params)
        if not data:
            return []

        results = []
        for hit in data.get("data") or []:
            catalog_id = _to_int(hit.get("tvdb_id") or hit.get("id"))
            if catalog_id is None:
                continue
            translations = hit.get("translations") or {}
            results.append(
                CatalogSearchResult(
                    id=catalog_id,
                    title=hit.get("name") or "",
                    original_title=translations.get("eng") if translations else None,
                    year=_to_year(hit.get("year")),
                    original_language=language_code(hit.get("primary_language")),
                )
            )
        return results

    async def get_detail(self, catalog_id: int, *, kind: MediaKind) -> CatalogDetail | None:
        """Fetch extended series/movie detail with remote ids and artwork.

        Returns:
            The detail, or None when not found or on any failure
        """
        section = "series" if kind is MediaKind.TV else "movies"
        data = await self._fetch(f"/{section}/{catalog_id}/extended", {"short": "true"})
        if not data or not isinstance(data.get("data"), dict):
            return None
        return self._to_detail(data["data"], catalog_id)

    @staticmethod
    def _to_detail(record: dict[str, Any], catalog_id: int) -> CatalogDetail:
        tmdb_id: int | None = None
        imdb_id: str | None = None
        for remote in record.get("remoteIds") or []:
            source = (remote.get("sourceName") or "").lower()
            if "themoviedb" in source and tmdb_id is None:
                tmdb_id = _to_int(remote.get("id"))
            elif source == "imdb" and imdb_id is None:
                imdb_id = remote.get("id") or None

        poster = record.get("image")
        if not poster:
            for artwork in record.get("artworks") or []:
                if artwork.get("type") in POSTER_ARTWORK_TYPES and artwork.get("image"):
                    poster = artwork["image"]
                    break

        return CatalogDetail(
            id=_to_int(record.get("id")) or catalog_id,
            title=record.get("name") or "",
            year=_to_year(record.get("year") or record.get("firstAired")),
            original_language=language_code(record.get("originalLanguage")),
            poster_url=poster or None,
            slug=record.get("slug"),
            tvdb_id=_to_int(record.get("id")) or catalog_id,
            tmdb_id=tmdb_id,
            imdb_id=imdb_id,
        )
