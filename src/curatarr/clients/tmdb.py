"""TMDB v3 client: the secondary catalog."""

from __future__ import annotations

from typing import Any

from curatarr.clients.base import BaseClient
from curatarr.models import CatalogDetail, CatalogSearchResult, MediaKind
from curatarr.similarity import language_code

TMDB_API_URL = "https://api.themoviedb.org/3"
TMDB_POSTER_BASE = "https://image.tmdb.org/t/p/w500"


def _year(date_str: str | None) -> int | None:
    if not date_str or len(date_str) < 4 or not date_str[:4].isdigit():
        return None
    return int(date_str[:4])


class TmdbClient(BaseClient):
    """Client for TMDB, authenticated with the ``api_key`` query parameter.

    Example:
        async with TmdbClient("api-key") as tmdb:
            hits = await tmdb.search("The Matrix", kind=MediaKind.MOVIE, year=1999)
    """

    name = "tmdb"
    service_name = "tmdb"

    def __init__(self, api_key: str, *, base_url: str = TMDB_API_URL, **kwargs: Any) -> None:
        super().__init__(base_url, params={"api_key": api_key}, **kwargs)

    async def search(
        self, text: str, *, kind: MediaKind, year: int | None = None
    ) -> list[CatalogSearchResult]:
        """Search TMDB for movies or TV shows.

        Returns:
            Matching results; empty on no match or any failure
        """
        params: dict[str, Any] = {"query": text}
        if kind is MediaKind.TV:
            endpoint = "/search/tv"
            if year:
                params["first_air_date_year"] = year
        else:
            endpoint = "/search/movie"
            if year:
                params["year"] = year

        data = await self._get_or_none(endpoint, params)
        if not data:
            return []

        results = []
        for hit in data.get("results") or []:
            if "id" not in hit:
                continue
            if kind is MediaKind.TV:
                title, original = hit.get("name"), hit.get("original_name")
                date = hit.get("first_air_date")
            else:
                title, original = hit.get("title"), hit.get("original_title")
                date = hit.get("release_date")
            results.append(
                CatalogSearchResult(
                    id=hit["id"],
                    title=title or "",
                    original_title=original,
                    year=_year(date),
                    original_language=language_code(hit.get("original_language")),
                )
            )
        return results

    async def get_detail(self, catalog_id: int, *, kind: MediaKind) -> CatalogDetail | None:
        """Fetch TMDB detail with external ids.

        Returns:
            The detail, or None when not found or on any failure
        """
        section = "tv" if kind is MediaKind.TV else "movie"
        data = await self._get_or_none(
            f"/{section}/{catalog_id}", {"append_to_response": "external_ids"}
        )
        if not data:
            return None

        external = data.get("external_ids") or {}
        poster_path = data.get("poster_path")
        if kind is MediaKind.TV:
            title, date = data.get("name"), data.get("first_air_date")
        else:
            title, date = data.get("title"), data.get("release_date")
        return CatalogDetail(
            id=data.get("id", catalog_id),
            title=title or "",
            year=_year(date),
            original_language=language_code(data.get("original_language")),
            poster_url=f"{TMDB_POSTER_BASE}{poster_path}" if poster_path else None,
            tvdb_id=external.get("tvdb_id") or None,
            tmdb_id=data.get("id", catalog_id),
            imdb_id=external.get("imdb_id") or data.get("imdb_id") or None,
        )
