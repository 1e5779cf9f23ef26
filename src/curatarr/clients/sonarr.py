"""Sonarr API client: the series side of the local library."""

from __future__ import annotations

from typing import Any

from curatarr.clients.base import BaseClient
from curatarr.clients.radarr import language_from_arr, poster_from_images
from curatarr.models import LibraryItem, MediaKind


class SonarrClient(BaseClient):
    """Client for listing the series held in Sonarr.

    Example:
        async with SonarrClient("http://localhost:8989", "api-key") as client:
            items = await client.get_library_items()
    """

    service_name = "sonarr"

    def __init__(self, base_url: str, api_key: str, **kwargs: Any) -> None:
        super().__init__(base_url, headers={"X-Api-Key": api_key}, **kwargs)

    async def get_library_items(self) -> list[LibraryItem]:
        """Fetch every series in the library with its monitored seasons.

        Raises:
            httpx.HTTPError: If the library cannot be listed
        """
        data = await self._get("/api/v3/series")
        items = []
        for series in data:
            monitored = [
                s.get("seasonNumber", 0)
                for s in series.get("seasons", [])
                if s.get("monitored", False)
            ]
            items.append(
                LibraryItem(
                    id=series["id"],
                    kind=MediaKind.TV,
                    title=series.get("title", ""),
                    year=series.get("year") or None,
                    tvdb_id=series.get("tvdbId") or None,
                    tmdb_id=series.get("tmdbId") or None,
                    imdb_id=series.get("imdbId") or None,
                    original_language=language_from_arr(series.get("originalLanguage")),
                    poster_url=poster_from_images(series.get("images")),
                    monitored_seasons=monitored,
                )
            )
        return items
