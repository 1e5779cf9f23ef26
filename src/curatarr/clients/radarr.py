"""Radarr API client: the movie side of the local library."""

from __future__ import annotations

from typing import Any

from curatarr.clients.base import BaseClient
from curatarr.models import LibraryFile, LibraryItem, MediaKind
from curatarr.similarity import language_code

BYTES_PER_MB = 1024 * 1024


def poster_from_images(images: list[dict[str, Any]] | None) -> str | None:
    """Pick the poster URL from an arr ``images`` list."""
    for image in images or []:
        if image.get("coverType") == "poster":
            return image.get("remoteUrl") or image.get("url")
    return None


def language_from_arr(value: Any) -> str | None:
    """Read an arr ``originalLanguage`` object as a two-letter code."""
    if isinstance(value, dict):
        return language_code(value.get("name"))
    return None


class RadarrClient(BaseClient):
    """Client for listing the movies held in Radarr.

    Example:
        async with RadarrClient("http://localhost:7878", "api-key") as client:
            items = await client.get_library_items()
    """

    service_name = "radarr"

    def __init__(self, base_url: str, api_key: str, **kwargs: Any) -> None:
        super().__init__(base_url, headers={"X-Api-Key": api_key}, **kwargs)

    async def get_library_items(self) -> list[LibraryItem]:
        """Fetch every movie in the library.

        Returns:
            List of LibraryItem models, with the held file when there is one

        Raises:
            httpx.HTTPError: If the library cannot be listed
        """
        data = await self._get("/api/v3/movie")
        return [self._to_item(movie) for movie in data]

    @staticmethod
    def _to_item(movie: dict[str, Any]) -> LibraryItem:
        held: LibraryFile | None = None
        movie_file = movie.get("movieFile")
        if isinstance(movie_file, dict):
            size = movie_file.get("size")
            held = LibraryFile(
                name=movie_file.get("sceneName") or movie_file.get("relativePath") or "",
                size_mb=round(size / BYTES_PER_MB, 2) if size else None,
            )
        return LibraryItem(
            id=movie["id"],
            kind=MediaKind.MOVIE,
            title=movie.get("title", ""),
            year=movie.get("year") or None,
            tmdb_id=movie.get("tmdbId") or None,
            imdb_id=movie.get("imdbId") or None,
            original_language=language_from_arr(movie.get("originalLanguage")),
            poster_url=poster_from_images(movie.get("images")),
            file=held,
        )
