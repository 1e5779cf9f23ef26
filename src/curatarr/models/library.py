"""Models for items held in the local Radarr/Sonarr libraries."""

from __future__ import annotations

from pydantic import BaseModel, Field

from curatarr.models.common import MediaKind  # noqa: TC001 - pydantic needs it at runtime


class LibraryFile(BaseModel):
    """The file currently held for a library movie."""

    name: str
    size_mb: float | None = None


class LibraryItem(BaseModel):
    """A movie or series in the local managed library."""

    id: int
    kind: MediaKind
    title: str
    year: int | None = None
    tvdb_id: int | None = None
    tmdb_id: int | None = None
    imdb_id: str | None = None
    original_language: str | None = None
    poster_url: str | None = None
    monitored_seasons: list[int] = Field(default_factory=list)
    file: LibraryFile | None = None

    def is_season_monitored(self, season: int) -> bool:
        """Check if a season of this series is monitored in the library."""
        return season in self.monitored_seasons
