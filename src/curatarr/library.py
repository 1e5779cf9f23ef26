"""In-memory index over the local Radarr/Sonarr library."""

from __future__ import annotations

from typing import TYPE_CHECKING

from curatarr.parser import normalize_title

if TYPE_CHECKING:
    from collections.abc import Iterable

    from curatarr.models import LibraryItem, MediaKind


class LibraryIndex:
    """Snapshot of library items indexed by name and by catalog id.

    Built once per run from the Radarr/Sonarr item lists, so lookups during
    processing never hit the network.

    Example:
        index = LibraryIndex(await radarr.get_library_items())
        item = index.find_by_external_id(kind=MediaKind.MOVIE, tmdb_id=603)
    """

    def __init__(self, items: Iterable[LibraryItem] = ()) -> None:
        self._by_id: dict[tuple[MediaKind, int], LibraryItem] = {}
        self._by_name: dict[tuple[MediaKind, str], LibraryItem] = {}
        self._by_tvdb: dict[tuple[MediaKind, int], LibraryItem] = {}
        self._by_tmdb: dict[tuple[MediaKind, int], LibraryItem] = {}
        self._by_imdb: dict[tuple[MediaKind, str], LibraryItem] = {}
        for item in items:
            self.add(item)

    def __len__(self) -> int:
        return len(self._by_id)

    def add(self, item: LibraryItem) -> None:
        """Add an item; the first item wins when two share a name."""
        kind = item.kind
        self._by_id[(kind, item.id)] = item
        self._by_name.setdefault((kind, normalize_title(item.title)), item)
        if item.tvdb_id:
            self._by_tvdb.setdefault((kind, item.tvdb_id), item)
        if item.tmdb_id:
            self._by_tmdb.setdefault((kind, item.tmdb_id), item)
        if item.imdb_id:
            self._by_imdb.setdefault((kind, item.imdb_id.lower()), item)

    def find_by_normalized_name(self, name: str, *, kind: MediaKind) -> LibraryItem | None:
        """Find an item whose normalized title equals the normalized name."""
        normalized = normalize_title(name)
        if not normalized:
            return None
        return self._by_name.get((kind, normalized))

    def find_by_external_id(
        self,
        *,
        kind: MediaKind,
        tvdb_id: int | None = None,
        tmdb_id: int | None = None,
        imdb_id: str | None = None,
    ) -> LibraryItem | None:
        """Find an item by TVDB, then TMDB, then IMDb id."""
        if tvdb_id and (kind, tvdb_id) in self._by_tvdb:
            return self._by_tvdb[(kind, tvdb_id)]
        if tmdb_id and (kind, tmdb_id) in self._by_tmdb:
            return self._by_tmdb[(kind, tmdb_id)]
        if imdb_id:
            return self._by_imdb.get((kind, imdb_id.lower()))
        return None

    def get(self, library_item_id: int, *, kind: MediaKind) -> LibraryItem | None:
        """Get an item by its library id."""
        return self._by_id.get((kind, library_item_id))
