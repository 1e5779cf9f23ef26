"""Capability interfaces the resolver and orchestrator depend on.

Concrete implementations live in :mod:`curatarr.clients` and
:mod:`curatarr.library`; tests substitute in-memory fakes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from curatarr.models import CatalogDetail, CatalogSearchResult, LibraryItem, MediaKind


class CatalogService(Protocol):
    """A metadata catalog that can be searched and queried by id.

    Implementations must not raise on no-match or not-found: ``search``
    returns an empty list and ``get_detail`` returns None.
    """

    name: str

    async def search(
        self, text: str, *, kind: MediaKind, year: int | None = None
    ) -> list[CatalogSearchResult]:
        """Free-text search for movies or series."""
        ...

    async def get_detail(self, catalog_id: int, *, kind: MediaKind) -> CatalogDetail | None:
        """Fetch extended detail, including cross-referenced ids and artwork."""
        ...


class WebIdSearch(Protocol):
    """General web search used to recover a primary-catalog id."""

    async def search_for_id(
        self, text: str, *, kind: MediaKind, year: int | None = None
    ) -> int | None:
        """Return a primary-catalog id found for the text, if any."""
        ...


class LibraryLookup(Protocol):
    """Lookups against a snapshot of the local managed library."""

    def find_by_normalized_name(self, name: str, *, kind: MediaKind) -> LibraryItem | None:
        """Find an item whose normalized title equals the normalized name."""
        ...

    def find_by_external_id(
        self,
        *,
        kind: MediaKind,
        tvdb_id: int | None = None,
        tmdb_id: int | None = None,
        imdb_id: str | None = None,
    ) -> LibraryItem | None:
        """Find an item by any of its catalog ids."""
        ...

    def get(self, library_item_id: int, *, kind: MediaKind) -> LibraryItem | None:
        """Get an item by its library id."""
        ...
