"""Shared fixtures and in-memory fakes for the capability interfaces."""

from pathlib import Path

import pytest

from curatarr.library import LibraryIndex
from curatarr.models import CatalogDetail, CatalogSearchResult, MediaKind
from curatarr.policy import QualityPolicy
from curatarr.resolver import IdentityResolver
from curatarr.store import ReleaseStore


class FakeCatalog:
    """CatalogService backed by dictionaries; records every call."""

    def __init__(
        self,
        name: str,
        *,
        search_results: dict[str, list[CatalogSearchResult]] | None = None,
        details: dict[int, CatalogDetail] | None = None,
    ) -> None:
        self.name = name
        self.search_results = search_results or {}
        self.details = details or {}
        self.search_calls: list[str] = []
        self.detail_calls: list[int] = []

    async def search(
        self, text: str, *, kind: MediaKind, year: int | None = None
    ) -> list[CatalogSearchResult]:
        self.search_calls.append(text)
        return list(self.search_results.get(text, []))

    async def get_detail(self, catalog_id: int, *, kind: MediaKind) -> CatalogDetail | None:
        self.detail_calls.append(catalog_id)
        return self.details.get(catalog_id)


class FakeWebSearch:
    """WebIdSearch returning canned ids by name."""

    def __init__(self, ids: dict[str, int] | None = None) -> None:
        self.ids = ids or {}
        self.calls: list[str] = []

    async def search_for_id(
        self, text: str, *, kind: MediaKind, year: int | None = None
    ) -> int | None:
        self.calls.append(text)
        return self.ids.get(text)


@pytest.fixture
def policy() -> QualityPolicy:
    """Default quality policy."""
    return QualityPolicy()


@pytest.fixture
def store(tmp_path: Path) -> ReleaseStore:
    """Empty release store in a temporary directory."""
    return ReleaseStore(tmp_path / "state.json")


@pytest.fixture
def empty_resolver() -> IdentityResolver:
    """Resolver with no catalogs and an empty library."""
    return IdentityResolver(library=LibraryIndex())
