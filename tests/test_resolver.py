"""Tests for identity resolution across library and catalogs."""

import pytest

from conftest import FakeCatalog, FakeWebSearch
from curatarr.library import LibraryIndex
from curatarr.models import (
    CatalogDetail,
    CatalogSearchResult,
    Confidence,
    LibraryItem,
    MediaKind,
)
from curatarr.parser import EmbeddedIds
from curatarr.resolver import IdentityResolver, ManualOverrides, ResolutionRequest


class YearFilteringCatalog(FakeCatalog):
    """Catalog that applies the year as an exact server-side filter."""

    def __init__(
        self, name: str, *, search_results: dict[str, list[CatalogSearchResult]]
    ) -> None:
        super().__init__(name, search_results=search_results)
        self.year_calls: list[tuple[str, int | None]] = []

    async def search(
        self, text: str, *, kind: MediaKind, year: int | None = None
    ) -> list[CatalogSearchResult]:
        self.year_calls.append((text, year))
        results = await super().search(text, kind=kind, year=year)
        return [r for r in results if year is None or r.year == year]


def _kurukshetra_catalogs() -> tuple[FakeCatalog, FakeCatalog]:
    primary = FakeCatalog(
        "tvdb",
        search_results={
            "Kurukshetra": [CatalogSearchResult(id=378181, title="Kurukshetra", year=2020)]
        },
        details={
            378181: CatalogDetail(id=378181, title="Kurukshetra", year=2020),
            468042: CatalogDetail(
                id=468042, title="Kurukshetra", year=2021, tmdb_id=9001, poster_url="tvdb.jpg"
            ),
        },
    )
    secondary = FakeCatalog(
        "tmdb",
        search_results={
            "Kurukshetra": [CatalogSearchResult(id=9001, title="Kurukshetra", year=2021)]
        },
        details={
            9001: CatalogDetail(
                id=9001,
                title="Kurukshetra",
                year=2021,
                tvdb_id=468042,
                original_language="hi",
                poster_url="tmdb.jpg",
            )
        },
    )
    return primary, secondary


class TestCrossValidation:
    """Tests for combining the primary and secondary catalogs."""

    @pytest.mark.asyncio
    async def test_conflicting_primary_is_dropped(self) -> None:
        """Should replace a primary candidate the secondary cross-reference disagrees with."""
        primary, secondary = _kurukshetra_catalogs()
        resolver = IdentityResolver(primary=primary, secondary=secondary)

        identity = await resolver.resolve(
            ResolutionRequest(name="Kurukshetra", kind=MediaKind.TV, season=1)
        )

        assert identity.tvdb_id == 468042
        assert identity.tmdb_id == 9001
        assert identity.canonical_title == "Kurukshetra"
        assert identity.original_language == "hi"
        assert identity.posters.primary == "tvdb.jpg"
        assert identity.posters.secondary == "tmdb.jpg"
        assert identity.confidence is Confidence.CROSS_VALIDATED
        assert any(step.outcome == "conflict" for step in identity.trail)
        assert primary.detail_calls == [378181, 468042]

    @pytest.mark.asyncio
    async def test_agreeing_catalogs(self) -> None:
        """Should confirm a primary candidate through its cross-reference."""
        primary = FakeCatalog(
            "tvdb",
            search_results={"Show Name": [CatalogSearchResult(id=10, title="Show Name")]},
            details={10: CatalogDetail(id=10, title="Show Name", tmdb_id=20)},
        )
        secondary = FakeCatalog(
            "tmdb",
            details={20: CatalogDetail(id=20, title="Show Name (US)", tvdb_id=10)},
        )
        resolver = IdentityResolver(primary=primary, secondary=secondary)

        identity = await resolver.resolve(
            ResolutionRequest(name="Show Name", kind=MediaKind.TV, season=2)
        )

        assert identity.tvdb_id == 10
        assert identity.tmdb_id == 20
        assert identity.canonical_title == "Show Name (US)"
        assert identity.confidence is Confidence.CROSS_VALIDATED
        # The cross-reference made a second search unnecessary
        assert secondary.search_calls == []

    @pytest.mark.asyncio
    async def test_primary_only(self) -> None:
        """Should accept an unconfirmed primary candidate as single-source."""
        primary = FakeCatalog(
            "tvdb",
            search_results={"Show Name": [CatalogSearchResult(id=10, title="Show Name")]},
            details={10: CatalogDetail(id=10, title="Show Name")},
        )
        resolver = IdentityResolver(primary=primary, secondary=FakeCatalog("tmdb"))

        identity = await resolver.resolve(ResolutionRequest(name="Show Name", kind=MediaKind.TV))

        assert identity.tvdb_id == 10
        assert identity.tmdb_id is None
        assert identity.confidence is Confidence.SINGLE_SOURCE


class TestCandidateFiltering:
    """Tests for search-result validation and ranking."""

    @pytest.mark.asyncio
    async def test_dissimilar_results_rejected(self) -> None:
        """Should reject results below the similarity floor."""
        primary = FakeCatalog(
            "tvdb",
            search_results={
                "Show Name": [CatalogSearchResult(id=1, title="Totally Unrelated Thing")]
            },
        )
        resolver = IdentityResolver(primary=primary)

        identity = await resolver.resolve(ResolutionRequest(name="Show Name", kind=MediaKind.TV))

        assert identity.is_resolved is False
        assert identity.trail[0].outcome == "rejected"
        assert identity.trail[0].catalog_id == 1

    @pytest.mark.asyncio
    async def test_year_mismatch_rejected_for_movies(self) -> None:
        """Should reject a result whose year is too far off."""
        secondary = FakeCatalog(
            "tmdb",
            search_results={
                "Movie Name": [
                    CatalogSearchResult(id=1, title="Movie Name", year=1990),
                    CatalogSearchResult(id=2, title="Movie Name", year=2019),
                ]
            },
        )
        resolver = IdentityResolver(secondary=secondary)

        identity = await resolver.resolve(
            ResolutionRequest(name="Movie Name", kind=MediaKind.MOVIE, year=2019)
        )

        assert identity.tmdb_id == 2

    @pytest.mark.asyncio
    async def test_language_breaks_ties(self) -> None:
        """Should prefer the result in the expected original language."""
        secondary = FakeCatalog(
            "tmdb",
            search_results={
                "Drishyam": [
                    CatalogSearchResult(
                        id=1, title="Drishyam", year=2013, original_language="ml"
                    ),
                    CatalogSearchResult(
                        id=2, title="Drishyam", year=2013, original_language="hi"
                    ),
                ]
            },
        )
        resolver = IdentityResolver(secondary=secondary)

        identity = await resolver.resolve(
            ResolutionRequest(
                name="Drishyam", kind=MediaKind.MOVIE, year=2013, expected_language="hi"
            )
        )

        assert identity.tmdb_id == 2
        assert identity.original_language == "hi"

    @pytest.mark.asyncio
    async def test_season_release_searches_without_year(self) -> None:
        """Should not narrow catalog searches by year when a season was parsed."""
        primary = YearFilteringCatalog(
            "tvdb",
            search_results={
                "Amrutham": [CatalogSearchResult(id=7, title="Amrutham", year=2001)]
            },
        )
        resolver = IdentityResolver(primary=primary)

        identity = await resolver.resolve(
            ResolutionRequest(name="Amrutham", kind=MediaKind.TV, season=2, year=2020)
        )

        assert primary.year_calls == [("Amrutham", None)]
        assert identity.tvdb_id == 7

    @pytest.mark.asyncio
    async def test_movie_search_keeps_year(self) -> None:
        """Should pass the release year to catalog searches for movies."""
        secondary = YearFilteringCatalog(
            "tmdb",
            search_results={
                "Movie Name": [CatalogSearchResult(id=2, title="Movie Name", year=2019)]
            },
        )
        resolver = IdentityResolver(secondary=secondary)

        identity = await resolver.resolve(
            ResolutionRequest(name="Movie Name", kind=MediaKind.MOVIE, year=2019)
        )

        assert secondary.year_calls == [("Movie Name", 2019)]
        assert identity.tmdb_id == 2


class TestOverridesAndEmbeddedIds:
    """Tests for user-pinned and description ids."""

    @pytest.mark.asyncio
    async def test_manual_override_skips_search(self) -> None:
        """Should trust pinned ids and only enrich them."""
        primary = FakeCatalog(
            "tvdb", details={555: CatalogDetail(id=555, title="Pinned", tmdb_id=77)}
        )
        secondary = FakeCatalog("tmdb", details={77: CatalogDetail(id=77, title="Pinned Show")})
        resolver = IdentityResolver(primary=primary, secondary=secondary)

        identity = await resolver.resolve(
            ResolutionRequest(
                name="Whatever",
                kind=MediaKind.TV,
                overrides=ManualOverrides(tvdb_id=555),
            )
        )

        assert identity.confidence is Confidence.MANUAL_OVERRIDE
        assert identity.tvdb_id == 555
        assert identity.tmdb_id == 77
        assert identity.canonical_title == "Pinned Show"
        assert primary.search_calls == []
        assert secondary.search_calls == []

    @pytest.mark.asyncio
    async def test_embedded_tmdb_id(self) -> None:
        """Should look up an id embedded in the description."""
        secondary = FakeCatalog(
            "tmdb",
            details={603: CatalogDetail(id=603, title="The Matrix", imdb_id="tt0133093")},
        )
        resolver = IdentityResolver(secondary=secondary)

        identity = await resolver.resolve(
            ResolutionRequest(
                name="Matrix", kind=MediaKind.MOVIE, embedded=EmbeddedIds(tmdb_id=603)
            )
        )

        assert identity.tmdb_id == 603
        assert identity.imdb_id == "tt0133093"
        assert identity.canonical_title == "The Matrix"
        assert identity.confidence is Confidence.SINGLE_SOURCE
        assert secondary.search_calls == []


class TestLocalLibrary:
    """Tests for the local-library strategy."""

    @pytest.mark.asyncio
    async def test_library_match_wins_over_catalogs(self) -> None:
        """Should settle on a library item with the same normalized name."""
        library = LibraryIndex(
            [LibraryItem(id=7, kind=MediaKind.TV, title="Show Name", tvdb_id=100)]
        )
        primary = FakeCatalog("tvdb")
        resolver = IdentityResolver(primary=primary, library=library)

        identity = await resolver.resolve(
            ResolutionRequest(name="Show.Name", kind=MediaKind.TV, season=1)
        )

        assert identity.confidence is Confidence.LOCAL_LIBRARY_MATCH
        assert identity.library_item_id == 7
        assert identity.tvdb_id == 100
        assert primary.search_calls == []

    @pytest.mark.asyncio
    async def test_library_year_mismatch(self) -> None:
        """Should reject a movie library match from another year."""
        library = LibraryIndex(
            [LibraryItem(id=7, kind=MediaKind.MOVIE, title="Movie Name", year=1980, tmdb_id=5)]
        )
        resolver = IdentityResolver(library=library)

        identity = await resolver.resolve(
            ResolutionRequest(name="Movie Name", kind=MediaKind.MOVIE, year=2019)
        )

        assert identity.is_resolved is False
        assert identity.trail[0].outcome == "rejected"


class TestTertiaryFallback:
    """Tests for the web-search fallback."""

    @pytest.mark.asyncio
    async def test_recovers_id(self) -> None:
        """Should use the web search when both catalogs found nothing."""
        primary = FakeCatalog(
            "tvdb", details={4242: CatalogDetail(id=4242, title="Obscure Show")}
        )
        web = FakeWebSearch({"Obscure Show": 4242})
        resolver = IdentityResolver(primary=primary, secondary=FakeCatalog("tmdb"), tertiary=web)

        identity = await resolver.resolve(
            ResolutionRequest(name="Obscure Show", kind=MediaKind.TV)
        )

        assert identity.tvdb_id == 4242
        assert identity.confidence is Confidence.SINGLE_SOURCE
        assert web.calls == ["Obscure Show"]

    @pytest.mark.asyncio
    async def test_rejects_unrelated_hit(self) -> None:
        """Should reject a web hit whose title lacks the key words."""
        primary = FakeCatalog(
            "tvdb", details={4242: CatalogDetail(id=4242, title="Completely Different")}
        )
        resolver = IdentityResolver(
            primary=primary, tertiary=FakeWebSearch({"Obscure Show": 4242})
        )

        identity = await resolver.resolve(
            ResolutionRequest(name="Obscure Show", kind=MediaKind.TV)
        )

        assert identity.is_resolved is False

    @pytest.mark.asyncio
    async def test_not_used_when_catalog_found(self) -> None:
        """Should not search the web when a catalog already answered."""
        primary = FakeCatalog(
            "tvdb",
            search_results={"Show Name": [CatalogSearchResult(id=10, title="Show Name")]},
            details={10: CatalogDetail(id=10, title="Show Name")},
        )
        web = FakeWebSearch({"Show Name": 99})
        resolver = IdentityResolver(primary=primary, tertiary=web)

        identity = await resolver.resolve(ResolutionRequest(name="Show Name", kind=MediaKind.TV))

        assert identity.tvdb_id == 10
        assert web.calls == []


class TestUnresolved:
    """Tests for the no-collaborator case."""

    @pytest.mark.asyncio
    async def test_nothing_configured(self, empty_resolver: IdentityResolver) -> None:
        """Should return an unresolved identity instead of raising."""
        identity = await empty_resolver.resolve(
            ResolutionRequest(name="Anything", kind=MediaKind.MOVIE)
        )

        assert identity.confidence is Confidence.UNRESOLVED
        assert identity.tvdb_id is None
        assert identity.tmdb_id is None
