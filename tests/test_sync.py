"""Tests for the sync orchestrator."""

from pathlib import Path

import pytest

from conftest import FakeCatalog
from curatarr.library import LibraryIndex
from curatarr.models import (
    CatalogDetail,
    CatalogSearchResult,
    Confidence,
    FeedItem,
    LibraryFile,
    LibraryItem,
    MediaKind,
    ReleaseStatus,
)
from curatarr.policy import QualityPolicy
from curatarr.resolver import IdentityResolver
from curatarr.store import ReleaseStore, StoreError
from curatarr.sync import SyncOrchestrator

MOVIE_TITLE = "Movie.Name.2019.1080p.WEB-DL.DDP5.1.x264"


def _movie_catalog() -> FakeCatalog:
    return FakeCatalog(
        "tmdb",
        search_results={
            "Movie Name": [CatalogSearchResult(id=11, title="Movie Name", year=2019)]
        },
        details={
            11: CatalogDetail(id=11, title="Movie Name", year=2019, original_language="en")
        },
    )


def _orchestrator(
    store: ReleaseStore,
    *,
    library: LibraryIndex | None = None,
    resolver: IdentityResolver | None = None,
    policy: QualityPolicy | None = None,
) -> SyncOrchestrator:
    library = library if library is not None else LibraryIndex()
    return SyncOrchestrator(
        store,
        policy=policy or QualityPolicy(),
        resolver=resolver or IdentityResolver(secondary=_movie_catalog(), library=library),
        library=library,
    )


class ExplodingCatalog(FakeCatalog):
    """Catalog that fails for one name."""

    async def search(
        self, text: str, *, kind: MediaKind, year: int | None = None
    ) -> list[CatalogSearchResult]:
        if text == "Broken Movie":
            raise RuntimeError("boom")
        return await super().search(text, kind=kind, year=year)


class TestMovieItems:
    """Tests for movie feed items."""

    @pytest.mark.asyncio
    async def test_new_movie(self, store: ReleaseStore) -> None:
        """Should resolve, score and store a movie not in the library as NEW."""
        orchestrator = _orchestrator(store)

        record = await orchestrator.process_item(FeedItem(guid="g1", title=MOVIE_TITLE))

        assert record.status is ReleaseStatus.NEW
        assert record.tmdb_id == 11
        assert record.resolution.value == "1080p"
        assert record.codec.value == "x264"
        assert record.source_tag == "WEB-DL"
        assert record.audio == "DDP 5.1"
        assert record.quality_score == 68.0
        assert store.get("g1") == record

    @pytest.mark.asyncio
    async def test_inadmissible_movie_is_not_resolved(self, store: ReleaseStore) -> None:
        """Should ignore an SD release without looking it up."""
        catalog = _movie_catalog()
        orchestrator = _orchestrator(store, resolver=IdentityResolver(secondary=catalog))

        record = await orchestrator.process_item(
            FeedItem(guid="g1", title="Movie.Name.2019.480p.DVDRip.x264")
        )

        assert record.status is ReleaseStatus.IGNORED
        assert record.confidence is Confidence.UNRESOLVED
        assert catalog.search_calls == []

    @pytest.mark.asyncio
    async def test_held_movie_upgrade(self, store: ReleaseStore) -> None:
        """Should flag a clearly better release of a held movie."""
        library = LibraryIndex(
            [
                LibraryItem(
                    id=3,
                    kind=MediaKind.MOVIE,
                    title="Movie Name",
                    year=2019,
                    tmdb_id=11,
                    file=LibraryFile(name="Movie.Name.2019.720p.x264.mkv", size_mb=1000.0),
                )
            ]
        )
        orchestrator = _orchestrator(
            store, library=library, resolver=IdentityResolver(secondary=_movie_catalog())
        )

        record = await orchestrator.process_item(
            FeedItem(
                guid="g1",
                title="Movie.Name.2019.2160p.BluRay.TrueHD.Atmos.x265",
                description="Size: 20 GB",
            )
        )

        assert record.status is ReleaseStatus.UPGRADE_CANDIDATE
        assert record.library_item_id == 3
        assert record.existing_size_mb == 1000.0
        assert record.existing_quality_score is not None
        assert record.quality_score > record.existing_quality_score

    @pytest.mark.asyncio
    async def test_held_movie_not_upgrade(self, store: ReleaseStore) -> None:
        """Should ignore a release that is no better than the held file."""
        library = LibraryIndex(
            [
                LibraryItem(
                    id=3,
                    kind=MediaKind.MOVIE,
                    title="Movie Name",
                    tmdb_id=11,
                    file=LibraryFile(name=MOVIE_TITLE + ".mkv", size_mb=5000.0),
                )
            ]
        )
        orchestrator = _orchestrator(
            store, library=library, resolver=IdentityResolver(secondary=_movie_catalog())
        )

        record = await orchestrator.process_item(FeedItem(guid="g1", title=MOVIE_TITLE))

        assert record.status is ReleaseStatus.IGNORED
        assert record.library_item_id == 3


class TestTvItems:
    """Tests for TV feed items."""

    def _library(self) -> LibraryIndex:
        return LibraryIndex(
            [
                LibraryItem(
                    id=5,
                    kind=MediaKind.TV,
                    title="Show Name",
                    tvdb_id=321,
                    monitored_seasons=[1, 2],
                )
            ]
        )

    @pytest.mark.asyncio
    async def test_monitored_season_is_ignored(self, store: ReleaseStore) -> None:
        """Should ignore a season the library already covers."""
        library = self._library()
        orchestrator = _orchestrator(
            store, library=library, resolver=IdentityResolver(library=library)
        )

        record = await orchestrator.process_item(
            FeedItem(guid="t1", title="Show.Name.S02E01.1080p", kind=MediaKind.TV)
        )

        assert record.show_name == "Show Name"
        assert record.season_number == 2
        assert record.library_item_id == 5
        assert record.confidence is Confidence.LOCAL_LIBRARY_MATCH
        assert record.status is ReleaseStatus.IGNORED

    @pytest.mark.asyncio
    async def test_new_season(self, store: ReleaseStore) -> None:
        """Should flag an unmonitored season of a held show."""
        library = self._library()
        orchestrator = _orchestrator(
            store, library=library, resolver=IdentityResolver(library=library)
        )

        record = await orchestrator.process_item(
            FeedItem(guid="t1", title="Show.Name.S03E01.1080p", kind=MediaKind.TV)
        )

        assert record.status is ReleaseStatus.NEW_SEASON

    @pytest.mark.asyncio
    async def test_new_show(self, store: ReleaseStore) -> None:
        """Should flag a show the library does not hold."""
        library = self._library()
        orchestrator = _orchestrator(
            store, library=library, resolver=IdentityResolver(library=library)
        )

        record = await orchestrator.process_item(
            FeedItem(guid="t1", title="Other.Show.S01E01.720p", kind=MediaKind.TV)
        )

        assert record.status is ReleaseStatus.NEW_SHOW
        assert record.show_name == "Other Show"

    @pytest.mark.asyncio
    async def test_linkage_survives_one_unresolved_run(self, store: ReleaseStore) -> None:
        """Should keep the library linkage for one run when resolution fails."""
        library = self._library()
        item = FeedItem(guid="t1", title="Show.Name.S02E01.1080p", kind=MediaKind.TV)
        await _orchestrator(
            store, library=library, resolver=IdentityResolver(library=library)
        ).process_item(item)

        # The show disappears from the library and no catalog can resolve it
        outage = _orchestrator(
            store, library=LibraryIndex(), resolver=IdentityResolver(library=LibraryIndex())
        )

        second = await outage.process_item(item)
        assert second.status is ReleaseStatus.IGNORED
        assert second.library_item_id == 5
        assert second.linkage_preserved is True
        assert second.tvdb_id == 321

        third = await outage.process_item(item)
        assert third.status is ReleaseStatus.NEW_SHOW
        assert third.library_item_id is None
        assert third.linkage_preserved is False


class TestUserDecisions:
    """Tests for decisions that survive reprocessing."""

    @pytest.mark.asyncio
    async def test_added_is_sticky(self, store: ReleaseStore) -> None:
        """Should keep ADDED when the item is seen again."""
        orchestrator = _orchestrator(store)
        item = FeedItem(guid="g1", title=MOVIE_TITLE)
        await orchestrator.process_item(item)
        store.set_status("g1", ReleaseStatus.ADDED)

        record = await orchestrator.process_item(item)

        assert record.status is ReleaseStatus.ADDED

    @pytest.mark.asyncio
    async def test_ignore_list(self, store: ReleaseStore) -> None:
        """Should ignore items matching an ignore-list key."""
        store.add_ignored("tmdb:11")
        orchestrator = _orchestrator(store)

        report = await orchestrator.run([FeedItem(guid="g1", title=MOVIE_TITLE)])

        record = store.get("g1")
        assert record is not None
        assert record.status is ReleaseStatus.IGNORED
        assert record.manually_ignored is True
        assert report.counts["ignored"] == 1

    @pytest.mark.asyncio
    async def test_manual_id_is_used(self, store: ReleaseStore) -> None:
        """Should resolve through a pinned id on later runs."""
        catalog = _movie_catalog()
        catalog.details[99] = CatalogDetail(id=99, title="Pinned Movie")
        orchestrator = _orchestrator(store, resolver=IdentityResolver(secondary=catalog))
        item = FeedItem(guid="g1", title=MOVIE_TITLE)
        await orchestrator.process_item(item)
        store.set_manual_id("g1", "tmdb_id", 99)

        record = await orchestrator.process_item(item)

        assert record.tmdb_id == 99
        assert record.confidence is Confidence.MANUAL_OVERRIDE
        assert record.canonical_title == "Pinned Movie"


class TestRun:
    """Tests for whole runs."""

    @pytest.mark.asyncio
    async def test_idempotent(self, store: ReleaseStore) -> None:
        """Should produce the same records when run twice."""
        items = [
            FeedItem(guid="g1", title=MOVIE_TITLE),
            FeedItem(guid="g2", title="Movie.Name.2019.480p.x264"),
        ]
        orchestrator = _orchestrator(store)

        await orchestrator.run(items)
        first = {r.guid: r.model_dump(exclude={"last_checked_at"}) for r in store.get_all()}
        await orchestrator.run(items)
        second = {r.guid: r.model_dump(exclude={"last_checked_at"}) for r in store.get_all()}

        assert first == second
        assert len(first) == 2

    @pytest.mark.asyncio
    async def test_errors_are_isolated(self, store: ReleaseStore) -> None:
        """Should record a failing item and keep processing the rest."""
        catalog = ExplodingCatalog("tmdb", search_results=_movie_catalog().search_results)
        orchestrator = _orchestrator(store, resolver=IdentityResolver(secondary=catalog))
        seen: list[str] = []

        report = await orchestrator.run(
            [
                FeedItem(guid="bad", title="Broken.Movie.2020.1080p.WEB-DL.x264"),
                FeedItem(guid="g1", title=MOVIE_TITLE),
            ],
            on_item=lambda outcome: seen.append(outcome.key),
        )

        assert report.has_errors is True
        assert report.errors == ["bad: boom"]
        assert report.counts["errored"] == 1
        assert report.counts["new"] == 1
        assert seen == ["errored", "new"]
        assert store.get("bad") is None
        assert store.get_batch_progress() is None

    @pytest.mark.asyncio
    async def test_resume_skips_processed(self, store: ReleaseStore) -> None:
        """Should continue an interrupted run from its progress."""
        store.start_batch("b1", "movie", 2)
        store.update_batch_progress("g1")
        orchestrator = _orchestrator(store)

        report = await orchestrator.run(
            [
                FeedItem(guid="g1", title=MOVIE_TITLE),
                FeedItem(guid="g2", title=MOVIE_TITLE),
            ]
        )

        assert report.batch_id == "b1"
        assert report.resumed is True
        assert report.counts["skipped"] == 1
        assert report.counts["new"] == 1
        assert store.get("g1") is None
        assert store.get_batch_progress() is None

    @pytest.mark.asyncio
    async def test_no_resume_starts_fresh(self, store: ReleaseStore) -> None:
        """Should ignore stale progress when resume is off."""
        store.start_batch("old", "movie", 1)
        store.update_batch_progress("g1")
        orchestrator = _orchestrator(store)

        report = await orchestrator.run(
            [FeedItem(guid="g1", title=MOVIE_TITLE)], batch_id="fresh", resume=False
        )

        assert report.batch_id == "fresh"
        assert report.resumed is False
        assert report.counts["new"] == 1

    @pytest.mark.asyncio
    async def test_report_dict(self, store: ReleaseStore) -> None:
        """Should serialize counts and per-item outcomes."""
        report = await _orchestrator(store).run([FeedItem(guid="g1", title=MOVIE_TITLE)])

        data = report.to_dict()

        assert data["counts"]["new"] == 1  # type: ignore[index]
        assert data["items"][0]["status"] == "NEW"  # type: ignore[index]
        assert data["finished_at"] is not None


class FailingStore(ReleaseStore):
    """Store whose writes start failing once ``failing`` is set."""

    failing = False
    fail_checkpoints_only = False

    def save(self) -> None:
        if self.failing:
            raise StoreError("disk full")
        super().save()

    def update_batch_progress(self, guid: str) -> None:
        if self.fail_checkpoints_only:
            raise StoreError("disk full")
        super().update_batch_progress(guid)


class TestStoreFailures:
    """Tests for runs where the state file cannot be written."""

    @pytest.mark.asyncio
    async def test_run_returns_report_when_writes_fail(self, tmp_path: Path) -> None:
        """Should record every failure and still return the report."""
        store = FailingStore(tmp_path / "state.json")
        store.failing = True
        orchestrator = _orchestrator(store)

        report = await orchestrator.run(
            [
                FeedItem(guid="a", title=MOVIE_TITLE),
                FeedItem(guid="b", title=MOVIE_TITLE),
            ],
            batch_id="b1",
        )

        assert report.batch_id == "b1"
        assert report.counts["errored"] == 2
        assert report.has_errors is True
        assert report.errors == [
            "a: disk full",
            "b: disk full",
            "start of run: disk full",
            "end of run: disk full",
        ]
        assert report.finished_at is not None

    @pytest.mark.asyncio
    async def test_checkpoint_failure_keeps_item_outcome(self, tmp_path: Path) -> None:
        """Should not count a persisted item as errored when only progress fails to save."""
        store = FailingStore(tmp_path / "state.json")
        store.fail_checkpoints_only = True
        orchestrator = _orchestrator(store)

        report = await orchestrator.run([FeedItem(guid="g1", title=MOVIE_TITLE)])

        assert report.counts["new"] == 1
        assert report.counts["errored"] == 0
        assert report.errors == ["progress after g1: disk full"]
        assert report.has_errors is True
        assert store.get("g1") is not None
        assert store.get_batch_progress() is None
