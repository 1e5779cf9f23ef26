"""Sync orchestration: parse, resolve, score and persist each feed item."""

from __future__ import annotations

import logging
import uuid
from collections import Counter
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from functools import partial
from typing import TYPE_CHECKING, Literal

from curatarr.models import CatalogIdentity, MediaKind, ReleaseRecord, ReleaseStatus
from curatarr.parser import EmbeddedIds, parse_release, parse_tv_title
from curatarr.resolver import ManualOverrides, ResolutionRequest
from curatarr.scoring import (
    estimate_existing_score,
    evaluate_upgrade,
    has_preferred_language,
    is_admissible,
    is_dubbed,
    score,
)
from curatarr.similarity import language_from_category
from curatarr.state_machine import LibraryFacts, merge_record, transition
from curatarr.store import BatchProgress, StoreError

if TYPE_CHECKING:
    from curatarr.capabilities import LibraryLookup
    from curatarr.models import FeedItem, LibraryItem, RawRelease
    from curatarr.policy import QualityPolicy
    from curatarr.resolver import IdentityResolver
    from curatarr.scoring import UpgradeDecision
    from curatarr.store import ReleaseStore

logger = logging.getLogger(__name__)

OUTCOME_KEYS = (
    "new",
    "new_show",
    "new_season",
    "upgrade_candidate",
    "ignored",
    "added",
    "errored",
    "skipped",
)


@dataclass
class ItemOutcome:
    """What happened to one feed item during a run."""

    guid: str
    title: str
    status: ReleaseStatus | None = None
    confidence: str | None = None
    error: str | None = None
    skipped: bool = False

    @property
    def key(self) -> str:
        """The report bucket this outcome is counted in."""
        if self.skipped:
            return "skipped"
        if self.error is not None or self.status is None:
            return "errored"
        return self.status.value.lower()

    def to_dict(self) -> dict[str, object]:
        """Convert to dictionary for JSON output."""
        return {
            "guid": self.guid,
            "title": self.title,
            "status": self.status.value if self.status else None,
            "confidence": self.confidence,
            "error": self.error,
            "skipped": self.skipped,
        }


@dataclass
class SyncReport:
    """Per-item outcomes and aggregate errors of one sync run."""

    batch_id: str
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    finished_at: datetime | None = None
    resumed: bool = False
    outcomes: list[ItemOutcome] = field(default_factory=list)
    checkpoint_errors: list[str] = field(default_factory=list)

    @property
    def counts(self) -> dict[str, int]:
        """Number of items per outcome bucket, every bucket present."""
        counter = Counter(outcome.key for outcome in self.outcomes)
        return {key: counter.get(key, 0) for key in OUTCOME_KEYS}

    @property
    def errors(self) -> list[str]:
        """Aggregate error list, one ``guid: message`` entry per failed item.

        Progress checkpoints that could not be saved follow the item errors.
        """
        items = [f"{o.guid}: {o.error}" for o in self.outcomes if o.error is not None]
        return items + self.checkpoint_errors

    @property
    def has_errors(self) -> bool:
        """Whether any item failed or a checkpoint could not be saved."""
        return bool(self.checkpoint_errors) or any(o.error is not None for o in self.outcomes)

    def to_dict(self) -> dict[str, object]:
        """Convert to dictionary for JSON output."""
        return {
            "batch_id": self.batch_id,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "resumed": self.resumed,
            "counts": self.counts,
            "errors": self.errors,
            "items": [o.to_dict() for o in self.outcomes],
        }


def _item_type(items: Sequence[FeedItem]) -> Literal["movie", "tv", "mixed"]:
    kinds = {item.kind for item in items}
    if kinds == {MediaKind.MOVIE}:
        return "movie"
    if kinds == {MediaKind.TV}:
        return "tv"
    return "mixed"


def _overrides(previous: ReleaseRecord | None) -> ManualOverrides:
    if previous is None:
        return ManualOverrides()
    return ManualOverrides(
        tvdb_id=previous.tvdb_id if previous.tvdb_id_manual else None,
        tmdb_id=previous.tmdb_id if previous.tmdb_id_manual else None,
        imdb_id=previous.imdb_id if previous.imdb_id_manual else None,
    )


class SyncOrchestrator:
    """Drive feed items through the pipeline, one at a time.

    Each item is parsed, resolved to a catalog identity, scored against the
    quality policy and the local library, then upserted by guid. Items are
    isolated: a failure is recorded in the report and the run continues.

    Example:
        orchestrator = SyncOrchestrator(store, policy=policy, resolver=resolver, library=index)
        report = await orchestrator.run(feed_items)
    """

    def __init__(
        self,
        store: ReleaseStore,
        *,
        policy: QualityPolicy,
        resolver: IdentityResolver,
        library: LibraryLookup,
        chunk_size: int = 50,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            store: Record store, the only state mutated by a run
            policy: Quality policy snapshot for the run
            resolver: Identity resolver wired to the catalogs
            library: Snapshot of the local library
            chunk_size: Log progress every this many items
        """
        self._store = store
        self._policy = policy
        self._resolver = resolver
        self._library = library
        self._chunk_size = max(chunk_size, 1)

    async def run(
        self,
        items: Sequence[FeedItem],
        *,
        batch_id: str | None = None,
        resume: bool = True,
        on_item: Callable[[ItemOutcome], None] | None = None,
    ) -> SyncReport:
        """Process feed items in order and persist each record.

        Args:
            items: Feed items, processed in the given order
            batch_id: Identifier for this run (generated if omitted)
            resume: Continue an interrupted run, skipping finished guids
            on_item: Called after each item, e.g. to advance a progress bar

        Returns:
            SyncReport with one outcome per item
        """
        ignored_keys = self._store.ignored_keys()

        progress = self._store.get_batch_progress() if resume else None
        resumed = progress is not None
        if progress is not None:
            logger.info(
                "Resuming run %s: %d of %d items already processed",
                progress.batch_id,
                progress.processed_count,
                progress.total_items,
            )
        else:
            progress = BatchProgress(
                batch_id=batch_id or uuid.uuid4().hex[:12],
                item_type=_item_type(items),
                total_items=len(items),
            )

        report = SyncReport(batch_id=progress.batch_id, resumed=resumed)
        if not resumed:
            start = partial(
                self._store.start_batch,
                progress.batch_id,
                progress.item_type,
                progress.total_items,
            )
            self._checkpoint(report, "start of run", start)
            progress = self._store.get_batch_progress() or progress
        total = len(items)

        for index, item in enumerate(items, start=1):
            if progress.is_processed(item.guid):
                outcome = ItemOutcome(guid=item.guid, title=item.title, skipped=True)
            else:
                try:
                    record = await self.process_item(item, ignored_keys=ignored_keys)
                    outcome = ItemOutcome(
                        guid=item.guid,
                        title=item.title,
                        status=record.status,
                        confidence=record.confidence.value,
                    )
                except Exception as e:
                    logger.error("Failed to process %s (%s): %s", item.guid, item.title, e)
                    outcome = ItemOutcome(guid=item.guid, title=item.title, error=str(e))
                else:
                    self._checkpoint(
                        report,
                        f"progress after {item.guid}",
                        partial(self._store.update_batch_progress, item.guid),
                    )

            report.outcomes.append(outcome)
            if on_item is not None:
                on_item(outcome)
            if index % self._chunk_size == 0 or index == total:
                logger.info("Processed %d/%d feed items", index, total)

        self._checkpoint(report, "end of run", self._store.clear_batch_progress)
        report.finished_at = datetime.now(UTC)
        logger.info("Run %s finished: %s", report.batch_id, report.counts)
        return report

    @staticmethod
    def _checkpoint(report: SyncReport, what: str, write: Callable[[], object]) -> None:
        """Save run progress; a failed save is reported, never raised."""
        try:
            write()
        except StoreError as e:
            logger.warning("Could not save run progress at %s: %s", what, e)
            report.checkpoint_errors.append(f"{what}: {e}")

    async def process_item(
        self, item: FeedItem, *, ignored_keys: frozenset[str] = frozenset()
    ) -> ReleaseRecord:
        """Run one feed item through the pipeline and upsert the result.

        Raises:
            StoreError: If the record cannot be persisted
        """
        parsed = parse_release(item.title, item.description, guid=item.guid)
        previous = self._store.get(item.guid)

        name = parsed.clean_title
        year = parsed.year
        show_name: str | None = None
        season: int | None = None
        if item.kind is MediaKind.TV:
            tv = parse_tv_title(item.title)
            show_name, season, year = tv.show_name, tv.season, tv.year
            name = show_name

        # TV releases are season-level discoveries and are not quality gated
        admissible = item.kind is MediaKind.TV or is_admissible(parsed, self._policy)

        if admissible:
            identity = await self._resolver.resolve(
                ResolutionRequest(
                    name=name,
                    kind=item.kind,
                    season=season,
                    year=year,
                    expected_language=self._expected_language(item, parsed),
                    overrides=_overrides(previous),
                    embedded=EmbeddedIds(
                        tmdb_id=parsed.embedded_tmdb_id,
                        tvdb_id=parsed.embedded_tvdb_id,
                        imdb_id=parsed.embedded_imdb_id,
                    ),
                )
            )
        else:
            logger.debug("%s is not admissible; skipping resolution", item.title)
            identity = CatalogIdentity.unresolved()

        original_language = identity.original_language or (
            previous.original_language if previous else None
        )
        dubbed = is_dubbed(parsed.audio_languages, original_language)
        new_score = score(
            parsed,
            self._policy,
            is_dubbed=dubbed,
            preferred_language=has_preferred_language(parsed.audio_languages, self._policy),
        )

        draft = self._build_record(item, parsed, identity, show_name, season, new_score, dubbed)
        library_item = self._find_library_item(identity, merge_record(previous, draft))

        facts = LibraryFacts()
        if library_item is not None:
            facts = LibraryFacts.from_item(library_item, season)
            draft = draft.model_copy(
                update={
                    "library_item_id": library_item.id,
                    "library_item_title": library_item.title,
                }
            )
        elif (
            previous is not None
            and previous.library_item_id is not None
            and not previous.linkage_preserved
            and not identity.is_resolved
        ):
            facts = self._preserved_facts(previous, previous.library_item_id, season)

        upgrade: UpgradeDecision | None = None
        if item.kind is MediaKind.MOVIE and facts.exists:
            upgrade, draft = self._evaluate_upgrade(draft, parsed, facts)

        record = transition(
            previous,
            draft,
            admissible=admissible,
            library=facts,
            ignored_keys=ignored_keys,
            upgrade=upgrade,
        )
        return self._store.upsert(record)

    @staticmethod
    def _expected_language(item: FeedItem, parsed: RawRelease) -> str | None:
        if parsed.audio_languages:
            return parsed.audio_languages[0]
        return language_from_category(item.category) or language_from_category(item.description)

    @staticmethod
    def _build_record(
        item: FeedItem,
        parsed: RawRelease,
        identity: CatalogIdentity,
        show_name: str | None,
        season: int | None,
        new_score: float,
        dubbed: bool,
    ) -> ReleaseRecord:
        return ReleaseRecord(
            guid=item.guid,
            kind=item.kind,
            title=parsed.title,
            clean_title=parsed.clean_title,
            normalized_title=parsed.normalized_title,
            year=parsed.year,
            resolution=parsed.resolution,
            codec=parsed.codec,
            source_tag=parsed.source_tag,
            audio=parsed.audio,
            size_mb=parsed.size_mb,
            audio_languages=parsed.audio_languages,
            embedded_tmdb_id=parsed.embedded_tmdb_id,
            embedded_tvdb_id=parsed.embedded_tvdb_id,
            embedded_imdb_id=parsed.embedded_imdb_id,
            show_name=show_name,
            season_number=season,
            tvdb_id=identity.tvdb_id,
            tmdb_id=identity.tmdb_id,
            imdb_id=identity.imdb_id,
            canonical_title=identity.canonical_title,
            original_language=identity.original_language,
            primary_poster_url=identity.posters.primary,
            secondary_poster_url=identity.posters.secondary,
            confidence=identity.confidence,
            quality_score=new_score,
            is_dubbed=dubbed,
        )

    def _find_library_item(
        self, identity: CatalogIdentity, merged: ReleaseRecord
    ) -> LibraryItem | None:
        if identity.library_item_id is not None:
            found = self._library.get(identity.library_item_id, kind=merged.kind)
            if found is not None:
                return found
        return self._library.find_by_external_id(
            kind=merged.kind,
            tvdb_id=merged.tvdb_id,
            tmdb_id=merged.tmdb_id,
            imdb_id=merged.imdb_id,
        )

    def _preserved_facts(
        self, previous: ReleaseRecord, item_id: int, season: int | None
    ) -> LibraryFacts:
        held = self._library.get(item_id, kind=previous.kind)
        logger.info(
            "%s is unresolved; using its previous library linkage (%s) for this run",
            previous.guid,
            previous.library_item_title or item_id,
        )
        if held is not None:
            return LibraryFacts.from_item(held, season)
        return LibraryFacts(
            exists=True,
            item_id=item_id,
            title=previous.library_item_title,
            season_monitored=True,
        )

    def _evaluate_upgrade(
        self, draft: ReleaseRecord, parsed: RawRelease, facts: LibraryFacts
    ) -> tuple[UpgradeDecision, ReleaseRecord]:
        held = facts.held_file
        if held is not None:
            existing_score = estimate_existing_score(held.name, held.size_mb, self._policy)
            existing_size = held.size_mb
        else:
            existing_score, existing_size = 0.0, None
        decision = evaluate_upgrade(
            draft.quality_score, parsed.size_mb, existing_score, existing_size, self._policy
        )
        draft = draft.model_copy(
            update={"existing_quality_score": existing_score, "existing_size_mb": existing_size}
        )
        return decision, draft
