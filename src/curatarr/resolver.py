"""Identity resolution across the library and the metadata catalogs.

The resolver runs an ordered list of strategies over a shared
:class:`ResolutionState`. Each strategy either settles the identity or adds
what it learned (a candidate, a cross-reference) for later strategies to
confirm or reject:

1. manual override ids set by the user
2. ids embedded in the feed description
3. local library match by normalized name
4. primary catalog search (TVDB-style, id-rich)
5. secondary catalog search or cross-reference (TMDB-style, authoritative titles)
6. cross-validation of the two catalog candidates
7. tertiary web search, only when both catalogs found nothing

Every acceptance and rejection is recorded in the identity's decision trail.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from curatarr.models import CatalogDetail, CatalogIdentity, Confidence, PosterUrls, ResolutionStep
from curatarr.parser import EmbeddedIds
from curatarr.similarity import (
    SIMILARITY_FLOOR,
    title_similarity,
    validate_key_words,
    validate_year,
)

if TYPE_CHECKING:
    from curatarr.capabilities import CatalogService, LibraryLookup, WebIdSearch
    from curatarr.models import CatalogSearchResult, LibraryItem, MediaKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ManualOverrides:
    """Catalog ids the user pinned on a release record."""

    tvdb_id: int | None = None
    tmdb_id: int | None = None
    imdb_id: str | None = None

    @property
    def has_any(self) -> bool:
        """Whether any id was pinned."""
        return any((self.tvdb_id, self.tmdb_id, self.imdb_id))


@dataclass(frozen=True)
class ResolutionRequest:
    """Everything the resolver needs to know about one release."""

    name: str
    kind: MediaKind
    season: int | None = None
    year: int | None = None
    expected_language: str | None = None
    overrides: ManualOverrides = field(default_factory=ManualOverrides)
    embedded: EmbeddedIds = field(default_factory=EmbeddedIds)

    @property
    def search_year(self) -> int | None:
        """Year sent to catalog searches; unset when a season was parsed.

        A season release carries its own air year, not the show's premiere
        year, so TV year checks are left to candidate validation.
        """
        return self.year if self.season is None else None


@dataclass
class ResolutionState:
    """Accumulator threaded through the resolver strategies."""

    request: ResolutionRequest
    tvdb_id: int | None = None
    tmdb_id: int | None = None
    imdb_id: str | None = None
    primary: CatalogDetail | None = None
    secondary: CatalogDetail | None = None
    library_item: LibraryItem | None = None
    confidence: Confidence | None = None
    settled: bool = False
    trail: list[ResolutionStep] = field(default_factory=list)

    @property
    def has_any_id(self) -> bool:
        """Whether an id is known from any source so far."""
        return any(
            (self.tvdb_id, self.tmdb_id, self.imdb_id, self.primary, self.secondary)
        )

    def record(
        self,
        strategy: str,
        outcome: str,
        detail: str,
        *,
        catalog_id: int | None = None,
        similarity: float | None = None,
    ) -> None:
        """Append a decision to the trail and log it."""
        self.trail.append(
            ResolutionStep(
                strategy=strategy,
                outcome=outcome,
                detail=detail,
                catalog_id=catalog_id,
                similarity=round(similarity, 3) if similarity is not None else None,
            )
        )
        logger.debug(
            "[%s] %s %s: %s (id=%s, similarity=%s)",
            self.request.name,
            strategy,
            outcome,
            detail,
            catalog_id,
            similarity,
        )


Strategy = Callable[[ResolutionState], Awaitable[None]]


def _agreement(primary: CatalogDetail, secondary: CatalogDetail) -> tuple[list[str], int]:
    """Compare two catalog details' cross-references.

    Returns:
        Tuple of (conflict descriptions, number of confirming links)
    """
    conflicts: list[str] = []
    confirmations = 0

    if secondary.tvdb_id is not None:
        if secondary.tvdb_id == primary.id:
            confirmations += 1
        else:
            conflicts.append(f"tvdb {primary.id} vs cross-reference {secondary.tvdb_id}")
    if primary.tmdb_id is not None:
        if primary.tmdb_id == secondary.id:
            confirmations += 1
        else:
            conflicts.append(f"tmdb cross-reference {primary.tmdb_id} vs {secondary.id}")
    if primary.imdb_id and secondary.imdb_id:
        if primary.imdb_id.lower() == secondary.imdb_id.lower():
            confirmations += 1
        else:
            conflicts.append(f"imdb {primary.imdb_id} vs {secondary.imdb_id}")

    return conflicts, confirmations


def _detail_from_result(result: CatalogSearchResult) -> CatalogDetail:
    return CatalogDetail(
        id=result.id,
        title=result.title,
        year=result.year,
        original_language=result.original_language,
    )


class IdentityResolver:
    """Resolve a release name to catalog ids, title and artwork.

    All collaborators are optional; a missing catalog simply skips its
    strategies.

    Example:
        resolver = IdentityResolver(primary=tvdb, secondary=tmdb, library=index)
        identity = await resolver.resolve(
            ResolutionRequest(name="Show Name", kind=MediaKind.TV, season=2)
        )
    """

    def __init__(
        self,
        *,
        primary: CatalogService | None = None,
        secondary: CatalogService | None = None,
        tertiary: WebIdSearch | None = None,
        library: LibraryLookup | None = None,
    ) -> None:
        self._primary = primary
        self._secondary = secondary
        self._tertiary = tertiary
        self._library = library
        self._strategies: list[tuple[str, Strategy]] = [
            ("manual-override", self._manual_override),
            ("embedded-ids", self._embedded_ids),
            ("local-library", self._local_library),
            ("primary-search", self._primary_search),
            ("secondary-search", self._secondary_search),
            ("cross-validation", self._cross_validate),
            ("tertiary-search", self._tertiary_fallback),
        ]

    async def resolve(self, request: ResolutionRequest) -> CatalogIdentity:
        """Run the strategies in order and build the resulting identity.

        Never raises for lookup misses: when nothing is confirmed the
        identity has no ids and ``Confidence.UNRESOLVED``.
        """
        state = ResolutionState(request=request)
        for name, strategy in self._strategies:
            if state.settled:
                break
            logger.debug("Resolving %r: running %s", request.name, name)
            await strategy(state)
        identity = self._build_identity(state)
        logger.info(
            "Resolved %r -> tvdb=%s tmdb=%s imdb=%s (%s)",
            request.name,
            identity.tvdb_id,
            identity.tmdb_id,
            identity.imdb_id,
            identity.confidence.value,
        )
        return identity

    # --- strategies ---

    async def _manual_override(self, state: ResolutionState) -> None:
        overrides = state.request.overrides
        if not overrides.has_any:
            return
        kind = state.request.kind

        state.tvdb_id = overrides.tvdb_id
        state.tmdb_id = overrides.tmdb_id
        state.imdb_id = overrides.imdb_id
        state.record("manual-override", "accepted", "user-pinned ids trusted")

        # Enrich only; pinned ids are never replaced
        if overrides.tvdb_id and self._primary:
            state.primary = await self._primary.get_detail(overrides.tvdb_id, kind=kind)
        tmdb_id = overrides.tmdb_id or (state.primary.tmdb_id if state.primary else None)
        if tmdb_id and self._secondary:
            state.secondary = await self._secondary.get_detail(tmdb_id, kind=kind)
        if not overrides.tvdb_id and self._primary and state.secondary and state.secondary.tvdb_id:
            state.primary = await self._primary.get_detail(state.secondary.tvdb_id, kind=kind)

        state.confidence = Confidence.MANUAL_OVERRIDE
        state.settled = True

    async def _embedded_ids(self, state: ResolutionState) -> None:
        embedded = state.request.embedded
        kind = state.request.kind

        if embedded.tvdb_id:
            if self._primary is None:
                state.tvdb_id = embedded.tvdb_id
            else:
                state.primary = await self._primary.get_detail(embedded.tvdb_id, kind=kind)
            self._record_embedded(state, "tvdb", embedded.tvdb_id, found=bool(state.has_any_id))
        if embedded.tmdb_id:
            if self._secondary is None:
                state.tmdb_id = embedded.tmdb_id
            else:
                state.secondary = await self._secondary.get_detail(embedded.tmdb_id, kind=kind)
            found = bool(state.tmdb_id or state.secondary)
            self._record_embedded(state, "tmdb", embedded.tmdb_id, found=found)
        if embedded.imdb_id and state.has_any_id:
            state.imdb_id = embedded.imdb_id

    @staticmethod
    def _record_embedded(
        state: ResolutionState, service: str, catalog_id: int, *, found: bool
    ) -> None:
        if found:
            detail = f"{service} id from description"
        else:
            detail = f"{service} id from description not found in catalog"
        state.record(
            "embedded-ids", "accepted" if found else "rejected", detail, catalog_id=catalog_id
        )

    async def _local_library(self, state: ResolutionState) -> None:
        if self._library is None or state.has_any_id:
            return
        request = state.request
        item = self._library.find_by_normalized_name(request.name, kind=request.kind)
        if item is None:
            state.record("local-library", "miss", "no library item with this name")
            return
        if request.season is None and not validate_year(request.year, item.year):
            state.record(
                "local-library",
                "rejected",
                f"year {item.year} does not match {request.year}",
                catalog_id=item.id,
            )
            return

        state.tvdb_id = item.tvdb_id
        state.tmdb_id = item.tmdb_id
        state.imdb_id = item.imdb_id
        state.library_item = item
        state.confidence = Confidence.LOCAL_LIBRARY_MATCH
        state.settled = True
        state.record(
            "local-library", "accepted", f"library item {item.title!r}", catalog_id=item.id
        )

    async def _primary_search(self, state: ResolutionState) -> None:
        if self._primary is None or state.has_any_id:
            return
        request = state.request
        results = await self._primary.search(
            request.name, kind=request.kind, year=request.search_year
        )
        winner = self._pick(state, "primary-search", results)
        if winner is None:
            return
        detail = await self._primary.get_detail(winner.id, kind=request.kind)
        state.primary = detail or _detail_from_result(winner)

    async def _secondary_search(self, state: ResolutionState) -> None:
        if self._secondary is None or state.secondary:
            return
        request = state.request

        cross_ref = state.tmdb_id or (state.primary.tmdb_id if state.primary else None)
        if cross_ref:
            # Id already known from a cross-reference: fetch it for the title
            state.secondary = await self._secondary.get_detail(cross_ref, kind=request.kind)
            state.record(
                "secondary-search",
                "accepted" if state.secondary else "miss",
                "fetched cross-referenced id",
                catalog_id=cross_ref,
            )
            return

        results = await self._secondary.search(
            request.name, kind=request.kind, year=request.search_year
        )
        winner = self._pick(state, "secondary-search", results)
        if winner is None:
            return
        detail = await self._secondary.get_detail(winner.id, kind=request.kind)
        state.secondary = detail or _detail_from_result(winner)

    async def _cross_validate(self, state: ResolutionState) -> None:
        primary, secondary = state.primary, state.secondary

        if primary and secondary:
            conflicts, confirmations = _agreement(primary, secondary)
            if conflicts:
                logger.warning(
                    "Cross-validation conflict for %r: %s; keeping secondary %s",
                    state.request.name,
                    "; ".join(conflicts),
                    secondary.id,
                )
                state.record(
                    "cross-validation",
                    "conflict",
                    "dropped primary candidate: " + "; ".join(conflicts),
                    catalog_id=primary.id,
                )
                state.primary = None
                if secondary.tvdb_id:
                    await self._refetch_primary(state, secondary.tvdb_id)
                confirmations = _agreement(state.primary, secondary)[1] if state.primary else 0
            else:
                state.record(
                    "cross-validation",
                    "accepted",
                    f"{confirmations} confirming cross-reference(s)",
                    catalog_id=primary.id,
                )
            state.confidence = (
                Confidence.CROSS_VALIDATED if confirmations else Confidence.SINGLE_SOURCE
            )
        elif primary:
            state.record(
                "cross-validation",
                "skipped",
                "no secondary result, primary accepted unconfirmed",
                catalog_id=primary.id,
            )
            state.confidence = Confidence.SINGLE_SOURCE
        elif secondary:
            state.confidence = Confidence.SINGLE_SOURCE
            if secondary.tvdb_id and not state.tvdb_id:
                await self._refetch_primary(state, secondary.tvdb_id)
                if state.primary and _agreement(state.primary, secondary)[1]:
                    state.confidence = Confidence.CROSS_VALIDATED
            state.record(
                "cross-validation", "skipped", "secondary result only", catalog_id=secondary.id
            )

        if state.has_any_id:
            state.settled = True

    async def _refetch_primary(self, state: ResolutionState, tvdb_id: int) -> None:
        """Load the primary entry a secondary result points to."""
        if self._primary is not None:
            state.primary = await self._primary.get_detail(tvdb_id, kind=state.request.kind)
        if state.primary is None:
            state.tvdb_id = tvdb_id
        state.record(
            "cross-validation",
            "refetched",
            "primary id taken from secondary cross-reference",
            catalog_id=tvdb_id,
        )

    async def _tertiary_fallback(self, state: ResolutionState) -> None:
        if self._tertiary is None or state.has_any_id:
            return
        request = state.request
        found = await self._tertiary.search_for_id(
            request.name, kind=request.kind, year=request.search_year
        )
        if found is None:
            state.record("tertiary-search", "miss", "web search found no id")
            return

        detail = None
        if self._primary is not None:
            detail = await self._primary.get_detail(found, kind=request.kind)
        if detail is not None and not validate_key_words(request.name, detail.title):
            state.record(
                "tertiary-search",
                "rejected",
                f"{detail.title!r} lacks key words",
                catalog_id=found,
            )
            return

        if detail is None:
            state.tvdb_id = found
        else:
            state.primary = detail
            if detail.tmdb_id and self._secondary:
                state.secondary = await self._secondary.get_detail(
                    detail.tmdb_id, kind=request.kind
                )
        state.confidence = Confidence.SINGLE_SOURCE
        state.record(
            "tertiary-search", "accepted", "id recovered from web search", catalog_id=found
        )

    # --- helpers ---

    def _pick(
        self,
        state: ResolutionState,
        strategy: str,
        results: list[CatalogSearchResult],
    ) -> CatalogSearchResult | None:
        """Filter search results and pick the best survivor.

        Rejects results below the similarity floor, lacking the name's key
        words, or (when a year is known and no season was parsed) with a
        mismatched year. The highest similarity wins; ties go to an exact
        year match, then to a matching original language.
        """
        request = state.request
        ranked: list[tuple[tuple[float, bool, bool], CatalogSearchResult]] = []

        for result in results:
            titles = [result.title]
            if result.original_title:
                titles.append(result.original_title)
            similarity = max(title_similarity(request.name, t) for t in titles)

            reason = None
            if similarity < SIMILARITY_FLOOR:
                reason = "below similarity floor"
            elif not any(validate_key_words(request.name, t) for t in titles):
                reason = "lacks key words"
            elif request.season is None and not validate_year(request.year, result.year):
                reason = f"year {result.year} does not match {request.year}"
            if reason:
                state.record(
                    strategy,
                    "rejected",
                    f"{result.title!r} {reason}",
                    catalog_id=result.id,
                    similarity=similarity,
                )
                continue

            year_match = request.year is not None and result.year == request.year
            language_match = bool(
                request.expected_language
                and result.original_language
                and result.original_language[:2].lower() == request.expected_language[:2].lower()
            )
            ranked.append(((similarity, year_match, language_match), result))

        if not ranked:
            state.record(strategy, "miss", f"no acceptable result among {len(results)}")
            return None

        (similarity, _, _), winner = max(ranked, key=lambda entry: entry[0])
        state.record(
            strategy,
            "accepted",
            f"{winner.title!r} ({winner.year})",
            catalog_id=winner.id,
            similarity=similarity,
        )
        return winner

    @staticmethod
    def _build_identity(state: ResolutionState) -> CatalogIdentity:
        primary, secondary, item = state.primary, state.secondary, state.library_item

        tvdb_id = (
            state.tvdb_id
            or (primary.id if primary else None)
            or (secondary.tvdb_id if secondary else None)
        )
        tmdb_id = (
            state.tmdb_id
            or (secondary.id if secondary else None)
            or (primary.tmdb_id if primary else None)
        )
        imdb_id = (
            state.imdb_id
            or (secondary.imdb_id if secondary else None)
            or (primary.imdb_id if primary else None)
        )
        if not any((tvdb_id, tmdb_id)):
            imdb_id = imdb_id or state.request.embedded.imdb_id
        if not any((tvdb_id, tmdb_id, imdb_id)):
            return CatalogIdentity.unresolved(state.trail)

        # The secondary catalog's title is authoritative when available
        title = (
            (secondary.title if secondary else None)
            or (primary.title if primary else None)
            or (item.title if item else None)
        )
        language = (
            (secondary.original_language if secondary else None)
            or (primary.original_language if primary else None)
            or (item.original_language if item else None)
        )
        posters = PosterUrls(
            primary=(primary.poster_url if primary else None)
            or (item.poster_url if item else None),
            secondary=secondary.poster_url if secondary else None,
        )
        return CatalogIdentity(
            tvdb_id=tvdb_id,
            tmdb_id=tmdb_id,
            imdb_id=imdb_id,
            canonical_title=title,
            original_language=language,
            posters=posters,
            confidence=state.confidence or Confidence.SINGLE_SOURCE,
            library_item_id=item.id if item else None,
            trail=state.trail,
        )
