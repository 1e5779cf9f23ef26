"""Release status transitions and the field-preservation policy for re-upserts."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from curatarr.models import Confidence, MediaKind, ReleaseRecord, ReleaseStatus
from curatarr.parser import normalize_title

if TYPE_CHECKING:
    from collections.abc import Collection

    from curatarr.models import LibraryFile, LibraryItem
    from curatarr.scoring import UpgradeDecision

logger = logging.getLogger(__name__)

_ID_FIELDS = ("tvdb_id", "tmdb_id", "imdb_id")
_ENRICHMENT_FIELDS = (
    "canonical_title",
    "original_language",
    "primary_poster_url",
    "secondary_poster_url",
)


@dataclass(frozen=True)
class LibraryFacts:
    """What the local library knows about a release's identity."""

    exists: bool = False
    item_id: int | None = None
    title: str | None = None
    season_monitored: bool = False
    held_file: LibraryFile | None = None

    @classmethod
    def from_item(cls, item: LibraryItem, season: int | None = None) -> LibraryFacts:
        """Build facts from a library item; no season means fully covered."""
        return cls(
            exists=True,
            item_id=item.id,
            title=item.title,
            season_monitored=season is None or item.is_season_monitored(season),
            held_file=item.file,
        )


def build_identity_key(tvdb_id: int | None, tmdb_id: int | None, name: str | None) -> str:
    """Build the ignore-list key for an identity.

    The first available component wins: ``tvdb:<id>``, then ``tmdb:<id>``,
    then ``name:<normalized name>``. Returns an empty string when nothing is
    known.
    """
    if tvdb_id:
        return f"tvdb:{tvdb_id}"
    if tmdb_id:
        return f"tmdb:{tmdb_id}"
    normalized = normalize_title(name or "")
    if normalized:
        return f"name:{normalized}"
    return ""


def record_name(record: ReleaseRecord) -> str:
    """The name a record's identity key is derived from."""
    if record.kind is MediaKind.TV and record.show_name:
        return record.show_name
    return record.clean_title or record.title


def identity_keys(record: ReleaseRecord) -> list[str]:
    """Every ignore-list key a record can be matched by, most specific first."""
    keys = [
        build_identity_key(record.tvdb_id, None, None),
        build_identity_key(None, record.tmdb_id, None),
        build_identity_key(None, None, record_name(record)),
    ]
    return [key for key in keys if key]


def _anchor_id(record: ReleaseRecord) -> int | None:
    """The catalog id the library manager keys on (TVDB for TV, TMDB for movies)."""
    return record.tvdb_id if record.kind is MediaKind.TV else record.tmdb_id


def decide_status(
    *,
    kind: MediaKind,
    previous_status: ReleaseStatus | None,
    ignored: bool,
    admissible: bool,
    library: LibraryFacts,
    upgrade: UpgradeDecision | None = None,
) -> ReleaseStatus:
    """Compute a release's next status.

    Precedence: a previously ADDED record stays ADDED; ignored records are
    IGNORED; inadmissible movies are IGNORED; movies already in the library
    are UPGRADE_CANDIDATE only if the upgrade decision says so; TV releases
    for a monitored season are IGNORED and for an unmonitored season
    NEW_SEASON; anything not in the library is NEW (movies) or NEW_SHOW.
    """
    if previous_status is ReleaseStatus.ADDED:
        return ReleaseStatus.ADDED
    if ignored:
        return ReleaseStatus.IGNORED

    if kind is MediaKind.MOVIE:
        if not admissible:
            return ReleaseStatus.IGNORED
        if library.exists:
            if upgrade is not None and upgrade.is_upgrade:
                return ReleaseStatus.UPGRADE_CANDIDATE
            return ReleaseStatus.IGNORED
        return ReleaseStatus.NEW

    if library.exists:
        return ReleaseStatus.IGNORED if library.season_monitored else ReleaseStatus.NEW_SEASON
    return ReleaseStatus.NEW_SHOW


def merge_record(previous: ReleaseRecord | None, incoming: ReleaseRecord) -> ReleaseRecord:
    """Merge a freshly computed record into the previously stored one.

    - Ids are replaced only by non-null values, and never when the stored id
      was pinned manually.
    - Titles, language and posters keep their stored value when the new run
      produced none.
    - ``manually_ignored`` and the manual flags are OR-combined.
    - Library linkage is re-derived when the anchor id changed. When the new
      identity is unresolved, a stored linkage is kept for one more run.
    """
    if previous is None:
        return incoming

    update: dict[str, object] = {}
    for name in _ID_FIELDS:
        manual_flag = f"{name}_manual"
        if getattr(previous, manual_flag):
            update[name] = getattr(previous, name)
            update[manual_flag] = True
        elif getattr(incoming, name) is None:
            update[name] = getattr(previous, name)

    for name in _ENRICHMENT_FIELDS:
        if getattr(incoming, name) is None:
            update[name] = getattr(previous, name)

    if incoming.confidence is Confidence.UNRESOLVED:
        update["confidence"] = previous.confidence

    update["manually_ignored"] = previous.manually_ignored or incoming.manually_ignored

    merged = incoming.model_copy(update=update)
    merged = merged.model_copy(update=_merge_linkage(previous, incoming, merged))
    return merged


def _merge_linkage(
    previous: ReleaseRecord, incoming: ReleaseRecord, merged: ReleaseRecord
) -> dict[str, object]:
    previous_anchor = _anchor_id(previous)
    if previous_anchor is not None and _anchor_id(merged) != previous_anchor:
        logger.info(
            "Identity of %s changed (%s -> %s); re-deriving library linkage",
            incoming.guid,
            previous_anchor,
            _anchor_id(merged),
        )
        return {
            "library_item_id": incoming.library_item_id,
            "library_item_title": incoming.library_item_title,
            "linkage_preserved": False,
        }

    if incoming.confidence is Confidence.UNRESOLVED and incoming.library_item_id is None:
        if previous.library_item_id is not None and not previous.linkage_preserved:
            logger.debug("Keeping library linkage of %s for one more run", incoming.guid)
            return {
                "library_item_id": previous.library_item_id,
                "library_item_title": previous.library_item_title,
                "linkage_preserved": True,
            }
        return {"library_item_id": None, "library_item_title": None, "linkage_preserved": False}

    return {
        "library_item_id": incoming.library_item_id,
        "library_item_title": incoming.library_item_title,
        "linkage_preserved": False,
    }


def transition(
    previous: ReleaseRecord | None,
    incoming: ReleaseRecord,
    *,
    admissible: bool,
    library: LibraryFacts,
    ignored_keys: Collection[str],
    upgrade: UpgradeDecision | None = None,
) -> ReleaseRecord:
    """Merge an incoming record with its predecessor and assign its status.

    Args:
        previous: The stored record for the same guid, if any
        incoming: The record computed by this run (status not yet decided)
        admissible: Whether the release passes the quality policy
        library: Local library facts for the resolved identity
        ignored_keys: Snapshot of the ignore list
        upgrade: Upgrade decision for movies already in the library

    Returns:
        The record to persist
    """
    merged = merge_record(previous, incoming)
    in_ignore_list = any(key in ignored_keys for key in identity_keys(merged))
    manually_ignored = merged.manually_ignored or in_ignore_list

    status = decide_status(
        kind=merged.kind,
        previous_status=previous.status if previous else None,
        ignored=manually_ignored,
        admissible=admissible,
        library=library,
        upgrade=upgrade,
    )
    if previous is not None and previous.status is not status:
        logger.info("%s: %s -> %s", merged.guid, previous.status.value, status.value)
    return merged.model_copy(update={"manually_ignored": manually_ignored, "status": status})
