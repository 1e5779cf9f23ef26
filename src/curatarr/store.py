"""JSON-file persistence for release records, the ignore list and sync progress."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path  # noqa: TC003 - used at runtime
from typing import Literal

from pydantic import ValidationError

from curatarr.models import IgnoreListEntry, MediaKind, ReleaseRecord, ReleaseStatus

logger = logging.getLogger(__name__)

STATE_VERSION = 1


class StoreError(Exception):
    """Raised when the record store cannot be written."""


@dataclass
class BatchProgress:
    """Track progress of a sync run for resume capability."""

    batch_id: str
    item_type: Literal["movie", "tv", "mixed"]
    total_items: int
    processed_guids: set[str] = field(default_factory=set)
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def processed_count(self) -> int:
        """Number of items processed."""
        return len(self.processed_guids)

    @property
    def remaining_count(self) -> int:
        """Number of items remaining."""
        return self.total_items - self.processed_count

    def mark_processed(self, guid: str) -> None:
        """Mark a feed item as processed."""
        self.processed_guids.add(guid)

    def is_processed(self, guid: str) -> bool:
        """Check if a feed item has been processed."""
        return guid in self.processed_guids

    def to_dict(self) -> dict[str, object]:
        """Convert to dictionary for JSON serialization."""
        return {
            "batch_id": self.batch_id,
            "item_type": self.item_type,
            "total_items": self.total_items,
            "processed_guids": sorted(self.processed_guids),
            "started_at": self.started_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> BatchProgress:
        """Create from dictionary, tolerating missing or malformed fields."""
        started_at_str = data.get("started_at", "")
        if isinstance(started_at_str, str) and started_at_str:
            started_at = datetime.fromisoformat(started_at_str)
        else:
            started_at = datetime.now(UTC)

        processed = data.get("processed_guids", [])
        if not isinstance(processed, list):
            processed = []

        item_type = data.get("item_type", "mixed")
        if item_type not in ("movie", "tv", "mixed"):
            item_type = "mixed"

        total_items = data.get("total_items", 0)
        if not isinstance(total_items, (int, float)):
            total_items = 0

        return cls(
            batch_id=str(data.get("batch_id", "")),
            item_type=item_type,  # type: ignore[arg-type]
            total_items=int(total_items),
            processed_guids={str(g) for g in processed if isinstance(g, str)},
            started_at=started_at,
        )


@dataclass
class StateFile:
    """Everything persisted between runs."""

    version: int = STATE_VERSION
    releases: dict[str, ReleaseRecord] = field(default_factory=dict)
    ignored: dict[str, IgnoreListEntry] = field(default_factory=dict)
    batch_progress: BatchProgress | None = None

    def to_dict(self) -> dict[str, object]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, object] = {
            "version": self.version,
            "releases": {
                guid: record.model_dump(mode="json") for guid, record in self.releases.items()
            },
            "ignored": {key: entry.model_dump(mode="json") for key, entry in self.ignored.items()},
        }
        if self.batch_progress is not None:
            result["batch_progress"] = self.batch_progress.to_dict()
        return result

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> StateFile:
        """Create from dictionary, skipping records that fail validation."""
        version = data.get("version", STATE_VERSION)
        if not isinstance(version, int):
            version = STATE_VERSION

        releases: dict[str, ReleaseRecord] = {}
        releases_data = data.get("releases", {})
        if isinstance(releases_data, dict):
            for guid, record_data in releases_data.items():
                try:
                    releases[guid] = ReleaseRecord.model_validate(record_data)
                except ValidationError as e:
                    logger.warning("Skipping invalid release record %s: %s", guid, e)

        ignored: dict[str, IgnoreListEntry] = {}
        ignored_data = data.get("ignored", {})
        if isinstance(ignored_data, dict):
            for key, entry_data in ignored_data.items():
                try:
                    ignored[key] = IgnoreListEntry.model_validate(entry_data)
                except ValidationError as e:
                    logger.warning("Skipping invalid ignore-list entry %s: %s", key, e)

        batch_progress: BatchProgress | None = None
        batch_data = data.get("batch_progress")
        if isinstance(batch_data, dict):
            batch_progress = BatchProgress.from_dict(batch_data)

        return cls(
            version=version, releases=releases, ignored=ignored, batch_progress=batch_progress
        )


class ReleaseStore:
    """Keyed store for release records, backed by a single JSON file.

    Records are keyed by feed guid and only ever written through
    :meth:`upsert`, which replaces the record for that guid. Each write
    rewrites the file atomically; a failed write is rolled back in memory
    and raised as :class:`StoreError`.
    """

    def __init__(self, path: Path) -> None:
        """Initialize the store.

        Args:
            path: Path to the JSON state file
        """
        self.path = path
        self._state: StateFile | None = None

    def load(self) -> StateFile:
        """Load state from file, creating empty state if file doesn't exist.

        Returns:
            The loaded or empty StateFile
        """
        if self._state is not None:
            return self._state

        if not self.path.exists():
            self._state = StateFile()
            return self._state

        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
            self._state = StateFile.from_dict(data)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Failed to load state file %s: %s", self.path, e)
            self._state = StateFile()

        return self._state

    def save(self) -> None:
        """Write state to disk.

        Raises:
            StoreError: If the file cannot be written
        """
        if self._state is None:
            return

        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tmp_path.open("w", encoding="utf-8") as f:
                json.dump(self._state.to_dict(), f, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.error("Failed to save state file %s: %s", self.path, e)
            raise StoreError(f"Failed to save state file {self.path}: {e}") from e

    # --- releases ---

    def upsert(self, record: ReleaseRecord) -> ReleaseRecord:
        """Insert or replace the record for ``record.guid`` and save.

        Args:
            record: The record to persist

        Returns:
            The stored record

        Raises:
            StoreError: If the write fails; the previous record is restored
        """
        state = self.load()
        previous = state.releases.get(record.guid)
        state.releases[record.guid] = record
        try:
            self.save()
        except StoreError:
            if previous is None:
                del state.releases[record.guid]
            else:
                state.releases[record.guid] = previous
            raise
        return record

    def get(self, guid: str) -> ReleaseRecord | None:
        """Get the record for a guid."""
        return self.load().releases.get(guid)

    def get_all(self, kind: MediaKind | None = None) -> list[ReleaseRecord]:
        """Get all records, optionally only one kind."""
        records = list(self.load().releases.values())
        if kind is not None:
            records = [r for r in records if r.kind is kind]
        return records

    def get_by_status(
        self, status: ReleaseStatus, kind: MediaKind | None = None
    ) -> list[ReleaseRecord]:
        """Get all records with a given status."""
        return [r for r in self.get_all(kind) if r.status is status]

    def _update(self, guid: str, **changes: object) -> ReleaseRecord:
        record = self.get(guid)
        if record is None:
            raise KeyError(guid)
        return self.upsert(record.model_copy(update=changes))

    def set_manual_id(
        self, guid: str, id_field: Literal["tvdb_id", "tmdb_id", "imdb_id"], value: int | str
    ) -> ReleaseRecord:
        """Pin a catalog id on a record so later runs never overwrite it.

        Raises:
            KeyError: If no record exists for the guid
        """
        logger.info("Pinning %s=%s on %s", id_field, value, guid)
        return self._update(guid, **{id_field: value, f"{id_field}_manual": True})

    def set_status(self, guid: str, status: ReleaseStatus) -> ReleaseRecord:
        """Set a record's status directly (mark added / un-add).

        Raises:
            KeyError: If no record exists for the guid
        """
        logger.info("Setting status of %s to %s", guid, status.value)
        return self._update(guid, status=status)

    def set_manually_ignored(self, guid: str, ignored: bool) -> ReleaseRecord:
        """Ignore or un-ignore a single record.

        Un-ignoring also moves an IGNORED record back to NEW so the next run
        re-evaluates it.

        Raises:
            KeyError: If no record exists for the guid
        """
        record = self.get(guid)
        if record is None:
            raise KeyError(guid)
        changes: dict[str, object] = {"manually_ignored": ignored}
        if ignored and record.status is not ReleaseStatus.ADDED:
            changes["status"] = ReleaseStatus.IGNORED
        elif not ignored and record.status is ReleaseStatus.IGNORED:
            changes["status"] = ReleaseStatus.NEW
        return self._update(guid, **changes)

    # --- ignore list ---

    def add_ignored(self, key: str, label: str | None = None) -> IgnoreListEntry:
        """Add an identity key to the ignore list and save.

        Raises:
            ValueError: If the key is empty
            StoreError: If the write fails
        """
        if not key:
            raise ValueError("Ignore-list key must not be empty")
        state = self.load()
        entry = state.ignored.get(key) or IgnoreListEntry(key=key, label=label)
        state.ignored[key] = entry
        self.save()
        return entry

    def remove_ignored(self, key: str) -> bool:
        """Remove a key from the ignore list.

        Returns:
            True if the key was present
        """
        state = self.load()
        if key not in state.ignored:
            return False
        del state.ignored[key]
        self.save()
        return True

    def ignored_entries(self) -> list[IgnoreListEntry]:
        """All ignore-list entries, oldest first."""
        return sorted(self.load().ignored.values(), key=lambda e: e.added_at)

    def ignored_keys(self) -> frozenset[str]:
        """Immutable snapshot of the ignore-list keys for one run."""
        return frozenset(self.load().ignored)

    # --- batch progress ---

    def start_batch(
        self,
        batch_id: str,
        item_type: Literal["movie", "tv", "mixed"],
        total_items: int,
    ) -> BatchProgress:
        """Start tracking a new sync run.

        Args:
            batch_id: Unique identifier for this run
            item_type: Type of items being processed
            total_items: Total number of feed items

        Returns:
            The new BatchProgress object
        """
        state = self.load()
        state.batch_progress = BatchProgress(
            batch_id=batch_id,
            item_type=item_type,
            total_items=total_items,
        )
        self.save()
        return state.batch_progress

    def get_batch_progress(self) -> BatchProgress | None:
        """Get the progress of an interrupted run, if any."""
        return self.load().batch_progress

    def update_batch_progress(self, guid: str) -> None:
        """Mark a feed item as processed in the current run.

        Args:
            guid: The guid of the processed feed item
        """
        state = self.load()
        if state.batch_progress is not None:
            state.batch_progress.mark_processed(guid)
            self.save()

    def clear_batch_progress(self) -> None:
        """Clear the run progress (call on successful completion)."""
        state = self.load()
        state.batch_progress = None
        self.save()
