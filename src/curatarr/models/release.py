"""Persisted release records and ignore-list entries."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field

from curatarr.models.catalog import Confidence
from curatarr.models.common import Codec, MediaKind, Resolution


class ReleaseStatus(str, Enum):
    """Lifecycle status of a release record."""

    NEW = "NEW"
    NEW_SHOW = "NEW_SHOW"
    NEW_SEASON = "NEW_SEASON"
    IGNORED = "IGNORED"
    UPGRADE_CANDIDATE = "UPGRADE_CANDIDATE"
    ADDED = "ADDED"


class ReleaseRecord(BaseModel):
    """One persisted row per feed guid, for a movie or a TV release."""

    guid: str
    kind: MediaKind
    status: ReleaseStatus = ReleaseStatus.NEW

    # Parsed attributes
    title: str
    clean_title: str = ""
    normalized_title: str = ""
    year: int | None = None
    resolution: Resolution = Resolution.UNKNOWN
    codec: Codec = Codec.UNKNOWN
    source_tag: str = "Other"
    audio: str = "Unknown"
    size_mb: float | None = None
    audio_languages: list[str] = Field(default_factory=list)
    embedded_tmdb_id: int | None = None
    embedded_tvdb_id: int | None = None
    embedded_imdb_id: str | None = None

    # TV only
    show_name: str | None = None
    season_number: int | None = None

    # Resolved identity
    tvdb_id: int | None = None
    tmdb_id: int | None = None
    imdb_id: str | None = None
    tvdb_id_manual: bool = False
    tmdb_id_manual: bool = False
    imdb_id_manual: bool = False
    canonical_title: str | None = None
    original_language: str | None = None
    primary_poster_url: str | None = None
    secondary_poster_url: str | None = None
    confidence: Confidence = Confidence.UNRESOLVED

    # Local library linkage
    library_item_id: int | None = None
    library_item_title: str | None = None
    linkage_preserved: bool = False

    # Quality
    quality_score: float = 0.0
    existing_quality_score: float | None = None
    existing_size_mb: float | None = None
    is_dubbed: bool = False

    manually_ignored: bool = False
    last_checked_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def display_name(self) -> str:
        """Best human-readable name for the release."""
        return self.canonical_title or self.show_name or self.clean_title or self.title


class IgnoreListEntry(BaseModel):
    """A user-curated identity key that forces matching releases to IGNORED."""

    key: str
    label: str | None = None
    added_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
