"""Pydantic models for releases, catalogs and the local library."""

from curatarr.models.catalog import (
    CatalogDetail,
    CatalogIdentity,
    CatalogSearchResult,
    Confidence,
    PosterUrls,
    ResolutionStep,
)
from curatarr.models.common import Codec, FeedItem, MediaKind, RawRelease, Resolution
from curatarr.models.library import LibraryFile, LibraryItem
from curatarr.models.release import IgnoreListEntry, ReleaseRecord, ReleaseStatus

__all__ = [
    "CatalogDetail",
    "CatalogIdentity",
    "CatalogSearchResult",
    "Codec",
    "Confidence",
    "FeedItem",
    "IgnoreListEntry",
    "LibraryFile",
    "LibraryItem",
    "MediaKind",
    "PosterUrls",
    "RawRelease",
    "ReleaseRecord",
    "ReleaseStatus",
    "Resolution",
    "ResolutionStep",
]
