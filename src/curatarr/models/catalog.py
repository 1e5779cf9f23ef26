"""Models for metadata catalog lookups and resolved identities."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class CatalogSearchResult(BaseModel):
    """A single hit returned by a catalog free-text search."""

    id: int
    title: str
    original_title: str | None = None
    year: int | None = None
    original_language: str | None = None


class CatalogDetail(BaseModel):
    """Extended detail for one catalog entry, normalized at the client boundary."""

    id: int
    title: str
    year: int | None = None
    original_language: str | None = None
    poster_url: str | None = None
    slug: str | None = None
    # Cross-referenced ids into the other catalogs
    tvdb_id: int | None = None
    tmdb_id: int | None = None
    imdb_id: str | None = None


class Confidence(str, Enum):
    """How a catalog identity was established."""

    MANUAL_OVERRIDE = "manual-override"
    LOCAL_LIBRARY_MATCH = "local-library-match"
    CROSS_VALIDATED = "cross-validated"
    SINGLE_SOURCE = "single-source"
    UNRESOLVED = "unresolved"


class PosterUrls(BaseModel):
    """Artwork references from the primary and secondary catalogs."""

    primary: str | None = None
    secondary: str | None = None


class ResolutionStep(BaseModel):
    """One entry in the resolver's decision trail."""

    strategy: str
    outcome: str
    detail: str
    catalog_id: int | None = None
    similarity: float | None = None


class CatalogIdentity(BaseModel):
    """Resolved identity of a release across the catalogs."""

    tvdb_id: int | None = None
    tmdb_id: int | None = None
    imdb_id: str | None = None
    canonical_title: str | None = None
    original_language: str | None = None
    posters: PosterUrls = Field(default_factory=PosterUrls)
    confidence: Confidence = Confidence.UNRESOLVED
    library_item_id: int | None = None
    trail: list[ResolutionStep] = Field(default_factory=list)

    @property
    def is_resolved(self) -> bool:
        """Whether any catalog id was established."""
        return self.confidence is not Confidence.UNRESOLVED

    @classmethod
    def unresolved(cls, trail: list[ResolutionStep] | None = None) -> CatalogIdentity:
        """Build the identity returned when nothing could be confirmed."""
        return cls(trail=trail or [])
