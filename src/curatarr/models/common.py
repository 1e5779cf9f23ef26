"""Common models shared by the parser, scoring engine and persistence layer."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class MediaKind(str, Enum):
    """Kind of catalog item a release belongs to."""

    MOVIE = "movie"
    TV = "tv"


class Resolution(str, Enum):
    """Video resolution detected in a release title."""

    UHD = "2160p"
    FHD = "1080p"
    HD = "720p"
    SD = "480p"
    UNKNOWN = "unknown"


class Codec(str, Enum):
    """Video codec family detected in a release title."""

    X265 = "x265"
    X264 = "x264"
    UNKNOWN = "unknown"


class FeedItem(BaseModel):
    """A single entry read from a release feed."""

    guid: str
    title: str
    kind: MediaKind = MediaKind.MOVIE
    description: str | None = None
    category: str | None = None
    link: str | None = None
    published_at: str | None = None


class RawRelease(BaseModel):
    """Structured attributes parsed from a release title.

    Unrecognized categories use explicit sentinels (``Resolution.UNKNOWN``,
    ``Codec.UNKNOWN``, ``"Other"`` source, ``"Unknown"`` audio) so callers
    never deal with a missing value for them.
    """

    guid: str
    title: str
    clean_title: str
    normalized_title: str
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
