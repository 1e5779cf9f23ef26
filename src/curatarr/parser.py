"""Release title parsing.

Turns raw scene-release strings into structured attributes. Every function
here is total: unrecognized tokens fall back to an explicit "unknown"
sentinel instead of raising.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from curatarr.models import Codec, RawRelease, Resolution


def _token(pattern: str) -> re.Pattern[str]:
    """Compile a case-insensitive pattern that must stand alone as a token.

    Dots, dashes, spaces, brackets and underscores all count as separators.
    """
    return re.compile(rf"(?<![a-z0-9])(?:{pattern})(?![a-z0-9])", re.IGNORECASE)


_RESOLUTION_PATTERNS: list[tuple[re.Pattern[str], Resolution]] = [
    (_token(r"2160[pi]|4K|UHD"), Resolution.UHD),
    (_token(r"1080[pi]|FHD"), Resolution.FHD),
    (_token(r"720[pi]|HD"), Resolution.HD),
    (_token(r"480[pi]|SD"), Resolution.SD),
]

_CODEC_PATTERNS: list[tuple[re.Pattern[str], Codec]] = [
    (_token(r"x265|HEVC|H\.?265"), Codec.X265),
    (_token(r"x264|AVC|H\.?264"), Codec.X264),
]

# Physical media first, then web, then streaming-service codes
_SOURCE_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (_token(r"Blu[.\s-]?Ray|BDRip|BRRip|BD(?:25|50)?"), "Bluray"),
    (_token(r"DVD(?:Rip|R|5|9)?"), "DVD"),
    (_token(r"WEB[.\s-]?DL(?:Rip)?"), "WEB-DL"),
    (_token(r"WEB[.\s-]?Rip"), "WEBRip"),
    (_token(r"AMZN"), "AMZN"),
    (_token(r"NF"), "NF"),
    (_token(r"JC"), "JC"),
    (_token(r"ZEE5"), "ZEE5"),
    (_token(r"DSNP|Disney|Hotstar"), "DSNP"),
    (_token(r"HS"), "HS"),
    (_token(r"SS"), "SS"),
]

_DDP = r"(?:DDP|DD\+|E-?AC-?3)"
_SEP = r"[.\s]?"

# Most specific first; the first match wins
_AUDIO_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(rf"{_DDP}{_SEP}5\.1[.\s]*Atmos", re.I), "DDP 5.1 Atmos"),
    (re.compile(r"TrueHD[.\s]*(?:7\.1[.\s]*)?Atmos", re.I), "TrueHD Atmos"),
    (re.compile(r"Atmos", re.I), "Atmos"),
    (re.compile(r"TrueHD", re.I), "TrueHD"),
    (re.compile(rf"{_DDP}{_SEP}7\.1", re.I), "DDP 7.1"),
    (re.compile(rf"{_DDP}{_SEP}5\.1", re.I), "DDP 5.1"),
    (re.compile(rf"{_DDP}{_SEP}2\.0", re.I), "DDP 2.0"),
    (re.compile(rf"(?<![a-z]){_DDP}", re.I), "DDP"),
    (re.compile(rf"(?<![a-z])(?:DD|AC-?3){_SEP}5\.1", re.I), "DD 5.1"),
    (re.compile(rf"(?<![a-z])(?:DD|AC-?3){_SEP}2\.0", re.I), "DD 2.0"),
    (re.compile(r"(?<![a-z0-9])(?:AC-?3|DD)(?![a-z+])", re.I), "DD"),
    (re.compile(rf"(?<![a-z])AAC{_SEP}5\.1", re.I), "AAC 5.1"),
    (re.compile(rf"(?<![a-z])AAC{_SEP}2\.0", re.I), "AAC 2.0"),
    (re.compile(r"(?<![a-z])AAC", re.I), "AAC"),
    (re.compile(r"2\.0|Stereo", re.I), "2.0"),
]

_LANGUAGE_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"\b(?:Hindi|Hin)\b|हिन्दी|हिंदी", re.I), "hi"),
    (re.compile(r"\b(?:Telugu|Tel)\b|తెలుగు", re.I), "te"),
    (re.compile(r"\b(?:Tamil|Tam)\b|தமிழ்", re.I), "ta"),
    (re.compile(r"\b(?:Kannada|Kan)\b|ಕನ್ನಡ", re.I), "kn"),
    (re.compile(r"\b(?:Malayalam|Mal)\b|മലയാളം", re.I), "ml"),
    (re.compile(r"\b(?:Bengali|Bangla)\b|বাংলা", re.I), "bn"),
    (re.compile(r"\bMarathi\b|मराठी", re.I), "mr"),
    (re.compile(r"\bPunjabi\b|ਪੰਜਾਬੀ", re.I), "pa"),
    (re.compile(r"\b(?:English|Eng)\b", re.I), "en"),
]

# Language tags trailing the name, e.g. "Movie (2019) Hindi 1080p"
_TRAILING_LANGUAGES = re.compile(
    r"(?:[\s-]+(?:Hindi|Telugu|Tamil|Kannada|Malayalam|Bengali|Marathi|Punjabi|English))+$",
    re.I,
)

_SIZE_PATTERN = re.compile(r"(\d+(?:\.\d+)?)\s*(GiB|GB|MiB|MB)\b", re.I)
_LABELLED_SIZE_PATTERNS = [
    re.compile(r"<strong>\s*Size\s*</strong>\s*:?\s*(\d+(?:\.\d+)?\s*(?:GiB|GB|MiB|MB))", re.I),
    re.compile(r"\bSize[:\s]+(\d+(?:\.\d+)?\s*(?:GiB|GB|MiB|MB))", re.I),
]

# A 4-digit 19xx/20xx token not glued to letters, digits or an apostrophe
_YEAR_PATTERN = re.compile(r"(?<![\w'])((?:19|20)\d{2})(?![\w'])")
_BRACKETED_YEAR_PATTERN = re.compile(r"[(\[]\s*((?:19|20)\d{2})\s*[)\]]")

_TMDB_ID_PATTERNS = [
    re.compile(r"themoviedb\.org/(?:movie|tv)/(\d+)", re.I),
    re.compile(r"\bTMDB(?:\s*ID)?\s*[:#]\s*(\d+)", re.I),
    re.compile(r"\bTMDB\s+Link.*?(\d{4,})", re.I | re.S),
]
_TVDB_ID_PATTERNS = [
    re.compile(r"thetvdb\.com/(?:dereferrer/)?(?:series|movies?)/(\d+)(?![\w-])", re.I),
    re.compile(r"thetvdb\.com/\?[^\s\"'<>]*?\bid=(\d+)", re.I),
    re.compile(r"\bTVDB(?:\s*ID)?\s*[:#]\s*(\d+)", re.I),
]
_IMDB_ID_PATTERNS = [
    re.compile(r"imdb\.com/title/(tt\d{7,})", re.I),
    re.compile(r"\bIMDb(?:\s*ID)?\s*[:#]\s*(tt\d{7,})", re.I),
    re.compile(r"\b(tt\d{7,})\b"),
]

_SEASON_PATTERNS = [
    re.compile(r"^(.+?)\s+S(\d{1,3})(?:E\d+)*(?![a-z0-9])", re.I),
    re.compile(r"^(.+?)\s+Season\s*(\d{1,3})(?!\d)", re.I),
    re.compile(r"^(.+?)\s+S(\d{1,3})$", re.I),
]


@dataclass(frozen=True)
class EmbeddedIds:
    """External ids found in a feed item's free-text description."""

    tmdb_id: int | None = None
    tvdb_id: int | None = None
    imdb_id: str | None = None


@dataclass(frozen=True)
class TvTitle:
    """Result of parsing a TV release title."""

    show_name: str
    season: int | None = None
    year: int | None = None


def _sanitize(title: str) -> str:
    """Replace dot/underscore separators with spaces and collapse whitespace."""
    return _collapse(re.sub(r"[._]+", " ", title))


def _collapse(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


def _first_match(patterns: list[tuple[re.Pattern[str], str]], text: str, default: str) -> str:
    for pattern, label in patterns:
        if pattern.search(text):
            return label
    return default


def normalize_title(title: str) -> str:
    """Normalize a title for comparison.

    Lowercases, turns every non-word character into a space and collapses
    whitespace, so "Show.Name: Part 2" and "show name part 2" compare equal.
    """
    return _collapse(re.sub(r"[\W_]+", " ", title.lower()))


def parse_resolution(title: str) -> Resolution:
    """Detect the video resolution of a release title."""
    for pattern, resolution in _RESOLUTION_PATTERNS:
        if pattern.search(title):
            return resolution
    return Resolution.UNKNOWN


def parse_codec(title: str) -> Codec:
    """Detect the video codec family of a release title."""
    for pattern, codec in _CODEC_PATTERNS:
        if pattern.search(title):
            return codec
    return Codec.UNKNOWN


def parse_source(title: str) -> str:
    """Detect the source tag (physical media, web, streaming service)."""
    return _first_match(_SOURCE_PATTERNS, title, "Other")


def parse_audio(title: str) -> str:
    """Detect a descriptive audio-track label, most specific first."""
    return _first_match(_AUDIO_PATTERNS, title, "Unknown")


def detect_audio_languages(title: str) -> list[str]:
    """Detect audio-language codes mentioned in a release title.

    Returns:
        ISO 639-1 codes in detection order, without duplicates
    """
    text = _sanitize(title)
    return [code for pattern, code in _LANGUAGE_PATTERNS if pattern.search(text)]


def parse_size(text: str) -> float | None:
    """Parse a size such as "3.5 GiB" or "700 MB" into megabytes.

    GB and GiB are multiplied by 1024, MB and MiB are kept as-is.

    Returns:
        Size in MB, or None if no size token is present
    """
    match = _SIZE_PATTERN.search(text)
    if not match:
        return None
    value = float(match.group(1))
    if match.group(2).lower() in ("gb", "gib"):
        return value * 1024
    return value


def _size_from_description(description: str) -> float | None:
    for pattern in _LABELLED_SIZE_PATTERNS:
        match = pattern.search(description)
        if match:
            return parse_size(match.group(1))
    return parse_size(description)


def _first_id(patterns: list[re.Pattern[str]], text: str) -> str | None:
    for pattern in patterns:
        match = pattern.search(text)
        if match:
            return match.group(1)
    return None


def extract_embedded_ids(description: str | None) -> EmbeddedIds:
    """Extract TMDB, TVDB and IMDb ids from a feed item's description.

    Each id tries a service URL pattern first, then a generic "label: number"
    pattern; the first match wins.
    """
    if not description:
        return EmbeddedIds()
    tmdb = _first_id(_TMDB_ID_PATTERNS, description)
    tvdb = _first_id(_TVDB_ID_PATTERNS, description)
    imdb = _first_id(_IMDB_ID_PATTERNS, description)
    return EmbeddedIds(
        tmdb_id=int(tmdb) if tmdb else None,
        tvdb_id=int(tvdb) if tvdb else None,
        imdb_id=imdb.lower() if imdb else None,
    )


def _release_year_match(text: str) -> re.Match[str] | None:
    """Find the release year, skipping a year that starts the title.

    "1917 2019 1080p" is the film 1917 released in 2019; a lone leading year
    is treated as part of the name.
    """
    for match in _YEAR_PATTERN.finditer(text):
        if match.start() > 0:
            return match
    return None


def clean_title(title: str) -> str:
    """Derive a searchable title from a release name.

    Strips parenthetical groups, the year and everything after it, any
    trailing parenthetical remainder and trailing language tags, normalizes
    "and" to "&" and collapses whitespace. Without a year, the title is cut
    at the first resolution token instead.
    """
    text = _sanitize(title)
    text = re.sub(r"\s*\([^)]*\)\s*", " ", text)
    text = re.sub(r"\s*\[[^\]]*\]\s*", " ", text)
    text = _collapse(text)

    year_match = _release_year_match(text)
    if year_match:
        text = text[: year_match.start()]
    else:
        for pattern, _ in _RESOLUTION_PATTERNS:
            match = pattern.search(text)
            if match and match.start() > 0:
                text = text[: match.start()]
                break

    text = re.sub(r"\s*\([^)]*\)?\s*$", "", text)
    text = _TRAILING_LANGUAGES.sub("", text.rstrip())
    text = re.sub(r"\s+and\s+", " & ", text, flags=re.I)
    return _collapse(text).strip(" -")


def parse_release(
    title: str,
    description: str | None = None,
    *,
    guid: str | None = None,
) -> RawRelease:
    """Parse a raw release title (and optional feed description).

    Args:
        title: The scene-release title
        description: Optional free-text description from the feed entry,
            used for the size and for embedded external ids
        guid: Stable feed identifier; defaults to the title

    Returns:
        RawRelease with every category filled in (unknown sentinels when
        nothing matched)
    """
    sanitized = _sanitize(title)
    cleaned = clean_title(title)

    year_match = _release_year_match(sanitized)
    year = int(year_match.group(1)) if year_match else None

    size_mb = parse_size(title)
    if size_mb is None and description:
        size_mb = _size_from_description(description)

    ids = extract_embedded_ids(description)

    return RawRelease(
        guid=guid or title,
        title=title,
        clean_title=cleaned,
        normalized_title=normalize_title(cleaned),
        year=year,
        resolution=parse_resolution(title),
        codec=parse_codec(title),
        source_tag=parse_source(title),
        audio=parse_audio(title),
        size_mb=size_mb,
        audio_languages=detect_audio_languages(title),
        embedded_tmdb_id=ids.tmdb_id,
        embedded_tvdb_id=ids.tvdb_id,
        embedded_imdb_id=ids.imdb_id,
    )


def _split_season(text: str) -> tuple[str, int | None] | None:
    for pattern in _SEASON_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(1), int(match.group(2))
    return None


def _tidy_show_name(name: str) -> str:
    name = re.sub(r"[(\[]\s*[)\]]", " ", name)
    return _collapse(name).strip(" -")


def _strip_stray_years(name: str) -> str:
    """Remove leftover year tokens from a show name unless that empties it."""
    stripped = _tidy_show_name(_YEAR_PATTERN.sub(" ", name))
    return stripped if _is_plausible_name(stripped) else name


def _is_plausible_name(name: str) -> bool:
    """Reject names truncated by year stripping ("", "'s Show", "A")."""
    if len(name) < 2 or not re.search(r"[^\W_]", name):
        return False
    return not re.match(r"^'s\b", name, re.I) and not name.endswith("'")


def parse_tv_title(title: str) -> TvTitle:
    """Extract show name, season and year from a TV release title.

    The year is located first (bracketed year preferred, else a standalone
    19xx/20xx token) and removed before looking for a season marker
    (``S02E01``, ``Season 2``, trailing ``S02``). When removing the year
    would leave a truncated or empty show name, the digits are kept as part
    of the name and no year is reported.

    Args:
        title: The raw release title

    Returns:
        TvTitle with the show name and, when found, season and year
    """
    text = _sanitize(title)

    year: int | None = None
    year_match = _BRACKETED_YEAR_PATTERN.search(text) or _YEAR_PATTERN.search(text)
    without_year = text
    if year_match:
        year = int(year_match.group(1))
        without_year = _collapse(text[: year_match.start()] + " " + text[year_match.end() :])

    split = _split_season(without_year)
    if split is None and year_match and _split_season(text) is not None:
        # The year token was the show name itself ("1923 S01E01")
        split = _split_season(text)
        year = None
    if split is not None:
        name, season = split
    else:
        name, season = without_year, None

    show_name = _tidy_show_name(name)
    if not _is_plausible_name(show_name):
        # Nothing usable is left once the year is gone
        show_name, year = _tidy_show_name(text), None

    return TvTitle(show_name=_strip_stray_years(show_name), season=season, year=year)
