"""Title similarity and match validation helpers used by the resolver."""

from __future__ import annotations

import re

from curatarr.parser import normalize_title

# Tunable heuristics; see DESIGN.md before changing them
SIMILARITY_FLOOR = 0.5
CONTAINMENT_BASE = 0.7
CONTAINMENT_SPAN = 0.2
ALL_WORDS_FLOOR = 0.6
YEAR_TOLERANCE = 3
KEY_WORD_MIN_LENGTH = 3

_CATEGORY_PATTERN = re.compile(r"(?:^|Category:)\s*([A-Za-z]+)\s*-\s*(?:Movies|TV)", re.I | re.M)

_LANGUAGE_NAMES = {
    "hindi": "hi",
    "telugu": "te",
    "tamil": "ta",
    "kannada": "kn",
    "malayalam": "ml",
    "bengali": "bn",
    "marathi": "mr",
    "punjabi": "pa",
    "english": "en",
}

# ISO 639-2 codes as used by TVDB
_THREE_LETTER_CODES = {
    "hin": "hi",
    "tel": "te",
    "tam": "ta",
    "kan": "kn",
    "mal": "ml",
    "ben": "bn",
    "mar": "mr",
    "pan": "pa",
    "eng": "en",
}


def title_similarity(a: str, b: str) -> float:
    """Score how similar two titles are, from 0.0 to 1.0.

    Exact (normalized) matches score 1.0. When one title contains the other
    the score is ``CONTAINMENT_BASE`` plus up to ``CONTAINMENT_SPAN`` scaled by
    the length ratio. Otherwise it is the word-level Jaccard index, raised to
    ``ALL_WORDS_FLOOR`` when every word of the shorter title appears in the
    longer one.
    """
    left = normalize_title(a)
    right = normalize_title(b)
    if not left or not right:
        return 0.0
    if left == right:
        return 1.0

    shorter, longer = sorted((left, right), key=len)
    if shorter in longer:
        return CONTAINMENT_BASE + (len(shorter) / len(longer)) * CONTAINMENT_SPAN

    words_short = set(shorter.split())
    words_long = set(longer.split())
    union = words_short | words_long
    jaccard = len(words_short & words_long) / len(union) if union else 0.0
    if words_short <= words_long:
        return max(jaccard, ALL_WORDS_FLOOR)
    return jaccard


def key_words(name: str) -> list[str]:
    """Words long enough to carry meaning for match validation."""
    return [w for w in normalize_title(name).split() if len(w) >= KEY_WORD_MIN_LENGTH]


def validate_key_words(parsed_name: str, matched_title: str, min_word_match: int = 1) -> bool:
    """Check that the significant words of a parsed name appear in a match.

    Names with no significant words always pass. Names with one or two
    significant words need all of them present; longer names need at least
    ``min_word_match``.

    Args:
        parsed_name: Name parsed from the release title
        matched_title: Title of the catalog candidate
        min_word_match: Minimum words that must appear for longer names

    Returns:
        True if the candidate passes
    """
    words = key_words(parsed_name)
    if not words:
        return True
    haystack = normalize_title(matched_title)
    present = sum(1 for word in words if word in haystack)
    if len(words) <= 2:
        return present == len(words)
    return present >= min_word_match


def validate_year(
    parsed_year: int | None, matched_year: int | None, tolerance: int = YEAR_TOLERANCE
) -> bool:
    """Check two years agree within a tolerance; unknown years always pass."""
    if parsed_year is None or matched_year is None:
        return True
    return abs(parsed_year - matched_year) <= tolerance


def language_from_category(text: str | None) -> str | None:
    """Read a language from a feed category such as ``Tamil-Movies``.

    Accepts either the bare category or a feed description containing a
    ``Category: Tamil-Movies`` line.
    """
    if not text:
        return None
    match = _CATEGORY_PATTERN.search(text)
    if not match:
        return None
    return _LANGUAGE_NAMES.get(match.group(1).strip().lower())


def language_code(value: str | None) -> str | None:
    """Normalize a language name or ISO 639-1/639-2 code to a two-letter code.

    Unknown names fall back to their first two letters, lowercased.
    """
    if not value:
        return None
    text = value.strip().lower()
    if not text:
        return None
    if text in _LANGUAGE_NAMES:
        return _LANGUAGE_NAMES[text]
    if text in _THREE_LETTER_CODES:
        return _THREE_LETTER_CODES[text]
    return text[:2]
