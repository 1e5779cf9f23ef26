"""Quality scoring: admissibility, numeric scores and upgrade decisions."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from curatarr.parser import parse_release

if TYPE_CHECKING:
    from curatarr.models import RawRelease
    from curatarr.policy import QualityPolicy

logger = logging.getLogger(__name__)

PREFERRED_CODEC_BONUS = 10.0
DISCOURAGED_CODEC_PENALTY = -15.0
SIZE_BONUS_CAP = 30.0
SIZE_BONUS_DIVISOR = 100.0


@dataclass(frozen=True)
class UpgradeDecision:
    """Outcome of comparing a new release against the held file."""

    is_upgrade: bool
    new_score: float
    existing_score: float
    score_delta: float
    size_delta_percent: float | None
    reason: str


def is_admissible(parsed: RawRelease, policy: QualityPolicy) -> bool:
    """Check a release against the static policy rules.

    A release is admissible only when its resolution has a rule with
    ``allowed=True`` and its codec is not discouraged for that resolution.
    """
    rule = policy.rule_for(parsed.resolution)
    if rule is None or not rule.allowed:
        return False
    return parsed.codec not in rule.discouraged_codecs


def size_bonus(size_mb: float | None) -> float:
    """Capped bonus for larger files: one point per 100 MB, at most 30."""
    if not size_mb:
        return 0.0
    return min(size_mb / SIZE_BONUS_DIVISOR, SIZE_BONUS_CAP)


def _audio_weight(audio: str, weights: dict[str, float]) -> float:
    label = audio.lower()
    for needle, weight in weights.items():
        if needle.lower() in label:
            return weight
    return 0.0


def score(
    parsed: RawRelease,
    policy: QualityPolicy,
    *,
    is_dubbed: bool = False,
    preferred_language: bool = False,
) -> float:
    """Compute the quality score of a parsed release.

    Args:
        parsed: Parsed release attributes
        policy: Quality policy providing weights and bonuses
        is_dubbed: Whether the audio differs from the original language
            (see :func:`is_dubbed`)
        preferred_language: Whether any detected audio language is preferred
            (see :func:`has_preferred_language`)

    Returns:
        The score rounded to 2 decimals
    """
    total = policy.resolution_weights.get(parsed.resolution.value, 0.0)
    total += policy.source_weights.get(parsed.source_tag, 0.0)
    total += policy.codec_weights.get(parsed.codec.value, 0.0)
    total += _audio_weight(parsed.audio, policy.audio_weights)

    rule = policy.rule_for(parsed.resolution)
    if rule is not None:
        if parsed.codec in rule.preferred_codecs:
            total += PREFERRED_CODEC_BONUS
        if parsed.codec in rule.discouraged_codecs:
            total += DISCOURAGED_CODEC_PENALTY

    if policy.size_bonus_enabled:
        total += size_bonus(parsed.size_mb)
    if preferred_language:
        total += policy.preferred_language_bonus
    if is_dubbed and parsed.audio_languages:
        total += policy.dubbed_penalty

    return round(total, 2)


def is_dubbed(audio_languages: Iterable[str], original_language: str | None) -> bool:
    """Decide whether a release's audio is a dub of the original.

    True only when the original language is known, at least one audio
    language was detected, and none of them matches the original language's
    two-letter prefix.
    """
    languages = [lang.lower()[:2] for lang in audio_languages]
    if not original_language or not languages:
        return False
    return original_language.lower()[:2] not in languages


def has_preferred_language(audio_languages: Iterable[str], policy: QualityPolicy) -> bool:
    """Check if any detected audio language is in the policy's preference set."""
    preferred = {lang.lower() for lang in policy.preferred_audio_languages}
    return any(lang.lower() in preferred for lang in audio_languages)


def estimate_existing_score(
    file_name: str | None,
    size_mb: float | None,
    policy: QualityPolicy,
) -> float:
    """Estimate the score of a file already held in the library.

    The file name is scored like any release, using the library's size. If
    the name alone yields nothing, a size-only estimate is used instead.
    """
    if file_name:
        parsed = parse_release(file_name)
        if score(parsed.model_copy(update={"size_mb": None}), policy) > 0:
            if size_mb is not None:
                parsed = parsed.model_copy(update={"size_mb": size_mb})
            return score(parsed, policy)
    return round(size_bonus(size_mb), 2)


def evaluate_upgrade(
    new_score: float,
    new_size_mb: float | None,
    existing_score: float,
    existing_size_mb: float | None,
    policy: QualityPolicy,
) -> UpgradeDecision:
    """Decide whether a release is worth replacing the held file with.

    Both the score delta must reach ``upgrade_threshold`` and the size must
    grow by at least ``min_size_increase_percent_for_upgrade``. When nothing
    is held (no existing size) the size criterion passes.

    Returns:
        UpgradeDecision with the computed deltas and a short reason
    """
    score_delta = round(new_score - existing_score, 2)

    size_delta_percent: float | None = None
    if existing_size_mb:
        if new_size_mb is not None:
            size_delta_percent = round((new_size_mb - existing_size_mb) / existing_size_mb * 100, 2)
        size_ok = (
            size_delta_percent is not None
            and size_delta_percent >= policy.min_size_increase_percent_for_upgrade
        )
    else:
        size_ok = True

    score_ok = score_delta >= policy.upgrade_threshold
    if score_ok and size_ok:
        reason = "upgrade"
    elif not score_ok:
        reason = f"score delta {score_delta} below threshold {policy.upgrade_threshold}"
    elif size_delta_percent is None:
        reason = "size of the new release is unknown"
    else:
        reason = (
            f"size increase {size_delta_percent}% below "
            f"{policy.min_size_increase_percent_for_upgrade}%"
        )

    logger.debug(
        "Upgrade check: new=%.2f existing=%.2f delta=%.2f size_delta=%s -> %s",
        new_score,
        existing_score,
        score_delta,
        size_delta_percent,
        reason,
    )
    return UpgradeDecision(
        is_upgrade=score_ok and size_ok,
        new_score=new_score,
        existing_score=existing_score,
        score_delta=score_delta,
        size_delta_percent=size_delta_percent,
        reason=reason,
    )
