"""Quality policy: which releases are acceptable and how they are weighted."""

from __future__ import annotations

from dataclasses import dataclass, field

from curatarr.models import Codec, Resolution


@dataclass(frozen=True)
class ResolutionRule:
    """Admissibility and codec preferences for one resolution."""

    allowed: bool = True
    preferred_codecs: frozenset[Codec] = frozenset()
    discouraged_codecs: frozenset[Codec] = frozenset()


def _default_resolutions() -> dict[Resolution, ResolutionRule]:
    return {
        Resolution.UHD: ResolutionRule(preferred_codecs=frozenset({Codec.X265})),
        Resolution.FHD: ResolutionRule(preferred_codecs=frozenset({Codec.X265})),
        Resolution.HD: ResolutionRule(preferred_codecs=frozenset({Codec.X264})),
        Resolution.SD: ResolutionRule(allowed=False),
    }


def _default_resolution_weights() -> dict[str, float]:
    return {"2160p": 40.0, "1080p": 30.0, "720p": 15.0, "480p": 5.0}


def _default_source_weights() -> dict[str, float]:
    return {
        "Bluray": 25.0,
        "WEB-DL": 20.0,
        "AMZN": 18.0,
        "NF": 18.0,
        "DSNP": 16.0,
        "WEBRip": 15.0,
        "ZEE5": 14.0,
        "JC": 14.0,
        "HS": 14.0,
        "SS": 12.0,
        "DVD": 8.0,
    }


def _default_codec_weights() -> dict[str, float]:
    return {"x265": 10.0, "x264": 8.0}


def _default_audio_weights() -> dict[str, float]:
    # Order matters: the first key found in the audio label wins
    return {
        "Atmos": 15.0,
        "TrueHD": 14.0,
        "DDP 7.1": 12.0,
        "DDP 5.1": 10.0,
        "DDP 2.0": 6.0,
        "DDP": 7.0,
        "DD 5.1": 8.0,
        "DD 2.0": 4.0,
        "DD": 5.0,
        "AAC 5.1": 6.0,
        "AAC": 3.0,
        "2.0": 2.0,
    }


@dataclass(frozen=True)
class QualityPolicy:
    """Scoring weights and thresholds, loaded once per run.

    Resolutions without a rule are never admissible. Weight tables are keyed
    by the parser's labels; audio weights match by case-insensitive
    substring in table order.
    """

    resolutions: dict[Resolution, ResolutionRule] = field(default_factory=_default_resolutions)
    resolution_weights: dict[str, float] = field(default_factory=_default_resolution_weights)
    source_weights: dict[str, float] = field(default_factory=_default_source_weights)
    codec_weights: dict[str, float] = field(default_factory=_default_codec_weights)
    audio_weights: dict[str, float] = field(default_factory=_default_audio_weights)
    size_bonus_enabled: bool = True
    preferred_audio_languages: frozenset[str] = frozenset()
    preferred_language_bonus: float = 10.0
    dubbed_penalty: float = -20.0
    upgrade_threshold: float = 10.0
    min_size_increase_percent_for_upgrade: float = 10.0

    def rule_for(self, resolution: Resolution) -> ResolutionRule | None:
        """Get the rule for a resolution, if the policy defines one."""
        return self.resolutions.get(resolution)
