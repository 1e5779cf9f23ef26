"""Configuration loading for the curatarr CLI."""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Self

from curatarr.models import Codec, Resolution
from curatarr.policy import QualityPolicy, ResolutionRule


class ConfigurationError(Exception):
    """Raised when configuration is invalid or missing."""


@dataclass
class RadarrConfig:
    """Radarr connection configuration."""

    url: str
    api_key: str


@dataclass
class SonarrConfig:
    """Sonarr connection configuration."""

    url: str
    api_key: str


@dataclass
class TvdbConfig:
    """TheTVDB credentials (primary catalog)."""

    api_key: str
    pin: str | None = None


@dataclass
class TmdbConfig:
    """TMDB credentials (secondary catalog)."""

    api_key: str


@dataclass
class BraveConfig:
    """Brave Search credentials (web-search fallback)."""

    api_key: str


def _default_config_dir() -> Path:
    return Path.home() / ".config" / "curatarr"


def _default_state_path() -> Path:
    """Get the default state file path."""
    return _default_config_dir() / "state.json"


@dataclass
class StateConfig:
    """Configuration for state persistence."""

    path: Path = field(default_factory=_default_state_path)


@dataclass
class SyncConfig:
    """Pacing and progress settings for sync runs.

    ``request_delay`` is the minimum gap between catalog/library calls
    (0.35s is roughly 3 requests per second).
    """

    request_delay: float = 0.35
    web_search_delay: float = 1.0
    chunk_size: int = 50
    max_rate_limit_wait: float = 60.0


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str | None = None


DEFAULT_TIMEOUT = 30.0
ENV_PREFIX = "CURATARR_"

_POLICY_NUMBERS = (
    "preferred_language_bonus",
    "dubbed_penalty",
    "upgrade_threshold",
    "min_size_increase_percent_for_upgrade",
)


# --- Helper functions for parsing config sections ---


def _env(name: str) -> str | None:
    return os.environ.get(f"{ENV_PREFIX}{name}") or None


def _as_float(value: Any, key: str) -> float:
    """Coerce a config value to float.

    Raises:
        ConfigurationError: If the value is not numeric
    """
    if isinstance(value, bool):
        raise ConfigurationError(f"Invalid value for {key}: expected a number, got {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(
            f"Invalid value for {key}: expected a number, got {value!r}"
        ) from e


def _as_int(value: Any, key: str) -> int:
    number = _as_float(value, key)
    if not number.is_integer():
        raise ConfigurationError(f"Invalid value for {key}: expected an integer, got {value!r}")
    return int(number)


def _as_bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("true", "1", "yes", "false", "0", "no"):
        return value.lower() in ("true", "1", "yes")
    raise ConfigurationError(f"Invalid value for {key}: expected true/false, got {value!r}")


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    section = data.get(name, {})
    if not isinstance(section, dict):
        raise ConfigurationError(f"Invalid config file: [{name}] must be a table")
    return section


def _parse_arr_config_from_dict(
    data: dict[str, Any],
    section: str,
) -> tuple[str, str] | None:
    """Parse URL and API key from a config dict section.

    Args:
        data: The full config dictionary
        section: The section name (e.g., "radarr", "sonarr")

    Returns:
        Tuple of (url, api_key) if both present, None otherwise
    """
    section_data = _section(data, section)
    url = section_data.get("url")
    api_key = section_data.get("api_key")
    if url and api_key:
        return (url, api_key)
    return None


def _parse_arr_config_from_env(name: str) -> tuple[str, str] | None:
    """Parse URL and API key from ``CURATARR_<NAME>_URL`` / ``_API_KEY``."""
    url = _env(f"{name}_URL")
    api_key = _env(f"{name}_API_KEY")
    if url and api_key:
        return (url, api_key)
    return None


def _parse_state_from_dict(data: dict[str, Any]) -> StateConfig:
    state = _section(data, "state")
    if "path" not in state:
        return StateConfig()
    return StateConfig(path=Path(state["path"]).expanduser())


def _parse_state_from_env(base: StateConfig) -> StateConfig:
    state_path = _env("STATE_PATH")
    if not state_path:
        return base
    return StateConfig(path=Path(state_path).expanduser())


def _parse_sync_from_dict(data: dict[str, Any]) -> SyncConfig:
    """Parse SyncConfig from a config dictionary.

    Raises:
        ConfigurationError: If a value is not numeric or not positive
    """
    sync = _section(data, "sync")
    defaults = SyncConfig()
    config = SyncConfig(
        request_delay=_as_float(
            sync.get("request_delay", defaults.request_delay), "sync.request_delay"
        ),
        web_search_delay=_as_float(
            sync.get("web_search_delay", defaults.web_search_delay), "sync.web_search_delay"
        ),
        chunk_size=_as_int(sync.get("chunk_size", defaults.chunk_size), "sync.chunk_size"),
        max_rate_limit_wait=_as_float(
            sync.get("max_rate_limit_wait", defaults.max_rate_limit_wait),
            "sync.max_rate_limit_wait",
        ),
    )
    _validate_sync(config)
    return config


def _parse_sync_from_env(base: SyncConfig) -> SyncConfig:
    request_delay = _env("REQUEST_DELAY")
    chunk_size = _env("CHUNK_SIZE")
    if not request_delay and not chunk_size:
        return base
    config = replace(
        base,
        request_delay=(
            _as_float(request_delay, f"{ENV_PREFIX}REQUEST_DELAY")
            if request_delay
            else base.request_delay
        ),
        chunk_size=(
            _as_int(chunk_size, f"{ENV_PREFIX}CHUNK_SIZE") if chunk_size else base.chunk_size
        ),
    )
    _validate_sync(config)
    return config


def _validate_sync(config: SyncConfig) -> None:
    if config.request_delay < 0 or config.web_search_delay < 0:
        raise ConfigurationError("sync delays must not be negative")
    if config.chunk_size < 1:
        raise ConfigurationError("sync.chunk_size must be at least 1")
    if config.max_rate_limit_wait < 0:
        raise ConfigurationError("sync.max_rate_limit_wait must not be negative")


def _parse_codecs(value: Any, key: str) -> frozenset[Codec]:
    if not isinstance(value, list):
        raise ConfigurationError(f"Invalid value for {key}: expected a list of codecs")
    try:
        return frozenset(Codec(str(name).lower()) for name in value)
    except ValueError as e:
        valid = ", ".join(c.value for c in Codec if c is not Codec.UNKNOWN)
        raise ConfigurationError(f"Invalid codec in {key}. Valid codecs: {valid}") from e


def _parse_resolution_rules(
    data: dict[str, Any], base: dict[Resolution, ResolutionRule]
) -> dict[Resolution, ResolutionRule]:
    rules = dict(base)
    for name, rule_data in data.items():
        key = f"quality.resolutions.{name}"
        try:
            resolution = Resolution(str(name).lower())
        except ValueError as e:
            valid = ", ".join(r.value for r in Resolution if r is not Resolution.UNKNOWN)
            raise ConfigurationError(
                f"Unknown resolution {name!r} in [quality.resolutions]. Valid: {valid}"
            ) from e
        if not isinstance(rule_data, dict):
            raise ConfigurationError(f"Invalid config file: [{key}] must be a table")
        default = base.get(resolution, ResolutionRule())
        rules[resolution] = ResolutionRule(
            allowed=_as_bool(rule_data.get("allowed", default.allowed), f"{key}.allowed"),
            preferred_codecs=(
                _parse_codecs(rule_data["preferred_codecs"], f"{key}.preferred_codecs")
                if "preferred_codecs" in rule_data
                else default.preferred_codecs
            ),
            discouraged_codecs=(
                _parse_codecs(rule_data["discouraged_codecs"], f"{key}.discouraged_codecs")
                if "discouraged_codecs" in rule_data
                else default.discouraged_codecs
            ),
        )
    return rules


def _parse_weights(data: Any, key: str) -> dict[str, float]:
    if not isinstance(data, dict):
        raise ConfigurationError(f"Invalid config file: [{key}] must be a table")
    return {str(name): _as_float(value, f"{key}.{name}") for name, value in data.items()}


def parse_quality_policy(data: dict[str, Any]) -> QualityPolicy:
    """Build a QualityPolicy from a ``[quality]`` table.

    Every key is optional. Resolution rules and the resolution/source/codec
    weight tables are merged over the defaults; an ``audio_weights`` table
    replaces the default one because its order decides which label wins.

    Raises:
        ConfigurationError: On unknown resolution or codec names or
            non-numeric values
    """
    defaults = QualityPolicy()
    changes: dict[str, Any] = {}

    if "resolutions" in data:
        resolutions = data["resolutions"]
        if not isinstance(resolutions, dict):
            raise ConfigurationError("Invalid config file: [quality.resolutions] must be a table")
        changes["resolutions"] = _parse_resolution_rules(resolutions, defaults.resolutions)

    for table in ("resolution_weights", "source_weights", "codec_weights"):
        if table in data:
            parsed = _parse_weights(data[table], f"quality.{table}")
            changes[table] = {**getattr(defaults, table), **parsed}
    if "audio_weights" in data:
        changes["audio_weights"] = _parse_weights(data["audio_weights"], "quality.audio_weights")

    if "size_bonus_enabled" in data:
        changes["size_bonus_enabled"] = _as_bool(
            data["size_bonus_enabled"], "quality.size_bonus_enabled"
        )
    if "preferred_audio_languages" in data:
        languages = data["preferred_audio_languages"]
        if not isinstance(languages, list):
            raise ConfigurationError(
                "Invalid value for quality.preferred_audio_languages: expected a list"
            )
        changes["preferred_audio_languages"] = frozenset(str(lang).lower() for lang in languages)

    for name in _POLICY_NUMBERS:
        if name in data:
            changes[name] = _as_float(data[name], f"quality.{name}")

    unknown = set(data) - {f.name for f in fields(QualityPolicy)}
    if unknown:
        raise ConfigurationError(f"Unknown key(s) in [quality]: {', '.join(sorted(unknown))}")

    return replace(defaults, **changes)


@dataclass
class Config:
    """Application configuration."""

    radarr: RadarrConfig | None = None
    sonarr: SonarrConfig | None = None
    tvdb: TvdbConfig | None = None
    tmdb: TmdbConfig | None = None
    brave: BraveConfig | None = None
    timeout: float = DEFAULT_TIMEOUT
    state: StateConfig = field(default_factory=StateConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    quality: QualityPolicy = field(default_factory=QualityPolicy)

    @classmethod
    def load(cls) -> Self:
        """Load configuration from environment and config file.

        Configuration precedence (highest to lowest):
        1. Environment variables
        2. Config file (~/.config/curatarr/config.toml)

        Environment variables:
        - CURATARR_RADARR_URL, CURATARR_RADARR_API_KEY
        - CURATARR_SONARR_URL, CURATARR_SONARR_API_KEY
        - CURATARR_TVDB_API_KEY, CURATARR_TVDB_PIN
        - CURATARR_TMDB_API_KEY
        - CURATARR_BRAVE_API_KEY
        - CURATARR_TIMEOUT (request timeout in seconds)
        - CURATARR_STATE_PATH
        - CURATARR_REQUEST_DELAY, CURATARR_CHUNK_SIZE
        - CURATARR_LOG_LEVEL

        Returns:
            Config instance with loaded values

        Raises:
            ConfigurationError: If config file exists but is invalid
        """
        config = cls()

        config_file = _default_config_dir() / "config.toml"
        if config_file.exists():
            config = cls._load_from_file(config_file)

        return cls._load_from_env(config)

    @classmethod
    def _load_from_file(cls, path: Path) -> Self:
        """Load configuration from TOML file.

        Raises:
            ConfigurationError: If file cannot be parsed or holds invalid values
        """
        data = _load_toml_file(path)

        radarr = _parse_arr_config_from_dict(data, "radarr")
        sonarr = _parse_arr_config_from_dict(data, "sonarr")

        tvdb_data = _section(data, "tvdb")
        tmdb_data = _section(data, "tmdb")
        brave_data = _section(data, "brave")
        logging_data = _section(data, "logging")

        return cls(
            radarr=RadarrConfig(*radarr) if radarr else None,
            sonarr=SonarrConfig(*sonarr) if sonarr else None,
            tvdb=(
                TvdbConfig(api_key=tvdb_data["api_key"], pin=tvdb_data.get("pin"))
                if tvdb_data.get("api_key")
                else None
            ),
            tmdb=TmdbConfig(api_key=tmdb_data["api_key"]) if tmdb_data.get("api_key") else None,
            brave=(
                BraveConfig(api_key=brave_data["api_key"]) if brave_data.get("api_key") else None
            ),
            timeout=_as_float(data.get("timeout", DEFAULT_TIMEOUT), "timeout"),
            state=_parse_state_from_dict(data),
            sync=_parse_sync_from_dict(data),
            logging=LoggingConfig(level=logging_data.get("level")),
            quality=parse_quality_policy(_section(data, "quality")),
        )

    @classmethod
    def _load_from_env(cls, base: Self) -> Self:
        """Override configuration with environment variables."""
        radarr_env = _parse_arr_config_from_env("RADARR")
        sonarr_env = _parse_arr_config_from_env("SONARR")

        tvdb = base.tvdb
        tvdb_key = _env("TVDB_API_KEY")
        if tvdb_key:
            pin = _env("TVDB_PIN") or (tvdb.pin if tvdb else None)
            tvdb = TvdbConfig(api_key=tvdb_key, pin=pin)

        tmdb_key = _env("TMDB_API_KEY")
        brave_key = _env("BRAVE_API_KEY")

        timeout_str = _env("TIMEOUT")
        timeout = _as_float(timeout_str, f"{ENV_PREFIX}TIMEOUT") if timeout_str else base.timeout

        log_level = _env("LOG_LEVEL")

        return cls(
            radarr=RadarrConfig(*radarr_env) if radarr_env else base.radarr,
            sonarr=SonarrConfig(*sonarr_env) if sonarr_env else base.sonarr,
            tvdb=tvdb,
            tmdb=TmdbConfig(api_key=tmdb_key) if tmdb_key else base.tmdb,
            brave=BraveConfig(api_key=brave_key) if brave_key else base.brave,
            timeout=timeout,
            state=_parse_state_from_env(base.state),
            sync=_parse_sync_from_env(base.sync),
            logging=LoggingConfig(level=log_level) if log_level else base.logging,
            quality=base.quality,
        )

    def require_radarr(self) -> RadarrConfig:
        """Get Radarr config, raising if not configured.

        Raises:
            ConfigurationError: If Radarr is not configured
        """
        if self.radarr is None:
            raise ConfigurationError(
                "Radarr is not configured. Set CURATARR_RADARR_URL and "
                "CURATARR_RADARR_API_KEY environment variables, or create "
                "~/.config/curatarr/config.toml"
            )
        return self.radarr

    def require_sonarr(self) -> SonarrConfig:
        """Get Sonarr config, raising if not configured.

        Raises:
            ConfigurationError: If Sonarr is not configured
        """
        if self.sonarr is None:
            raise ConfigurationError(
                "Sonarr is not configured. Set CURATARR_SONARR_URL and "
                "CURATARR_SONARR_API_KEY environment variables, or create "
                "~/.config/curatarr/config.toml"
            )
        return self.sonarr

    def require_catalog(self) -> None:
        """Check at least one metadata catalog is configured.

        Raises:
            ConfigurationError: If neither TVDB nor TMDB has an API key
        """
        if self.tvdb is None and self.tmdb is None:
            raise ConfigurationError(
                "No metadata catalog is configured. Set CURATARR_TVDB_API_KEY "
                "and/or CURATARR_TMDB_API_KEY environment variables, or create "
                "~/.config/curatarr/config.toml"
            )


def _load_toml_file(path: Path) -> dict[str, Any]:
    """Load and parse a TOML file.

    Raises:
        ConfigurationError: If file cannot be parsed
    """
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid config file: {e}") from e
