"""
Configuration loader for trendlens.

Loads settings from ``config/settings.yaml`` and environment variables,
providing sensible defaults when the file is absent.  Settings are read once
at startup and then passed explicitly into the components that need them;
nothing in the core reads configuration from module-level state.

Provides:
    - LimitsConfig: keyword / result-count / default retention limits
    - SearchConfig: LLM web-search model, endpoint and timeouts
    - CacheConfig: backend selection and Redis connection settings
    - Settings: the assembled configuration, with ``from_yaml()``
    - validate_env(): startup validation of required environment variables
"""

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import yaml
from dotenv import load_dotenv

from trendlens.exceptions import ConfigurationError
from trendlens.strategy import BatchThresholds

# ---------------------------------------------------------------------------
# Load .env file (no-op if file does not exist)
# ---------------------------------------------------------------------------
load_dotenv()

PROJECT_ROOT = Path(__file__).resolve().parent.parent

logger = logging.getLogger(__name__)


# ===========================================================================
# SECTIONS
# ===========================================================================


@dataclass
class LimitsConfig:
    """Request limits shared with the HTTP layer."""

    max_keywords: int = 10
    min_results_per_keyword: int = 1
    max_results_per_keyword: int = 10
    default_results_per_keyword: int = 3
    default_cache_duration_hours: int = 2


@dataclass
class SearchConfig:
    """LLM web-search endpoint settings."""

    model: str = "gpt-4o-mini"
    base_url: str = "https://api.openai.com/v1"
    keyword_timeout_seconds: float = 25.0
    batch_timeout_seconds: float = 45.0
    search_url_base: str = "https://www.google.com/search?q="


@dataclass
class CacheConfig:
    """Cache backend selection.

    ``backend`` is ``"memory"`` or ``"redis"``.
    """

    backend: str = "memory"
    redis_url: str = "redis://localhost:6379/0"
    key_prefix: str = "trending:"
    sweep_interval_seconds: int = 600


# ===========================================================================
# SETTINGS
# ===========================================================================


# env var -> (section, attribute, cast)
ENV_OVERRIDES: Dict[str, tuple] = {
    "MAX_KEYWORDS": ("limits", "max_keywords", int),
    "CACHE_DURATION_HOURS": ("limits", "default_cache_duration_hours", int),
    "OPENAI_MODEL": ("search", "model", str),
    "OPENAI_BASE_URL": ("search", "base_url", str),
    "KEYWORD_TIMEOUT_SECONDS": ("search", "keyword_timeout_seconds", float),
    "BATCH_TIMEOUT_SECONDS": ("search", "batch_timeout_seconds", float),
    "CACHE_BACKEND": ("cache", "backend", str),
    "REDIS_URL": ("cache", "redis_url", str),
    "LOG_LEVEL": (None, "log_level", str),
    "LOG_DIR": (None, "log_dir", str),
}


@dataclass
class Settings:
    """
    Application settings.

    Loaded from ``config/settings.yaml`` when available, falling back to
    defaults.  Environment variables override YAML values.
    """

    limits: LimitsConfig = field(default_factory=LimitsConfig)
    search: SearchConfig = field(default_factory=SearchConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    batch: BatchThresholds = field(default_factory=BatchThresholds)

    log_level: str = "INFO"
    log_dir: Optional[str] = None

    @property
    def default_ttl_seconds(self) -> int:
        return self.limits.default_cache_duration_hours * 3600

    def validate(self) -> "Settings":
        """
        Check value ranges.

        Returns:
            ``self`` so calls can be chained.

        Raises:
            ConfigurationError: On any out-of-range value.
        """
        limits = self.limits
        if not 1 <= limits.max_keywords <= 50:
            raise ConfigurationError("max_keywords must be between 1 and 50")
        if limits.min_results_per_keyword < 1:
            raise ConfigurationError("min_results_per_keyword must be at least 1")
        if limits.min_results_per_keyword > limits.max_results_per_keyword:
            raise ConfigurationError(
                "min_results_per_keyword cannot exceed max_results_per_keyword"
            )
        if not (
            limits.min_results_per_keyword
            <= limits.default_results_per_keyword
            <= limits.max_results_per_keyword
        ):
            raise ConfigurationError(
                "default_results_per_keyword must lie within the result bounds"
            )
        if limits.default_cache_duration_hours < 1:
            raise ConfigurationError("default_cache_duration_hours must be at least 1")
        if self.search.keyword_timeout_seconds <= 0 or self.search.batch_timeout_seconds <= 0:
            raise ConfigurationError("search timeouts must be positive")
        if self.cache.backend not in ("memory", "redis"):
            raise ConfigurationError(
                f"Unknown cache backend '{self.cache.backend}'. Valid: memory, redis"
            )
        return self

    @classmethod
    def from_yaml(cls, path: Optional[Path] = None) -> "Settings":
        """
        Load settings from a YAML file.

        If the file does not exist, returns an instance with all defaults
        (plus environment overrides).

        Args:
            path: Path to the YAML file. Defaults to
                ``<PROJECT_ROOT>/config/settings.yaml``.

        Returns:
            Populated, validated Settings instance.

        Raises:
            ConfigurationError: If the YAML cannot be parsed or a value is
                invalid.
        """
        path = path or PROJECT_ROOT / "config" / "settings.yaml"

        data: Dict[str, Any] = {}
        if path.exists():
            try:
                with open(path, "r", encoding="utf-8") as fh:
                    data = yaml.safe_load(fh) or {}
            except yaml.YAMLError as exc:
                raise ConfigurationError(
                    f"Failed to parse settings YAML at {path}: {exc}"
                ) from exc
            if not isinstance(data, dict):
                raise ConfigurationError(f"Settings YAML at {path} must be a mapping")

        settings = cls(
            limits=_build_section(LimitsConfig, data.get("limits")),
            search=_build_section(SearchConfig, data.get("search")),
            cache=_build_section(CacheConfig, data.get("cache")),
            batch=_build_section(BatchThresholds, data.get("batch")),
            log_level=data.get("log_level", "INFO"),
            log_dir=data.get("log_dir"),
        )
        settings = _apply_env_overrides(settings)
        return settings.validate()


def _build_section(section_cls: Callable[..., Any], raw: Optional[Dict[str, Any]]) -> Any:
    """Instantiate a section dataclass from a YAML mapping, ignoring unknown keys."""
    if not raw:
        return section_cls()
    known = {f.name for f in fields(section_cls)}
    unknown = set(raw) - known
    if unknown:
        logger.warning("Ignoring unknown %s keys: %s", section_cls.__name__, sorted(unknown))
    return section_cls(**{k: v for k, v in raw.items() if k in known})


def _apply_env_overrides(settings: Settings) -> Settings:
    for env_key, (section, attr_name, cast_fn) in ENV_OVERRIDES.items():
        env_val = os.environ.get(env_key)
        if env_val is None:
            continue
        try:
            value = cast_fn(env_val)
        except (ValueError, TypeError) as exc:
            raise ConfigurationError(
                f"Invalid value for env var {env_key}='{env_val}': {exc}"
            ) from exc
        target = getattr(settings, section) if section else settings
        setattr(target, attr_name, value)
    return settings


# ===========================================================================
# ENVIRONMENT VARIABLE VALIDATION
# ===========================================================================

REQUIRED_ENV_VARS: List[str] = [
    "OPENAI_API_KEY",
]

OPTIONAL_ENV_VARS: List[str] = [
    "OPENAI_MODEL",
    "REDIS_URL",
    "CACHE_BACKEND",
]


def validate_env(strict: bool = True) -> Dict[str, bool]:
    """
    Validate that required environment variables are set.

    Args:
        strict: If ``True``, raise ``ConfigurationError`` when any required
            variable is missing.

    Returns:
        Dict mapping variable name to presence status.

    Raises:
        ConfigurationError: If ``strict=True`` and required vars are missing.
    """
    status: Dict[str, bool] = {}
    missing: List[str] = []

    for var in REQUIRED_ENV_VARS:
        present = bool(os.environ.get(var))
        status[var] = present
        if not present:
            missing.append(var)

    for var in OPTIONAL_ENV_VARS:
        status[var] = bool(os.environ.get(var))

    if strict and missing:
        raise ConfigurationError(
            f"Missing required environment variables: {missing}. "
            f"Copy .env.example to .env and fill in the values."
        )

    return status
