"""
Centralized configuration loader for the trend-fusion idea pipeline.

Loads settings from YAML files and environment variables, providing
sensible defaults when configuration files are absent.

Provides:
    - FusionThresholds: Every tuning constant of the pipeline in one place,
      with environment variable overrides for the ones worth A/B testing
    - SignalSourceConfig: News source endpoints, queries and limits
    - Settings: Global application settings loaded from YAML + env vars
    - get_settings(): Singleton accessor for Settings
    - validate_env(): Startup validation of required environment variables
"""

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv

from src.exceptions import ConfigurationError

# ---------------------------------------------------------------------------
# Load .env file (no-op if file does not exist)
# ---------------------------------------------------------------------------
load_dotenv()

# ---------------------------------------------------------------------------
# Project root directory (parent of src/)
# ---------------------------------------------------------------------------
PROJECT_ROOT = Path(__file__).resolve().parent.parent

logger = logging.getLogger(__name__)


DEFAULT_LLM_MODEL = "claude-opus-4-5-20251101"
DEFAULT_FAST_MODEL = "claude-haiku-4-5-20251001"


def _apply_env_overrides(target: Any, env_overrides: Dict[str, Any]) -> None:
    """Apply ``ENV_VAR -> (attr, cast)`` overrides onto a dataclass instance."""
    for env_key, (attr_name, cast_fn) in env_overrides.items():
        env_val = os.environ.get(env_key)
        if env_val is not None:
            try:
                setattr(target, attr_name, cast_fn(env_val))
            except (ValueError, TypeError) as exc:
                raise ConfigurationError(
                    f"Invalid value for env var {env_key}='{env_val}': {exc}"
                ) from exc


def _known_kwargs(cls: Any, data: Dict[str, Any]) -> Dict[str, Any]:
    """Keep only keys that are dataclass fields of ``cls``."""
    names = {f.name for f in fields(cls)}
    unknown = set(data) - names
    if unknown:
        logger.warning("Ignoring unknown %s keys: %s", cls.__name__, sorted(unknown))
    return {k: v for k, v in data.items() if k in names}


# ===========================================================================
# FUSION THRESHOLDS
# ===========================================================================


@dataclass
class FusionThresholds:
    """
    Single source of truth for the pipeline's empirically chosen constants.

    The matcher, generator, validator and attempt loop all read their
    floors, caps and weights from here.  The most frequently tuned values
    can be overridden through environment variables without code changes.

    Usage::

        thresholds = FusionThresholds()
        if match.fit_score >= thresholds.strict_fit_threshold:
            ...
    """

    # Trend pool
    pool_top_k: int = 16
    pool_freshness_weight: float = 0.55
    pool_confidence_weight: float = 0.45
    curated_confidence: int = 88
    curated_evidence_count: int = 3
    dynamic_confidence: int = 72
    dynamic_evidence_count: int = 1
    signal_prompt_limit: int = 40

    # Company profile
    min_uniqueness: int = 60
    max_differentiators: int = 5

    # Concept matching
    strict_fit_threshold: int = 70
    max_strict_matches: int = 5
    concept_match_min: int = 3
    max_matched_concepts: int = 6
    fallback_fit_base: int = 62
    fallback_fit_per_overlap: int = 6
    fallback_fit_cap: int = 79
    overlap_weight: float = 12.0
    fallback_freshness_weight: float = 0.5
    fallback_confidence_weight: float = 0.2

    # Content gaps
    gap_priority_floor: int = 55
    max_gaps: int = 8
    gaps_in_prompt: int = 6

    # Idea generation
    ideas_per_attempt: int = 5
    idea_probability_floor: float = 0.4
    trend_idea_min: int = 3

    # Validation
    overall_floor: int = 70
    company_relevance_floor: int = 70
    trend_freshness_floor: int = 65
    product_integration_floor: int = 65
    developer_actionability_floor: int = 60

    # Attempt loop
    min_valid_ideas: int = 3
    max_attempts: int = 2

    def __post_init__(self) -> None:
        """Override thresholds from environment variables if set."""
        _apply_env_overrides(
            self,
            {
                "FUSION_STRICT_FIT_THRESHOLD": ("strict_fit_threshold", int),
                "FUSION_CONCEPT_MATCH_MIN": ("concept_match_min", int),
                "FUSION_POOL_TOP_K": ("pool_top_k", int),
                "FUSION_GAP_PRIORITY_FLOOR": ("gap_priority_floor", int),
                "FUSION_IDEA_PROBABILITY_FLOOR": ("idea_probability_floor", float),
                "FUSION_OVERALL_FLOOR": ("overall_floor", int),
                "FUSION_MAX_ATTEMPTS": ("max_attempts", int),
            },
        )
        if self.max_attempts < 1:
            raise ConfigurationError(
                f"max_attempts must be at least 1, got {self.max_attempts}"
            )


# ===========================================================================
# SIGNAL SOURCES
# ===========================================================================


@dataclass
class SignalSourceConfig:
    """Endpoints, queries and per-source limits for news signal fetching."""

    http_timeout_seconds: float = 20.0

    hackernews_url: str = "https://hn.algolia.com/api/v1/search"
    hackernews_query: str = (
        'AI OR LLM OR "machine learning" OR "artificial intelligence"'
    )
    hackernews_hits: int = 20
    hackernews_min_points: int = 50

    arxiv_categories: List[str] = field(
        default_factory=lambda: ["cs.AI", "cs.CL", "cs.LG"]
    )
    arxiv_max_results: int = 15

    rss_feeds: Dict[str, str] = field(default_factory=lambda: {
        "rundown": "https://rss.beehiiv.com/feeds/2R3C6Bt5wj.xml",
        "importai": "https://importai.substack.com/feed",
    })
    rss_items_per_feed: int = 10

    summary_max_chars: int = 300

    def __post_init__(self) -> None:
        """Override source limits from environment variables if set."""
        _apply_env_overrides(
            self,
            {
                "HN_MIN_POINTS": ("hackernews_min_points", int),
                "HN_QUERY": ("hackernews_query", str),
                "ARXIV_MAX_RESULTS": ("arxiv_max_results", int),
                "RSS_ITEMS_PER_FEED": ("rss_items_per_feed", int),
            },
        )

    @property
    def source_names(self) -> List[str]:
        """Names of every source, in the order they are recorded in the cache."""
        return ["hackernews", "arxiv", *self.rss_feeds.keys()]


# ===========================================================================
# GLOBAL SETTINGS
# ===========================================================================


@dataclass
class Settings:
    """
    Global application settings.

    Loaded from ``config/settings.yaml`` when available, falling back to
    sensible defaults. Environment variables override YAML values for
    secrets and deployment-specific configuration.
    """

    # LLM settings
    llm_model: str = DEFAULT_LLM_MODEL
    validation_model: str = DEFAULT_FAST_MODEL
    extraction_model: str = DEFAULT_FAST_MODEL
    llm_timeout_seconds: float = 120.0

    # Per-million-token prices (USD) used for cost accounting
    model_pricing: Dict[str, Dict[str, float]] = field(default_factory=lambda: {
        "claude-opus-4-5-20251101": {"input": 5.0, "output": 25.0},
        "claude-sonnet-4-5-20250929": {"input": 3.0, "output": 15.0},
        "claude-haiku-4-5-20251001": {"input": 1.0, "output": 5.0},
        "default": {"input": 3.0, "output": 15.0},
    })

    # Logging
    log_level: str = "INFO"
    log_dir: str = "logs"

    # Concept cache
    cache_key: str = "latest"
    cache_ttl_hours: float = 24.0

    # Nested configs
    thresholds: FusionThresholds = field(default_factory=FusionThresholds)
    sources: SignalSourceConfig = field(default_factory=SignalSourceConfig)

    # Node timeouts (seconds)
    node_timeouts: Dict[str, int] = field(default_factory=lambda: {
        "build_trend_pool": 180,
        "profile_company": 90,
        "match_concepts": 90,
        "analyze_gaps": 90,
        "generate_ideas": 120,
        "validate_ideas": 90,
    })

    @classmethod
    def from_yaml(cls, path: Optional[Path] = None) -> "Settings":
        """
        Load settings from a YAML file.

        If the file does not exist, returns an instance with all defaults.
        Environment variables override YAML values for specific keys.

        Args:
            path: Path to the YAML file. Defaults to
                ``<PROJECT_ROOT>/config/settings.yaml``.

        Returns:
            Populated Settings instance.

        Raises:
            ConfigurationError: If the YAML file exists but cannot be parsed.
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
            raise ConfigurationError(
                f"Settings YAML at {path} must be a mapping, got {type(data).__name__}"
            )

        # -----------------------------------------------------------------
        # Nested sections
        # -----------------------------------------------------------------
        thresholds = FusionThresholds(
            **_known_kwargs(FusionThresholds, data.get("thresholds") or {})
        )
        sources = SignalSourceConfig(
            **_known_kwargs(SignalSourceConfig, data.get("sources") or {})
        )

        pricing = cls.__dataclass_fields__["model_pricing"].default_factory()  # type: ignore[misc]
        pricing.update(data.get("model_pricing") or {})

        # -----------------------------------------------------------------
        # Build node_timeouts (YAML + env var overrides)
        # -----------------------------------------------------------------
        node_timeouts = cls.__dataclass_fields__["node_timeouts"].default_factory()  # type: ignore[misc]
        node_timeouts.update(data.get("node_timeouts") or {})

        for timeout_key in list(node_timeouts):
            env_key = f"NODE_TIMEOUT_{timeout_key.upper()}"
            env_val = os.environ.get(env_key)
            if env_val is not None:
                try:
                    node_timeouts[timeout_key] = int(env_val)
                except (ValueError, TypeError):
                    logger.warning(
                        "Invalid value for %s='%s', using default", env_key, env_val
                    )

        cache = data.get("cache") or {}

        return cls(
            llm_model=os.environ.get("LLM_MODEL", data.get("llm_model", DEFAULT_LLM_MODEL)),
            validation_model=data.get("validation_model", DEFAULT_FAST_MODEL),
            extraction_model=data.get("extraction_model", DEFAULT_FAST_MODEL),
            llm_timeout_seconds=float(data.get("llm_timeout_seconds", 120.0)),
            model_pricing=pricing,
            log_level=os.environ.get("LOG_LEVEL", data.get("log_level", "INFO")),
            log_dir=data.get("log_dir", "logs"),
            cache_key=cache.get("key", "latest"),
            cache_ttl_hours=float(cache.get("ttl_hours", 24.0)),
            thresholds=thresholds,
            sources=sources,
            node_timeouts=node_timeouts,
        )


# ===========================================================================
# SINGLETON SETTINGS ACCESSOR
# ===========================================================================

_settings_instance: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get the global Settings singleton.

    On first call, loads from ``config/settings.yaml`` (or defaults).
    Subsequent calls return the cached instance.
    """
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings.from_yaml()
    return _settings_instance


def reset_settings() -> None:
    """Reset the cached Settings singleton (tests, config reloads)."""
    global _settings_instance
    _settings_instance = None


# ===========================================================================
# ENVIRONMENT VARIABLE VALIDATION
# ===========================================================================

# Required environment variables for the system to function
REQUIRED_ENV_VARS: List[str] = [
    "ANTHROPIC_API_KEY",
]

# Optional sinks: concept cache / run records, chat notifications
OPTIONAL_ENV_VARS: List[str] = [
    "SUPABASE_URL",
    "SUPABASE_SERVICE_KEY",
    "TELEGRAM_BOT_TOKEN",
    "TELEGRAM_CHAT_ID",
]


def validate_env(strict: bool = True) -> Dict[str, bool]:
    """
    Validate that required environment variables are set.

    Args:
        strict: If ``True``, raise ``ConfigurationError`` when any required
            variable is missing. If ``False``, return the status dict
            without raising.

    Returns:
        Dict mapping variable name to presence status (``True`` if set).

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


__all__ = [
    "PROJECT_ROOT",
    "DEFAULT_LLM_MODEL",
    "DEFAULT_FAST_MODEL",
    "FusionThresholds",
    "SignalSourceConfig",
    "Settings",
    "get_settings",
    "reset_settings",
    "REQUIRED_ENV_VARS",
    "OPTIONAL_ENV_VARS",
    "validate_env",
]
