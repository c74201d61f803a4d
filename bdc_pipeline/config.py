"""
Configuration management for the extraction pipeline.

Supports:
- Loading config from YAML (configs/base.yaml ships the defaults)
- Merging overrides from a second YAML file or a dict
- Config validation with Pydantic
- Config hashing for reproducibility
"""

import hashlib
import logging
import os
from pathlib import Path
from typing import Any, Optional, Union

import yaml
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "configs" / "base.yaml"


# =============================================================================
# Pydantic Config Models
# =============================================================================


class RegionConfig(BaseModel):
    """SOI region location settings (all sizes in characters)."""

    lead_chars: int = 10_000  # Kept before the SOI heading
    trail_chars: int = 300_000  # Kept after the last current-period heading
    fallback_chars: int = 300_000  # Prefix used when no heading is found
    max_window_chars: int = 1_500_000  # Ceiling of a single region chunk
    chunk_overlap_chars: int = 20_000
    period_lookahead_chars: int = 2_000  # Where to look for the "as of" date
    table_lookahead_chars: int = 10_000  # A dated heading needs a fair value column this close


class ScaleConfig(BaseModel):
    """Reporting-scale detection and normalization."""

    scan_chars: int = 50_000
    precision: int = 1  # Decimal places of normalized amounts (millions)
    max_mean_fair_value: float = 1000.0  # Plausibility bounds, millions
    min_mean_fair_value: float = 0.01


class SegmentConfig(BaseModel):
    """Budgeted segmented parsing of large regions."""

    threshold_chars: int = 400_000  # Regions above this use the segmented driver
    segment_chars: int = 150_000
    overlap_chars: int = 10_000
    anchor_lookback_chars: int = 40_000
    budget_seconds: Optional[float] = 20.0  # None = run to completion


class TableConfig(BaseModel):
    header_scan_rows: int = 10
    min_company_chars: int = 5


class DedupConfig(BaseModel):
    strict_key: bool = False  # Also key on reported cost


class StoreConfig(BaseModel):
    """Holdings store selection."""

    backend: str = "duckdb"  # duckdb | memory
    db_path: str = "data/holdings.duckdb"
    batch_size: int = 200


class SourceConfig(BaseModel):
    """SEC EDGAR document source."""

    user_agent: str = "BDCHoldingsPipeline research@example.com"
    max_retries: int = 2
    initial_retry_delay: float = 1.0
    max_retry_delay: float = 30.0
    request_delay: float = 0.15
    timeout: float = 30.0


class PipelineConfig(BaseModel):
    """Complete pipeline configuration."""

    region: RegionConfig = Field(default_factory=RegionConfig)
    scale: ScaleConfig = Field(default_factory=ScaleConfig)
    segments: SegmentConfig = Field(default_factory=SegmentConfig)
    tables: TableConfig = Field(default_factory=TableConfig)
    dedup: DedupConfig = Field(default_factory=DedupConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    source: SourceConfig = Field(default_factory=SourceConfig)
    max_relay_invocations: int = 50

    def config_hash(self) -> str:
        """
        Generate hash of config for reproducibility tracking.

        Returns:
            SHA256 hash of serialized config (first 12 chars)
        """
        config_json = self.model_dump_json(exclude={"source"})
        return hashlib.sha256(config_json.encode()).hexdigest()[:12]


# =============================================================================
# Config Loading Functions
# =============================================================================


def load_yaml(path: Union[str, Path]) -> dict[str, Any]:
    """Load YAML file and return as dict."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def deep_merge(base: dict, override: dict) -> dict:
    """
    Deep merge two dictionaries.

    Override values take precedence. Nested dicts are merged recursively.
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def load_config(
    config_path: Optional[Union[str, Path]] = None,
    overrides: Optional[dict[str, Any]] = None,
) -> PipelineConfig:
    """
    Load pipeline configuration.

    The base config (configs/base.yaml, if present) is loaded first; a
    config_path other than the base is merged over it, then overrides.

    Args:
        config_path: Optional YAML file with overrides
        overrides: Optional dict merged last

    Returns:
        PipelineConfig with all settings resolved
    """
    config_dict: dict[str, Any] = {}
    if DEFAULT_CONFIG_PATH.exists():
        config_dict = load_yaml(DEFAULT_CONFIG_PATH)

    if config_path is not None:
        config_path = Path(config_path)
        if config_path.resolve() != DEFAULT_CONFIG_PATH:
            config_dict = deep_merge(config_dict, load_yaml(config_path))
            logger.info(f"Merged config from {config_path}")

    if overrides:
        config_dict = deep_merge(config_dict, overrides)

    user_agent = os.getenv("SEC_USER_AGENT")
    if user_agent:
        config_dict = deep_merge(config_dict, {"source": {"user_agent": user_agent}})

    config = PipelineConfig.model_validate(config_dict)
    logger.debug(f"Loaded config (hash: {config.config_hash()})")
    return config


def save_config(config: PipelineConfig, output_path: Union[str, Path]) -> Path:
    """Save resolved config to a YAML file."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, "w", encoding="utf-8") as f:
        yaml.dump(config.model_dump(), f, default_flow_style=False, sort_keys=False)

    logger.info(f"Saved config to {output_path}")
    return output_path


# =============================================================================
# Config Validation
# =============================================================================


def validate_config(config: PipelineConfig) -> list[str]:
    """
    Validate config and return list of warnings/issues.

    Returns:
        List of warning messages (empty if all good)
    """
    warnings = []

    valid_backends = ["duckdb", "memory"]
    if config.store.backend not in valid_backends:
        warnings.append(
            f"Invalid store backend: {config.store.backend}. "
            f"Valid options: {valid_backends}"
        )

    if config.segments.overlap_chars >= config.segments.segment_chars:
        warnings.append(
            f"segments.overlap_chars={config.segments.overlap_chars} must be smaller than "
            f"segments.segment_chars={config.segments.segment_chars}"
        )

    if config.region.chunk_overlap_chars >= config.region.max_window_chars:
        warnings.append(
            f"region.chunk_overlap_chars={config.region.chunk_overlap_chars} must be smaller than "
            f"region.max_window_chars={config.region.max_window_chars}"
        )

    if config.segments.threshold_chars > config.region.max_window_chars:
        warnings.append(
            f"segments.threshold_chars={config.segments.threshold_chars} is above "
            f"region.max_window_chars={config.region.max_window_chars}; direct parses will be chunked"
        )

    if config.segments.budget_seconds is not None and config.segments.budget_seconds <= 0:
        warnings.append("segments.budget_seconds must be positive (or null for no budget)")

    if config.scale.precision < 0:
        warnings.append(f"scale.precision={config.scale.precision} must not be negative")

    if config.store.batch_size < 1:
        warnings.append(f"store.batch_size={config.store.batch_size} must be at least 1")

    if "@" not in config.source.user_agent:
        warnings.append("source.user_agent should include a contact email (SEC requirement)")

    return warnings
