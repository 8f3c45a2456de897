"""Configuration management for the RNA-seq analysis engine."""

import logging
from pathlib import Path
from typing import List, Literal, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict
import yaml


class AnalysisDefaults(BaseModel):
    """Default analysis parameters."""

    fdr_threshold: float = Field(default=0.05, ge=0.0, le=1.0)
    log2fc_threshold: float = Field(default=1.0, ge=0.0)
    mean_floor: float = Field(default=0.1, gt=0.0)  # floor applied before log2 fold change
    min_p_value: float = Field(default=0.001, gt=0.0, le=1.0)
    p_value_inflation: float = Field(default=1.1, ge=1.0)
    p_value_adjustment: Literal["inflate", "benjamini_hochberg"] = "inflate"
    vst_threshold: float = Field(default=0.5, ge=0.0)
    vst_pseudocount: float = Field(default=0.5, gt=0.0)
    max_pca_genes: int = Field(default=1000, ge=1)
    max_variance_components: int = Field(default=10, ge=1)
    volcano_p_floor: float = Field(default=1e-10, gt=0.0)


class PerformanceConfig(BaseModel):
    """Performance-related settings."""

    batch_size: int = Field(default=50, ge=1)
    progress_log_interval: int = Field(default=10, ge=1)  # in batches


class PlotConfig(BaseModel):
    """Colors and point sizes handed to plot consumers."""

    palette: List[str] = Field(
        default_factory=lambda: [
            "#2563EB",  # blue
            "#F97316",  # orange
            "#059669",  # green
            "#7C3AED",  # purple
            "#DC2626",  # red
            "#CA8A04",  # yellow
        ],
        min_length=1,
    )
    up_color: str = "#F97316"
    down_color: str = "#2563EB"
    neutral_color: str = "#6B7280"
    sample_point_size: float = Field(default=6, gt=0)
    gene_point_size: float = Field(default=4, gt=0)


class Config(BaseSettings):
    """Main configuration class."""

    model_config = SettingsConfigDict(
        env_prefix="RNASEQ_ENGINE_",
        env_nested_delimiter="__",
    )

    defaults: AnalysisDefaults = Field(default_factory=AnalysisDefaults)
    performance: PerformanceConfig = Field(default_factory=PerformanceConfig)
    plots: PlotConfig = Field(default_factory=PlotConfig)

    log_level: str = "INFO"
    debug: bool = False

    @classmethod
    def from_yaml(cls, path: Path) -> "Config":
        """Load configuration from YAML file."""
        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}
        return cls(**data)

    def to_yaml(self, path: Path):
        """Save configuration to YAML file."""
        data = self.model_dump()
        with open(path, 'w') as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)


DEFAULT_CONFIG_PATH = Path.home() / ".rnaseq_engine" / "config.yaml"

# Global configuration instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        if DEFAULT_CONFIG_PATH.exists():
            _config = Config.from_yaml(DEFAULT_CONFIG_PATH)
        else:
            _config = Config()
    return _config


def set_config(config: Config):
    """Set the global configuration instance."""
    global _config
    _config = config


def reset_config():
    """Forget the global configuration so the next access reloads it."""
    global _config
    _config = None


def configure_logging(config: Optional[Config] = None):
    """Configure root logging from the configuration's log level."""
    config = config or get_config()
    level = logging.DEBUG if config.debug else getattr(logging, config.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
    )


# Example config.yaml template
CONFIG_TEMPLATE = """
# RNA-seq Engine Configuration

defaults:
  fdr_threshold: 0.05            # adjusted p-value cutoff for significance
  log2fc_threshold: 1.0          # |log2 fold change| cutoff for significance
  mean_floor: 0.1                # group means are floored here before log2
  min_p_value: 0.001             # p-values never drop below this
  p_value_inflation: 1.1         # adjusted = min(1, p * inflation)
  p_value_adjustment: inflate    # inflate | benjamini_hochberg
  vst_threshold: 0.5
  vst_pseudocount: 0.5
  max_pca_genes: 1000            # top-variance genes used for PCA
  max_variance_components: 10
  volcano_p_floor: 1.0e-10

performance:
  batch_size: 50                 # genes per differential expression batch
  progress_log_interval: 10      # log progress every N batches

plots:
  up_color: "#F97316"
  down_color: "#2563EB"
  neutral_color: "#6B7280"
  sample_point_size: 6
  gene_point_size: 4

log_level: INFO
debug: false
"""
