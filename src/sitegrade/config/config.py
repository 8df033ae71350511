"""
Configuration management for SiteGrade using Pydantic.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Setup Logging ---
log = logging.getLogger(__name__)

# --- Nested Configuration Models ---


class FetcherConfig(BaseModel):
    """Resource fetcher configuration."""

    timeout_seconds: float = Field(default=15.0, gt=0, description="Per-request timeout for page fetches.")
    max_bytes: int = Field(default=5 * 1024 * 1024, gt=0, description="Byte cap for any fetched resource.")
    max_redirects: int = Field(default=5, ge=0, le=5, description="Redirect hops followed before giving up.")
    user_agent: str = Field(
        default="SiteGradeBot/1.0 (+https://github.com/sitegrade/sitegrade)",
        description="User-Agent string for HTTP requests.",
    )
    fetch_auxiliary: bool = Field(default=True, description="Fetch robots.txt, llms.txt and the sitemap.")
    blocked_hosts: List[str] = Field(
        default_factory=lambda: [
            "localhost",
            "localhost.localdomain",
            "metadata",
            "metadata.google.internal",
            "instance-data",
        ],
        description="Host names that are never fetched, regardless of DNS.",
    )


class BudgetConfig(BaseModel):
    """Process-wide outbound request budget."""

    max_concurrency: int = Field(default=16, gt=0, description="Concurrent outbound requests across all runs.")
    per_destination_interval_seconds: float = Field(
        default=0.0, ge=0, description="Minimum spacing between requests to the same host."
    )
    max_pending: int = Field(default=256, gt=0, description="Requests allowed to wait for a slot before rejection.")


class ExtractionSettings(BaseModel):
    """Content extraction settings."""

    min_block_length: int = Field(default=20, ge=1, description="Text blocks shorter than this are noise.")
    content_selectors: List[str] = Field(
        default=["main", "article", '[role="main"]'],
        description="CSS selectors of recognized content containers.",
    )


class ValidatorAdapterConfig(BaseModel):
    enabled: bool = True
    endpoint: str = Field(default="https://validator.w3.org/nu/", description="Nu HTML Checker endpoint.")
    timeout_seconds: float = Field(default=10.0, gt=0)


class PerformanceAdapterConfig(BaseModel):
    enabled: bool = True
    endpoint: str = Field(
        default="https://www.googleapis.com/pagespeedonline/v5/runPagespeed",
        description="PageSpeed-Insights-compatible endpoint.",
    )
    api_key: Optional[str] = Field(default=None, description="API key for the performance service.")
    strategy: str = Field(default="mobile", description="Measurement strategy (mobile or desktop).")
    timeout_seconds: float = Field(default=60.0, gt=0)

    @field_validator("strategy")
    @classmethod
    def check_strategy(cls, v: str) -> str:
        if v not in ("mobile", "desktop"):
            raise ValueError("strategy must be 'mobile' or 'desktop'")
        return v


class AdaptersConfig(BaseModel):
    validator: ValidatorAdapterConfig = Field(default_factory=ValidatorAdapterConfig)
    performance: PerformanceAdapterConfig = Field(default_factory=PerformanceAdapterConfig)


class ScoringConfig(BaseModel):
    """The canonical weighting model.

    Weights are validated when a run starts (see ``WeightTable``), so a bad
    table aborts the run before any network call.
    """

    weights: Dict[str, float] = Field(
        default_factory=lambda: {
            "technical": 0.20,
            "content": 0.20,
            "ai_readiness": 0.15,
            "schema": 0.12,
            "performance": 0.13,
            "mobile": 0.12,
            "authority": 0.08,
        }
    )


class MonitoringConfig(BaseModel):
    """Configuration for logging."""

    log_level: str = Field(default="INFO", description="Logging level (e.g., DEBUG, INFO, WARNING).")
    log_file: str | None = Field(default=None, description="Path to log file. If None, logs to console.")

    @field_validator("log_file", mode="before")
    @classmethod
    def create_parent_dir(cls, v: str | Path | None) -> str | None:
        if v is None:
            return None
        path = Path(v)
        path.parent.mkdir(parents=True, exist_ok=True)
        return str(path)


# --- Main Configuration Class ---


class Config(BaseSettings):
    project_name: str = "SiteGrade"
    fetcher: FetcherConfig = Field(default_factory=FetcherConfig)
    budget: BudgetConfig = Field(default_factory=BudgetConfig)
    extraction: ExtractionSettings = Field(default_factory=ExtractionSettings)
    adapters: AdaptersConfig = Field(default_factory=AdaptersConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)

    model_config = SettingsConfigDict(env_prefix="SITEGRADE_", env_nested_delimiter="__", case_sensitive=False)

    @classmethod
    def from_yaml(cls, path: Path) -> Config:
        log.debug("Loading configuration from YAML file: %s", path)
        if not path.is_file():
            raise FileNotFoundError(f"Configuration file not found or is not a file: {path}")
        with open(path, "r", encoding="utf-8") as f:
            yaml_data = yaml.safe_load(f)
        if not yaml_data:
            log.warning("Configuration file is empty: %s. Using default settings.", path)
            return cls.model_validate({})
        return cls.model_validate(yaml_data)


def find_config_file() -> Path | None:
    current_dir = Path.cwd()
    paths_to_check = [
        current_dir / "sitegrade.yaml",
        current_dir / "sitegrade.yml",
        current_dir / "config.yaml",
    ]
    for path in paths_to_check:
        if path.exists():
            return path
    return None


def load_config(path: Path | None = None) -> Config:
    """Load configuration from ``path``, a discovered file, or defaults."""
    config_path = path or find_config_file()
    if config_path is None:
        log.info("No config file found. Using default settings.")
        return Config()
    log.info("Loading configuration from: %s", config_path)
    return Config.from_yaml(config_path)
