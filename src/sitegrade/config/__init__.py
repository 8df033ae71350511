"""Configuration models and loaders."""

from .config import (
    AdaptersConfig,
    BudgetConfig,
    Config,
    ExtractionSettings,
    FetcherConfig,
    MonitoringConfig,
    PerformanceAdapterConfig,
    ScoringConfig,
    ValidatorAdapterConfig,
    find_config_file,
    load_config,
)

__all__ = [
    "AdaptersConfig",
    "BudgetConfig",
    "Config",
    "ExtractionSettings",
    "FetcherConfig",
    "MonitoringConfig",
    "PerformanceAdapterConfig",
    "ScoringConfig",
    "ValidatorAdapterConfig",
    "find_config_file",
    "load_config",
]
