"""Configuration management for autopress."""

from .loader import Config, env_api_key, load_config, load_sources, save_config, save_sources
from .models import (
    ConfigModel,
    CrawlConfig,
    DispatchConfig,
    EvictionWeights,
    PostgresConfig,
    ResilienceConfig,
    SEOConfig,
    SourceConfig,
)
from .settings import (
    DEFAULT_SETTINGS,
    PipelineSettings,
    SettingsReport,
    auto_repair_settings,
    load_settings,
    parse_times,
    validate_settings,
)

__all__ = [
    "Config",
    "ConfigModel",
    "CrawlConfig",
    "DEFAULT_SETTINGS",
    "DispatchConfig",
    "EvictionWeights",
    "PipelineSettings",
    "PostgresConfig",
    "ResilienceConfig",
    "SEOConfig",
    "SettingsReport",
    "SourceConfig",
    "auto_repair_settings",
    "env_api_key",
    "load_config",
    "load_settings",
    "load_sources",
    "parse_times",
    "save_config",
    "save_sources",
    "validate_settings",
]
