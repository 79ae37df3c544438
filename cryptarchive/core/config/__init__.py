"""Configuration module."""

from cryptarchive.core.config.settings import (
    ArchiveConfig,
    ConfigManager,
    LoggingConfig,
    SchedulerConfig,
    StorageConfig,
    UpstreamConfig,
    WebConfig,
    get_default_config,
    load_config_from_env,
)

__all__ = [
    "ArchiveConfig",
    "ConfigManager",
    "LoggingConfig",
    "SchedulerConfig",
    "StorageConfig",
    "UpstreamConfig",
    "WebConfig",
    "get_default_config",
    "load_config_from_env",
]
