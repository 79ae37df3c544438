"""Configuration management for the archive service."""

import os
import tomllib
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from loguru import logger

DEFAULT_CONFIG_PATH = Path("cryptarchive.toml")


@dataclass
class UpstreamConfig:
    """Market-data API settings."""

    base_url: str = "https://api.kraken.com/0/public"
    timeout: float = 10.0
    batch_size: int = 10
    batch_delay: float = 0.2
    user_agent: str = "cryptarchive/0.1.0"

    def __post_init__(self) -> None:
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")
        if self.batch_size <= 0:
            raise ValueError("batch_size must be positive")
        if self.batch_delay < 0:
            raise ValueError("batch_delay must be non-negative")


@dataclass
class SchedulerConfig:
    """Archive loop cadence."""

    interval_seconds: float = 60.0
    top_n: int = 20
    export_every: int = 5

    def __post_init__(self) -> None:
        if self.interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        if self.top_n <= 0:
            raise ValueError("top_n must be positive")
        if self.export_every <= 0:
            raise ValueError("export_every must be positive")


@dataclass
class StorageConfig:
    """Store file and snapshot directory locations."""

    db_path: str = str(Path("data") / "crypto.db")
    csv_dir: str = str(Path("data") / "csv")
    snapshot_prefix: str = "crypto_data"


@dataclass
class WebConfig:
    """HTTP listener settings."""

    host: str = "0.0.0.0"
    port: int = 8080


@dataclass
class LoggingConfig:
    """Logging settings."""

    level: str = "INFO"
    file: str | None = None


@dataclass
class ArchiveConfig:
    """Top-level cryptarchive configuration."""

    upstream: UpstreamConfig = field(default_factory=UpstreamConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    web: WebConfig = field(default_factory=WebConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> "ArchiveConfig":
        """Build a configuration from a nested dictionary."""
        return cls(
            upstream=UpstreamConfig(**config_dict.get("upstream", {})),
            scheduler=SchedulerConfig(**config_dict.get("scheduler", {})),
            storage=StorageConfig(**config_dict.get("storage", {})),
            web=WebConfig(**config_dict.get("web", {})),
            logging=LoggingConfig(**config_dict.get("logging", {})),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a nested dictionary."""
        return {
            "upstream": asdict(self.upstream),
            "scheduler": asdict(self.scheduler),
            "storage": asdict(self.storage),
            "web": asdict(self.web),
            "logging": asdict(self.logging),
        }


def _deep_update(d: dict[str, Any], u: dict[str, Any]) -> dict[str, Any]:
    for k, v in u.items():
        if isinstance(v, dict):
            d[k] = _deep_update(d.get(k, {}), v)
        else:
            d[k] = v
    return d


class ConfigManager:
    """Loads the TOML configuration file and applies environment overrides."""

    def __init__(self, config_path: Path | None = None, *, use_env: bool = True):
        """Initialise the manager.

        Args:
            config_path: path of the TOML file; ``cryptarchive.toml`` in the
                working directory when omitted
            use_env: apply ``CRYPTARCHIVE_*`` environment overrides
        """
        self.config_path = config_path or DEFAULT_CONFIG_PATH
        self.use_env = use_env
        self.config = self._load_config()

    def _load_config(self) -> ArchiveConfig:
        config_dict: dict[str, Any] = {}
        if self.config_path.exists():
            try:
                with open(self.config_path, "rb") as f:
                    config_dict = tomllib.load(f)
            except (OSError, tomllib.TOMLDecodeError) as e:
                logger.warning(f"Failed to load config from {self.config_path}: {e}")
                config_dict = {}

        try:
            if self.use_env:
                _deep_update(config_dict, load_config_from_env())
            return ArchiveConfig.from_dict(config_dict)
        except (TypeError, ValueError) as e:
            logger.warning(f"Invalid configuration in {self.config_path}, using defaults: {e}")
            return ArchiveConfig()

    def get_config(self) -> ArchiveConfig:
        """Return the active configuration."""
        return self.config

    def update_config(self, **updates: Any) -> None:
        """Deep-merge ``updates`` into the active configuration."""
        config_dict = self.config.to_dict()
        _deep_update(config_dict, updates)
        self.config = ArchiveConfig.from_dict(config_dict)


def get_default_config() -> ArchiveConfig:
    """Return the default configuration."""
    return ArchiveConfig()


_ENV_OVERRIDES: dict[str, tuple[str, str, type]] = {
    "CRYPTARCHIVE_UPSTREAM_BASE_URL": ("upstream", "base_url", str),
    "CRYPTARCHIVE_UPSTREAM_TIMEOUT": ("upstream", "timeout", float),
    "CRYPTARCHIVE_UPSTREAM_BATCH_SIZE": ("upstream", "batch_size", int),
    "CRYPTARCHIVE_UPSTREAM_BATCH_DELAY": ("upstream", "batch_delay", float),
    "CRYPTARCHIVE_SCHEDULER_INTERVAL": ("scheduler", "interval_seconds", float),
    "CRYPTARCHIVE_SCHEDULER_TOP_N": ("scheduler", "top_n", int),
    "CRYPTARCHIVE_SCHEDULER_EXPORT_EVERY": ("scheduler", "export_every", int),
    "CRYPTARCHIVE_DB_PATH": ("storage", "db_path", str),
    "CRYPTARCHIVE_CSV_DIR": ("storage", "csv_dir", str),
    "CRYPTARCHIVE_HOST": ("web", "host", str),
    "CRYPTARCHIVE_PORT": ("web", "port", int),
    "CRYPTARCHIVE_LOGGING_LEVEL": ("logging", "level", str),
    "CRYPTARCHIVE_LOGGING_FILE": ("logging", "file", str),
}


def load_config_from_env() -> dict[str, Any]:
    """Collect configuration overrides from ``CRYPTARCHIVE_*`` variables."""
    config: dict[str, Any] = {}
    for env_name, (section, key, cast) in _ENV_OVERRIDES.items():
        raw = os.getenv(env_name)
        if raw is None:
            continue
        config.setdefault(section, {})[key] = cast(raw)
    return config
