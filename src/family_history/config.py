"""Configuration management for the family history service."""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

import yaml

from family_history.core.exceptions import ConfigError
from family_history.sync.reconciler import DEFAULT_BATCH_SIZE

# Environment variables that override file settings
ENV_OVERRIDES = {
    "FAMILY_HISTORY_DB": "database_path",
    "FAMILY_HISTORY_BATCH_SIZE": "import_batch_size",
    "FAMILY_HISTORY_LOG_LEVEL": "log_level",
}


@dataclass
class Settings:
    """Runtime settings."""

    database_path: str = "data/family_history.db"

    # Records per atomic import batch
    import_batch_size: int = DEFAULT_BATCH_SIZE

    # Logging parameters
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        try:
            self.import_batch_size = int(self.import_batch_size)
        except (TypeError, ValueError):
            raise ConfigError("import_batch_size must be an integer", str(self.import_batch_size))
        if self.import_batch_size <= 0:
            raise ConfigError("import_batch_size must be positive")
        if not self.database_path:
            raise ConfigError("database_path must be set")
        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ConfigError("Unknown log level", self.log_level)

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> Settings:
        """Create settings from a nested dictionary.

        Raises:
            ConfigError: If settings are invalid
        """
        flat: dict[str, Any] = {}

        if "database" in config_dict:
            flat["database_path"] = config_dict["database"].get("path", cls.database_path)

        if "import" in config_dict:
            flat["import_batch_size"] = config_dict["import"].get("batch_size", DEFAULT_BATCH_SIZE)

        if "logging" in config_dict:
            logging_config = config_dict["logging"]
            flat["log_level"] = logging_config.get("level", cls.log_level)
            flat["log_format"] = logging_config.get("format", cls.log_format)

        try:
            return cls(**flat)
        except TypeError as e:
            raise ConfigError(f"Invalid configuration parameters: {e}")

    def with_env(self, environ: dict[str, str] | None = None) -> Settings:
        """Return a copy with environment overrides applied."""
        environ = os.environ if environ is None else environ
        values = asdict(self)
        for variable, attr in ENV_OVERRIDES.items():
            if environ.get(variable):
                values[attr] = environ[variable]
        return Settings(**values)


def load_settings(config_path: str | Path | None = None) -> Settings:
    """Load settings from an optional YAML file, then the environment.

    Raises:
        ConfigError: If the file cannot be read or is invalid
    """
    if config_path is None:
        return Settings().with_env()

    config_path = Path(config_path)
    if not config_path.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            config_dict = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in configuration file: {e}")
    except OSError as e:
        raise ConfigError(f"Cannot read configuration file: {e}")

    if not isinstance(config_dict, dict):
        raise ConfigError("Configuration file must contain a dictionary")

    return Settings.from_dict(config_dict).with_env()


def setup_logging(settings: Settings) -> None:
    """Configure root logging from settings."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper()),
        format=settings.log_format,
    )
