"""
Jex configuration management.

Provides centralized configuration with validation using Pydantic. A single
JexConfig is built at startup and handed to every component that needs
filesystem locations.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from jex.core.atomic import atomic_write_text

CONFIG_FILENAME = "config.json"


def default_config_directory() -> Path:
    """Return the per-user configuration directory."""
    env = os.environ.get("JEX_HOME")
    if env:
        return Path(env).expanduser()
    return Path.home() / ".jex"


def default_bin_directory() -> Path:
    """Return the per-user directory for the wrapper script."""
    env = os.environ.get("JEX_BIN_DIR")
    if env:
        return Path(env).expanduser()
    return Path.home() / ".local" / "bin"


class LoggingConfig(BaseModel):
    """Configuration for structured logging."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"
    file_enabled: bool = True
    console_enabled: bool = True
    json_format: bool = False
    log_directory: Path | None = None

    @field_validator("log_directory", mode="before")
    @classmethod
    def expand_path(cls, v: str | Path | None) -> Path | None:
        if v is None:
            return None
        return Path(v).expanduser().resolve()


class JexConfig(BaseModel):
    """Main Jex configuration."""

    config_directory: Path = Field(default_factory=default_config_directory, validate_default=True)
    bin_directory: Path = Field(default_factory=default_bin_directory, validate_default=True)
    registry_filename: str = "plugin.yaml"
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("config_directory", "bin_directory", mode="before")
    @classmethod
    def expand_directory(cls, v: str | Path) -> Path:
        return Path(v).expanduser().resolve()

    @model_validator(mode="after")
    def default_log_directory(self) -> JexConfig:
        if self.logging.log_directory is None:
            self.logging.log_directory = self.config_directory / "logs"
        return self

    @property
    def plugins_directory(self) -> Path:
        """Directory holding installed plugin artifacts."""
        return self.config_directory / "plugins"

    @property
    def registry_file(self) -> Path:
        """Path of the plugin registry file."""
        return self.config_directory / self.registry_filename

    @property
    def config_file(self) -> Path:
        return self.config_directory / CONFIG_FILENAME

    @classmethod
    def load(cls, config_path: Path | None = None) -> JexConfig:
        """Load configuration from file or create default."""
        if config_path is None:
            config_path = default_config_directory() / CONFIG_FILENAME

        if config_path.exists():
            with open(config_path, encoding="utf-8") as f:
                data = json.load(f)
            return cls.model_validate(data)

        return cls()

    def save(self, config_path: Path | None = None) -> None:
        """Save configuration to file."""
        if config_path is None:
            config_path = self.config_file

        atomic_write_text(
            config_path,
            json.dumps(self.model_dump(mode="json"), indent=2, default=str),
        )

    def ensure_directories(self) -> None:
        """Create the configuration and plugins directories."""
        self.config_directory.mkdir(parents=True, exist_ok=True)
        self.plugins_directory.mkdir(parents=True, exist_ok=True)


def load_config(config_path: Path | None = None) -> JexConfig:
    """Load or create configuration."""
    return JexConfig.load(config_path)
