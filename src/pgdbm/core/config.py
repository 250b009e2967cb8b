# src/pgdbm/core/config.py
"""
This module provides the configuration system for pgdbm with:
- Immutable pydantic models passed explicitly to every component
- YAML configuration file support
- Command-line overrides merged on top of the file
"""

import logging
from enum import Enum
from pathlib import Path
from typing import Dict, Any, Optional, List, Tuple

import yaml
from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError, field_validator

from .constants import (
    DEFAULT_BOOTSTRAP_DATABASE,
    DEFAULT_MIGRATIONS_DIR,
    DEFAULT_LOG_LEVEL,
    DEFAULT_LOG_FORMAT,
    DEFAULT_MAX_LOG_SIZE_MB,
    DEFAULT_MAX_LOG_FILES,
)
from .exceptions import (
    ConfigurationError,
    ConfigFileNotFoundError,
    ConfigFormatError,
    ConfigValidationError,
)

logger: logging.Logger = logging.getLogger(__name__)


class LogLevel(str, Enum):
    """Supported logging levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class ConfigSection(BaseModel):
    """Base class for configuration sections."""
    model_config = ConfigDict(extra="forbid", frozen=True)


class ConnectionConfig(ConfigSection):
    """Connection attributes of the managed database."""

    name: str = Field(..., min_length=1, description="Name of the managed database")
    host: Optional[str] = Field(default=None, description="Server host name or socket directory")
    port: Optional[int] = Field(default=None, ge=1, le=65535, description="Server port")
    username: Optional[str] = Field(default=None, description="Role used to connect and to own the database")
    password: Optional[SecretStr] = Field(default=None, description="Password for the role")
    require_ssl: bool = Field(default=False, description="Require an SSL connection")
    bootstrap_database: str = Field(
        default=DEFAULT_BOOTSTRAP_DATABASE,
        min_length=1,
        description="Administrative database used for probing and drop/create"
    )

    @property
    def sslmode(self) -> Optional[str]:
        """libpq sslmode implied by ``require_ssl``."""
        return "require" if self.require_ssl else None

    def password_value(self) -> Optional[str]:
        """Return the plain-text password, if one was configured."""
        return self.password.get_secret_value() if self.password is not None else None

    def describe(self) -> List[Tuple[str, str]]:
        """
        Describe the connection for diagnostics.

        Returns:
            Ordered (label, value) pairs; the password is always masked
        """
        info: List[Tuple[str, str]] = [("database name", self.name)]
        if self.username is not None:
            info.append(("username", self.username))
        if self.password is not None:
            info.append(("password", "********"))
        if self.host is not None:
            info.append(("host", self.host))
        if self.port is not None:
            info.append(("port", str(self.port)))
        info.append(("ssl", "required" if self.require_ssl else "not required"))
        return info


class LoggingConfig(ConfigSection):
    """Logging configuration."""
    level: LogLevel = Field(default=LogLevel(DEFAULT_LOG_LEVEL), description="Logging level")
    json_format: bool = Field(default=False, description="Emit JSON log records")
    console_enabled: bool = Field(default=True, description="Enable logging to stderr")
    log_file: Optional[Path] = Field(default=None, description="Optional rotating log file")
    log_format: str = Field(default=DEFAULT_LOG_FORMAT, description="Log format string")
    max_log_size_mb: int = Field(default=DEFAULT_MAX_LOG_SIZE_MB, ge=1, le=100, description="Maximum log file size in MB")
    max_log_files: int = Field(default=DEFAULT_MAX_LOG_FILES, ge=1, le=50, description="Maximum number of log files")


class ManagerConfig(ConfigSection):
    """
    Complete configuration for a database manager run.

    Instances are immutable. Values that are derived at run time, such as the
    target schema version, are cached by the component that computes them.
    """

    connection: ConnectionConfig
    app_name: Optional[str] = Field(default=None, description="Display name used in progress messages")
    sql_file: Optional[Path] = Field(default=None, description="Canonical schema SQL file")
    migrations_dir: Path = Field(default=DEFAULT_MIGRATIONS_DIR, description="Root of the migration tree")
    contrib_files: Tuple[str, ...] = Field(default=(), description="Contrib SQL files imported before a fresh build")
    drop: bool = Field(default=False, description="Allow dropping an existing database")
    quiet: bool = Field(default=False, description="Suppress progress messages")
    seed: bool = Field(default=False, description="Seed data after a fresh install")
    seeder: Optional[str] = Field(
        default=None,
        pattern=r"^[A-Za-z_][\w.]*:[A-Za-z_]\w*$",
        description="Seeding function as 'package.module:function'"
    )
    step_modules: Tuple[str, ...] = Field(default=(), description="Modules that register imperative migration steps")
    logging: LoggingConfig = Field(default_factory=LoggingConfig, description="Logging configuration")

    @field_validator("contrib_files", "step_modules", mode="before")
    @classmethod
    def _coerce_name_lists(cls, value: Any) -> Any:
        if isinstance(value, str):
            return (value,)
        return value

    @property
    def display_name(self) -> str:
        """Application name, falling back to the database name."""
        return self.app_name or self.connection.name

    @property
    def database_name(self) -> str:
        return self.connection.name

    def require_sql_file(self) -> Path:
        """
        Get the canonical schema file.

        Returns:
            Path to the canonical schema

        Raises:
            ConfigurationError: If no SQL file was configured or it does not exist
        """
        if self.sql_file is None:
            raise ConfigurationError(
                "Cannot determine your sql file - either pass it in the "
                "configuration or with --sql-file"
            )
        if not self.sql_file.is_file():
            raise ConfigurationError(
                f"Cannot read sql file {self.sql_file}: no such file",
                {"sql_file": str(self.sql_file)}
            )
        return self.sql_file

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ManagerConfig":
        """
        Create a validated configuration from a plain mapping.

        Raises:
            ConfigValidationError: If any field fails validation
        """
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            errors = [
                f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
                for err in e.errors()
            ]
            raise ConfigValidationError("Invalid configuration", errors=errors)


def deep_merge(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge ``overrides`` into a copy of ``base``.

    Nested mappings are merged recursively; ``None`` override values are
    ignored so unset command-line options never mask file values.
    """
    merged = dict(base)
    for key, value in overrides.items():
        if value is None:
            continue
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        elif isinstance(value, dict):
            merged[key] = deep_merge({}, value)
        else:
            merged[key] = value
    return merged


class ConfigManager:
    """Loads a ManagerConfig from an optional YAML file plus overrides."""

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize ConfigManager.

        Args:
            config_path: Optional YAML config file path
        """
        self.config_path: Optional[Path] = Path(config_path) if config_path else None

    def read_file(self) -> Dict[str, Any]:
        """
        Read the YAML configuration file.

        Returns:
            The parsed mapping, or an empty mapping when no file is configured

        Raises:
            ConfigFileNotFoundError: If the configured file does not exist
            ConfigFormatError: If the file is not a YAML mapping
        """
        if self.config_path is None:
            return {}

        if not self.config_path.is_file():
            raise ConfigFileNotFoundError(self.config_path)

        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigFormatError(self.config_path, str(e))

        if not isinstance(data, dict):
            raise ConfigFormatError(self.config_path, "top level must be a mapping")

        logger.debug(f"Configuration read from {self.config_path}")
        return data

    def load(self, overrides: Optional[Dict[str, Any]] = None) -> ManagerConfig:
        """
        Load and validate configuration.

        Args:
            overrides: Values that take precedence over the file

        Returns:
            ManagerConfig: Validated, immutable configuration
        """
        data = deep_merge(self.read_file(), overrides or {})
        config = ManagerConfig.from_dict(data)
        logger.debug(f"Configuration loaded for database {config.database_name}")
        return config


def load_config(config_path: Optional[Path] = None,
                overrides: Optional[Dict[str, Any]] = None) -> ManagerConfig:
    """Shortcut for ``ConfigManager(config_path).load(overrides)``."""
    return ConfigManager(config_path).load(overrides)
