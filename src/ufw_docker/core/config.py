"""Configuration management using Pydantic.

Provides:
- Typed configuration models with validation
- YAML file loading with defaults
- Environment variable settings (DEBUG)

The configuration file is optional: a host without
/etc/ufw-docker/config.yaml runs with the defaults below.
"""

from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from ufw_docker.core.exceptions import ConfigurationError


# Default configuration paths
DEFAULT_CONFIG_PATH = Path("/etc/ufw-docker/config.yaml")
DEFAULT_AFTER_RULES_PATH = Path("/etc/ufw/after.rules")
DEFAULT_AUDIT_LOG_PATH = Path("/var/log/ufw-docker/audit.log")

# Search path forced before any external command runs
SAFE_PATH = "/bin:/usr/bin:/sbin:/usr/sbin:/snap/bin/"


class UfwConfig(BaseModel):
    """ufw backend settings."""

    after_rules_path: Path = DEFAULT_AFTER_RULES_PATH
    default_protocol: str = "tcp"
    # Prefix of `ufw --dry-run` output meaning "rule already present"
    skip_marker: str = "Skipping"

    @field_validator("default_protocol")
    @classmethod
    def validate_default_protocol(cls, v: str) -> str:
        v = v.lower()
        if v not in {"tcp", "udp"}:
            raise ValueError("default_protocol must be one of: ['tcp', 'udp']")
        return v

    @field_validator("skip_marker")
    @classmethod
    def validate_skip_marker(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("skip_marker cannot be empty")
        return v


class AuditConfig(BaseModel):
    """Audit log settings."""

    enabled: bool = True
    log_path: Path = DEFAULT_AUDIT_LOG_PATH
    max_size_mb: int = 10
    backup_count: int = 5

    @field_validator("max_size_mb", "backup_count")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v


class ToolConfig(BaseModel):
    """Root configuration model."""

    ufw: UfwConfig = Field(default_factory=UfwConfig)
    audit: AuditConfig = Field(default_factory=AuditConfig)
    # Seconds; None waits for ufw/docker indefinitely
    command_timeout: Optional[int] = None

    @field_validator("command_timeout")
    @classmethod
    def validate_timeout(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 1:
            raise ValueError("command_timeout must be a positive number of seconds")
        return v

    @classmethod
    def load(cls, path: Path) -> "ToolConfig":
        """Load configuration from YAML file.

        Args:
            path: Path to configuration file

        Returns:
            Loaded configuration

        Raises:
            ConfigurationError: If file not found or invalid
        """
        if not path.exists():
            raise ConfigurationError(f"Configuration file not found: {path}")

        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Invalid YAML in configuration file: {path}",
                details=[str(e)],
            ) from e
        except PermissionError:
            raise ConfigurationError(
                f"Cannot read configuration file: {path}",
                hint="Check file permissions or run with sudo",
            )

        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Invalid configuration: {path} must contain a mapping",
            )

        try:
            return cls(**data)
        except PydanticValidationError as e:
            raise ConfigurationError(
                f"Invalid configuration: {path}",
                details=[str(e)],
            ) from e

    @classmethod
    def load_or_default(cls, path: Optional[Path] = None) -> "ToolConfig":
        """Load configuration, falling back to defaults if file doesn't exist."""
        if path is None:
            path = DEFAULT_CONFIG_PATH

        if path.exists():
            return cls.load(path)
        return cls()


class EnvSettings(BaseSettings):
    """Settings read from the process environment."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    debug: bool = Field(False, alias="DEBUG")


class AppConfig:
    """Application configuration loaded from the optional config file.

    This is the main interface for accessing configuration throughout the app.
    """

    def __init__(
        self,
        config_path: Optional[Path] = None,
        config: Optional[ToolConfig] = None,
    ) -> None:
        self.config_path = config_path or DEFAULT_CONFIG_PATH
        self._config = config or ToolConfig.load_or_default(self.config_path)

    @property
    def config(self) -> ToolConfig:
        return self._config

    @property
    def ufw(self) -> UfwConfig:
        """Shortcut to ufw config."""
        return self._config.ufw

    @property
    def audit(self) -> AuditConfig:
        """Shortcut to audit config."""
        return self._config.audit

    @property
    def command_timeout(self) -> Optional[int]:
        return self._config.command_timeout


def debug_enabled() -> bool:
    """Check the DEBUG environment flag.

    Unparseable values (e.g. DEBUG=verbose) count as disabled.
    """
    try:
        return EnvSettings().debug
    except PydanticValidationError:
        return False
