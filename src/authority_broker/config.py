"""Application configuration for authority-broker.

Defines configuration models for the identity authority, the REST service
used for PAT issuance and credential validation, and logging. Config is
stored as JSON at the OS-appropriate location (via platformdirs). Every
field has a default, so a missing file means "use defaults" for the CLI.

Example usage:
    # Load from config file
    config = AppConfig.load_from_files(config_path)

    # Save new configuration
    config.save_to_file(config_path)
"""

import json
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, ValidationError, field_validator

from authority_broker.constants import (
    CONFIG_FILE_NAME,
    DEFAULT_AUTHORITY_HOST_URL,
    DEFAULT_AUTHORITY_TIMEOUT_SECONDS,
    DEFAULT_CONFIG_DIR,
    DEFAULT_HTTP_TIMEOUT_SECONDS,
    DEFAULT_SERVICE_URL,
    MAX_TIMEOUT_SECONDS,
    MIN_TIMEOUT_SECONDS,
)
from authority_broker.exceptions import ConfigError


def _require_https_url(value: str) -> str:
    value = value.strip().rstrip("/")
    if not value.startswith("https://") or len(value) <= len("https://"):
        raise ValueError(f"must be an absolute https:// URL, got {value!r}")
    return value


class AuthorityConfig(BaseModel):
    """Identity authority settings.

    Attributes:
        host_url: Authority host URL; the target host is appended per request.
        timeout_seconds: Upper bound for one non-interactive exchange (1-300).
    """

    host_url: str = DEFAULT_AUTHORITY_HOST_URL
    timeout_seconds: int = Field(
        default=DEFAULT_AUTHORITY_TIMEOUT_SECONDS,
        ge=MIN_TIMEOUT_SECONDS,
        le=MAX_TIMEOUT_SECONDS,
    )

    @field_validator("host_url")
    @classmethod
    def _validate_host_url(cls, value: str) -> str:
        return _require_https_url(value)


class ServiceConfig(BaseModel):
    """REST service used for PAT issuance and credential validation.

    Attributes:
        base_url: Service root (session token and profile APIs live under it).
        timeout_seconds: HTTP timeout for REST calls (1-300).
    """

    base_url: str = DEFAULT_SERVICE_URL
    timeout_seconds: int = Field(
        default=DEFAULT_HTTP_TIMEOUT_SECONDS,
        ge=MIN_TIMEOUT_SECONDS,
        le=MAX_TIMEOUT_SECONDS,
    )

    @field_validator("base_url")
    @classmethod
    def _validate_base_url(cls, value: str) -> str:
        return _require_https_url(value)


class LoggingConfig(BaseModel):
    """Logging configuration settings.

    When log_dir is set, logs are written as:
        <log_dir>/
        ├── system/
        │   └── system.jsonl
        └── audit/
            └── auth.jsonl

    Attributes:
        log_dir: Base directory for logs, or None to log to stderr only.
        log_level: Logging level (DEBUG or INFO).
    """

    log_dir: str | None = None
    log_level: Literal["DEBUG", "INFO"] = "INFO"


class AppConfig(BaseModel):
    """Main application configuration for authority-broker.

    Attributes:
        authority: Identity authority settings.
        service: REST service settings.
        logging: Logging configuration.
    """

    authority: AuthorityConfig = Field(default_factory=AuthorityConfig)
    service: ServiceConfig = Field(default_factory=ServiceConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def save_to_file(self, config_path: Path) -> None:
        """Save configuration to JSON file.

        Creates parent directories if they don't exist.
        Sets secure permissions (0o700) on the config directory.

        Args:
            config_path: Path where the config file should be saved.
        """
        config_path.parent.mkdir(parents=True, exist_ok=True)
        config_path.parent.chmod(0o700)

        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(self.model_dump(), f, indent=2)

        config_path.chmod(0o600)

    @classmethod
    def load_from_files(cls, config_path: Path) -> "AppConfig":
        """Load configuration from JSON file.

        Args:
            config_path: Path to the config file.

        Returns:
            AppConfig instance with loaded configuration.

        Raises:
            FileNotFoundError: If config file doesn't exist.
            ConfigError: If config file is invalid or has invalid values.
        """
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        try:
            with open(config_path, encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in config file {config_path}: {e}") from e
        except OSError as e:
            raise ConfigError(f"Could not read config file {config_path}: {e}") from e

        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration in {config_path}:\n{e}") from e


def get_config_path() -> Path:
    """Get the default config file path."""
    return Path(DEFAULT_CONFIG_DIR) / CONFIG_FILE_NAME
