"""Shared helpers for CLI commands.

Loads configuration (falling back to defaults when no file exists),
configures logging from it, and builds the broker.
"""

from __future__ import annotations

__all__ = [
    "build_broker",
    "load_config",
    "pair_to_json",
]

import json
from pathlib import Path

import click

from authority_broker.broker import AuthorityBroker
from authority_broker.config import AppConfig, get_config_path
from authority_broker.constants import AUTH_LOG_FILE_NAME
from authority_broker.engine.oauth import CodeReceiver
from authority_broker.exceptions import ConfigError
from authority_broker.telemetry.audit.auth_logger import create_auth_logger
from authority_broker.telemetry.system.system_logger import configure_system_logger
from authority_broker.tokens import TokenPair


def load_config(config_path: Path | None) -> AppConfig:
    """Load configuration, using defaults when the default file is absent.

    Args:
        config_path: Explicit config path (--config), or None for the default.

    Returns:
        AppConfig instance.

    Raises:
        click.ClickException: If an explicit file is missing or any file is invalid.
    """
    path = config_path or get_config_path()

    if not path.exists():
        if config_path is not None:
            raise click.ClickException(f"Configuration not found at {path}")
        return AppConfig()

    try:
        return AppConfig.load_from_files(path)
    except ConfigError as e:
        raise click.ClickException(f"Failed to load configuration: {e}") from e


def build_broker(config: AppConfig, code_receiver: CodeReceiver | None = None) -> AuthorityBroker:
    """Configure logging and create a broker from configuration."""
    log_dir = Path(config.logging.log_dir).expanduser() if config.logging.log_dir else None

    configure_system_logger(
        log_dir / "system" if log_dir else None,
        config.logging.log_level,
    )
    auth_logger = create_auth_logger(log_dir / "audit" / AUTH_LOG_FILE_NAME if log_dir else None)

    return AuthorityBroker.from_config(config, auth_logger=auth_logger, code_receiver=code_receiver)


def pair_to_json(pair: TokenPair) -> str:
    """Render a token pair for stdout."""
    return json.dumps(
        {
            "access_token": pair.access.value,
            "refresh_token": pair.refresh.value if pair.refresh is not None else None,
            "expires_at": pair.expires_at.isoformat() if pair.expires_at is not None else None,
        },
        indent=2,
    )
