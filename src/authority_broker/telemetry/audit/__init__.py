"""Audit logging for authentication outcomes."""

from authority_broker.telemetry.audit.auth_logger import (
    AuthLogger,
    create_auth_logger,
)

__all__ = [
    "AuthLogger",
    "create_auth_logger",
]
