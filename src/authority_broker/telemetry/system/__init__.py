"""Operational logging."""

from authority_broker.telemetry.system.system_logger import (
    ISO8601JsonFormatter,
    configure_system_logger,
    get_system_logger,
)

__all__ = [
    "ISO8601JsonFormatter",
    "configure_system_logger",
    "get_system_logger",
]
