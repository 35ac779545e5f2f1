"""System logger for operational events.

Events are logged as dicts and serialized one-per-line as JSON:

    logger = get_system_logger()
    logger.warning(
        {
            "event": "pat_issuance_failed",
            "message": "Personal access token generation failed",
            "component": "broker",
            "details": {"status_code": 403},
        }
    )

Until configure_system_logger() is called, records propagate to the root
logger so applications embedding the broker keep control of output.
"""

from __future__ import annotations

__all__ = [
    "ISO8601JsonFormatter",
    "configure_system_logger",
    "get_system_logger",
]

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from authority_broker.constants import SYSTEM_LOG_FILE_NAME, SYSTEM_LOGGER_NAME


class ISO8601JsonFormatter(logging.Formatter):
    """Format dict log messages as single-line JSON with time and level."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
        }
        if isinstance(record.msg, dict):
            payload.update(record.msg)
        else:
            payload["message"] = record.getMessage()

        if record.exc_info and "stacktrace" not in payload:
            payload["stacktrace"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str, ensure_ascii=False)


def get_system_logger() -> logging.Logger:
    """Get the authority-broker system logger."""
    return logging.getLogger(SYSTEM_LOGGER_NAME)


def configure_system_logger(
    log_dir: Path | None = None,
    log_level: str = "INFO",
    *,
    console: bool = True,
) -> logging.Logger:
    """Attach JSON handlers to the system logger.

    Args:
        log_dir: Directory for system.jsonl. No file handler when None.
        log_level: Minimum level for the file handler ("DEBUG" or "INFO").
        console: Also write WARNING and above to stderr.

    Returns:
        The configured system logger.
    """
    logger = get_system_logger()
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = ISO8601JsonFormatter()
    logger.setLevel(log_level)

    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_dir / SYSTEM_LOG_FILE_NAME, encoding="utf-8")
        file_handler.setFormatter(formatter)
        file_handler.setLevel(log_level)
        logger.addHandler(file_handler)

    if console:
        stream_handler = logging.StreamHandler(sys.stderr)
        stream_handler.setFormatter(formatter)
        stream_handler.setLevel(logging.WARNING)
        logger.addHandler(stream_handler)

    logger.propagate = not logger.handlers
    return logger
