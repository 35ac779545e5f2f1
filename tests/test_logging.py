"""Tests for system and audit logging."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from authority_broker.telemetry.audit.auth_logger import AuthLogger, create_auth_logger
from authority_broker.telemetry.models.audit import AuthEvent
from authority_broker.telemetry.system.system_logger import (
    ISO8601JsonFormatter,
    configure_system_logger,
    get_system_logger,
)


def _read_jsonl(path: Path) -> list[dict]:
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines() if line]


# ============================================================================
# Tests: ISO8601JsonFormatter
# ============================================================================


class TestFormatter:
    """Tests for JSON line formatting."""

    def test_dict_message_is_merged(self):
        # Arrange
        record = logging.LogRecord("x", logging.WARNING, __file__, 1, {"event": "e", "details": {"a": 1}}, None, None)

        # Act
        payload = json.loads(ISO8601JsonFormatter().format(record))

        # Assert
        assert payload["level"] == "WARNING"
        assert payload["event"] == "e"
        assert payload["details"] == {"a": 1}
        assert payload["time"].endswith("+00:00")

    def test_string_message_becomes_message_field(self):
        # Arrange
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "hello %s", ("world",), None)

        # Act
        payload = json.loads(ISO8601JsonFormatter().format(record))

        # Assert
        assert payload["message"] == "hello world"


# ============================================================================
# Tests: system logger
# ============================================================================


class TestSystemLogger:
    """Tests for configure_system_logger."""

    def test_writes_jsonl_file(self, tmp_path: Path):
        # Arrange
        configure_system_logger(tmp_path, "INFO", console=False)

        # Act
        get_system_logger().info({"event": "pat_issued", "component": "broker"})
        get_system_logger().debug({"event": "hidden"})
        for handler in get_system_logger().handlers:
            handler.flush()

        # Assert
        entries = _read_jsonl(tmp_path / "system.jsonl")
        assert [entry["event"] for entry in entries] == ["pat_issued"]

    def test_debug_level_is_honored(self, tmp_path: Path):
        # Arrange
        configure_system_logger(tmp_path, "DEBUG", console=False)

        # Act
        get_system_logger().debug({"event": "credential_validation_status"})
        for handler in get_system_logger().handlers:
            handler.flush()

        # Assert
        assert _read_jsonl(tmp_path / "system.jsonl")[0]["event"] == "credential_validation_status"

    def test_unconfigured_logger_propagates(self):
        assert get_system_logger().propagate is True

    def test_reconfigure_replaces_handlers(self, tmp_path: Path):
        # Act
        configure_system_logger(tmp_path, console=True)
        configure_system_logger(tmp_path, console=True)

        # Assert
        assert len(get_system_logger().handlers) == 2
        assert get_system_logger().propagate is False


# ============================================================================
# Tests: auth audit logger
# ============================================================================


class TestAuthLogger:
    """Tests for audit events."""

    def test_events_are_written_without_secrets(self, tmp_path: Path):
        # Arrange
        path = tmp_path / "audit" / "auth.jsonl"
        auth_logger = create_auth_logger(path)

        # Act
        auth_logger.log_token_acquired(
            flow="credentials", target_host="dev.azure.com", client_id="client", has_refresh_token=True
        )
        auth_logger.log_pat_issuance_failed(target_host="dev.azure.com", failure_kind="rejected", status_code=403)

        # Assert
        entries = _read_jsonl(path)
        assert entries[0]["event_type"] == "token_acquired"
        assert entries[0]["status"] == "Success"
        assert entries[0]["token_type"] == "access"
        assert entries[0]["details"] == {"has_refresh_token": True}
        assert entries[1]["status"] == "Failure"
        assert entries[1]["status_code"] == 403
        assert "error_message" not in entries[1]
        assert "time" in entries[0]

    def test_without_path_events_are_discarded(self):
        # Act
        auth_logger = create_auth_logger(None)

        # Assert
        assert auth_logger.log_credentials_validated(target_host="dev.azure.com") is True

    def test_write_failure_is_reported_not_raised(self, caplog: pytest.LogCaptureFixture):
        """Given a logger that raises OSError, the event returns False and the system logger reports it."""
        # Arrange
        broken = MagicMock(spec=logging.Logger)
        broken.info.side_effect = OSError("disk full")
        auth_logger = AuthLogger(broken)

        # Act
        with caplog.at_level(logging.ERROR, logger="authority-broker.system"):
            result = auth_logger.log_token_refreshed(target_host="dev.azure.com")

        # Assert
        assert result is False
        assert any(
            isinstance(r.msg, dict) and r.msg["event"] == "audit_log_write_failed" for r in caplog.records
        )

    def test_event_model_rejects_unknown_fields(self):
        with pytest.raises(ValueError):
            AuthEvent(event_type="pat_issued", status="Success", token="secret")
