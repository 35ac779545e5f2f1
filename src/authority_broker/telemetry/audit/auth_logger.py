"""Authentication audit logger.

Logs broker outcomes to audit/auth.jsonl:
- Token acquisition (interactive, credentials, cached) success/failure
- Refresh-token renewal success/failure
- Personal access token issuance success/failure
- Basic credential validation accepted/rejected

If writing the audit log fails, the failure is reported on the system
logger and the broker operation continues.
"""

from __future__ import annotations

import logging
from pathlib import Path

from authority_broker.constants import AUTH_LOGGER_NAME
from authority_broker.telemetry.models.audit import AuthEvent, AuthEventType, AuthFlow
from authority_broker.telemetry.system.system_logger import ISO8601JsonFormatter, get_system_logger

_system_logger = get_system_logger()


class AuthLogger:
    """Audit logger for authentication events.

    Usage:
        logger = create_auth_logger(log_path=Path("~/logs/audit/auth.jsonl"))
        logger.log_pat_issued(target_host="dev.azure.com", details={"compact": True})
    """

    def __init__(self, logger: logging.Logger) -> None:
        """Initialize auth logger.

        Args:
            logger: Logger with a JSON formatter attached.
        """
        self._logger = logger

    def _log_event(self, event: AuthEvent) -> bool:
        """Log an auth event.

        Returns:
            True if logged, False if the handler raised.
        """
        event_data = event.model_dump(mode="json", exclude={"time"}, exclude_none=True)
        try:
            self._logger.info(event_data)
        except (OSError, ValueError) as e:
            _system_logger.error(
                {
                    "event": "audit_log_write_failed",
                    "message": "Could not write authentication audit event",
                    "component": "auth_logger",
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                    "details": {"event_type": event.event_type},
                }
            )
            return False
        return True

    def _emit(
        self,
        event_type: AuthEventType,
        *,
        success: bool,
        flow: AuthFlow | None = None,
        target_host: str | None = None,
        client_id: str | None = None,
        token_type: str | None = None,
        failure_kind: str | None = None,
        status_code: int | None = None,
        error_type: str | None = None,
        error_message: str | None = None,
        details: dict | None = None,
    ) -> bool:
        event = AuthEvent(
            event_type=event_type,
            status="Success" if success else "Failure",
            flow=flow,
            target_host=target_host,
            client_id=client_id,
            token_type=token_type,
            failure_kind=failure_kind,
            status_code=status_code,
            error_type=error_type,
            error_message=error_message,
            details=details,
        )
        return self._log_event(event)

    def log_token_acquired(
        self,
        *,
        flow: AuthFlow,
        target_host: str | None = None,
        client_id: str | None = None,
        has_refresh_token: bool = False,
    ) -> bool:
        """Log a successful interactive or credentialed acquisition."""
        return self._emit(
            "token_acquired",
            success=True,
            flow=flow,
            target_host=target_host,
            client_id=client_id,
            token_type="access",
            details={"has_refresh_token": has_refresh_token},
        )

    def log_token_acquisition_failed(
        self,
        *,
        flow: AuthFlow,
        target_host: str | None = None,
        client_id: str | None = None,
        failure_kind: str | None = None,
        error_type: str | None = None,
        error_message: str | None = None,
    ) -> bool:
        """Log a failed interactive or credentialed acquisition."""
        return self._emit(
            "token_acquisition_failed",
            success=False,
            flow=flow,
            target_host=target_host,
            client_id=client_id,
            failure_kind=failure_kind,
            error_type=error_type,
            error_message=error_message,
        )

    def log_token_refreshed(
        self,
        *,
        target_host: str | None = None,
        client_id: str | None = None,
        has_refresh_token: bool = False,
    ) -> bool:
        """Log a successful refresh-token renewal."""
        return self._emit(
            "token_refreshed",
            success=True,
            flow="refresh_token",
            target_host=target_host,
            client_id=client_id,
            token_type="access",
            details={"has_refresh_token": has_refresh_token},
        )

    def log_token_refresh_failed(
        self,
        *,
        target_host: str | None = None,
        client_id: str | None = None,
        failure_kind: str | None = None,
        error_type: str | None = None,
        error_message: str | None = None,
    ) -> bool:
        """Log a failed refresh-token renewal."""
        return self._emit(
            "token_refresh_failed",
            success=False,
            flow="refresh_token",
            target_host=target_host,
            client_id=client_id,
            failure_kind=failure_kind,
            error_type=error_type,
            error_message=error_message,
        )

    def log_pat_issued(
        self,
        *,
        target_host: str | None = None,
        details: dict | None = None,
    ) -> bool:
        """Log a personal access token issuance."""
        return self._emit(
            "pat_issued",
            success=True,
            flow="pat",
            target_host=target_host,
            token_type="personal_access",
            status_code=200,
            details=details,
        )

    def log_pat_issuance_failed(
        self,
        *,
        target_host: str | None = None,
        failure_kind: str | None = None,
        status_code: int | None = None,
        error_type: str | None = None,
        error_message: str | None = None,
    ) -> bool:
        """Log a failed personal access token issuance."""
        return self._emit(
            "pat_issuance_failed",
            success=False,
            flow="pat",
            target_host=target_host,
            failure_kind=failure_kind,
            status_code=status_code,
            error_type=error_type,
            error_message=error_message,
        )

    def log_credentials_validated(self, *, target_host: str | None = None) -> bool:
        """Log basic credentials accepted by the profile endpoint."""
        return self._emit(
            "credentials_validated",
            success=True,
            flow="basic",
            target_host=target_host,
            status_code=200,
        )

    def log_credentials_rejected(
        self,
        *,
        target_host: str | None = None,
        failure_kind: str | None = None,
        status_code: int | None = None,
        error_type: str | None = None,
        error_message: str | None = None,
    ) -> bool:
        """Log basic credentials that could not be validated."""
        return self._emit(
            "credentials_rejected",
            success=False,
            flow="basic",
            target_host=target_host,
            failure_kind=failure_kind,
            status_code=status_code,
            error_type=error_type,
            error_message=error_message,
        )


def create_auth_logger(log_path: Path | None = None) -> AuthLogger:
    """Create an auth logger.

    Args:
        log_path: Path to auth.jsonl. Without a path, events are discarded.

    Returns:
        AuthLogger: Configured logger for authentication events.
    """
    logger = logging.getLogger(AUTH_LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    logger.setLevel(logging.INFO)
    logger.propagate = False

    if log_path is None:
        logger.addHandler(logging.NullHandler())
    else:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_path, encoding="utf-8")
        handler.setFormatter(ISO8601JsonFormatter())
        logger.addHandler(handler)

    return AuthLogger(logger)
