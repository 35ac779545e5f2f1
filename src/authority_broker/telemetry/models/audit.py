"""Audit event models.

AuthEvent is one line of audit/auth.jsonl. Token values and passwords are
never part of an event; only their type and the context of the operation.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

AuthEventType = Literal[
    "token_acquired",
    "token_acquisition_failed",
    "token_refreshed",
    "token_refresh_failed",
    "pat_issued",
    "pat_issuance_failed",
    "credentials_validated",
    "credentials_rejected",
]

AuthFlow = Literal["interactive", "credentials", "cached", "refresh_token", "pat", "basic"]


class AuthEvent(BaseModel):
    """One authentication log entry (audit/auth.jsonl).

    Attributes:
        time: ISO 8601 timestamp, added by the formatter during serialization.
        event_type: What happened.
        status: "Success" or "Failure".
        flow: Acquisition or REST flow that produced the event.
        target_host: Host of the target resource URI.
        client_id: Client application ID, for acquisition events.
        token_type: Type of the token produced (never the value).
        failure_kind: FailureKind value for failure events.
        status_code: HTTP status of the remote response, if any.
        error_type: Exception class name, if an exception was recovered.
        error_message: Error description (no secrets).
        details: Extra structured data.
    """

    model_config = ConfigDict(extra="forbid")

    time: str | None = Field(
        None,
        description="ISO 8601 timestamp, added by formatter during serialization",
    )
    event_type: AuthEventType
    status: Literal["Success", "Failure"]

    flow: AuthFlow | None = None
    target_host: str | None = None
    client_id: str | None = None

    token_type: str | None = None

    failure_kind: str | None = None
    status_code: int | None = None
    error_type: str | None = None
    error_message: str | None = None

    details: dict[str, Any] | None = None
