"""Pydantic models for telemetry events."""

from authority_broker.telemetry.models.audit import AuthEvent

__all__ = ["AuthEvent"]
