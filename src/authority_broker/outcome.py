"""Result type for broker operations.

Every broker operation has an ``*_outcome`` variant returning an Outcome, so
callers can tell a refused authority from an unreachable network from a
malformed response. The plain variants (returning None or False on failure)
are renderings of the same Outcome.
"""

from __future__ import annotations

__all__ = [
    "FailureKind",
    "Outcome",
]

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


class FailureKind(str, Enum):
    """Why an operation produced no result.

    AUTHORITY: the authorization engine refused or failed the exchange.
    TRANSPORT: no usable response (connection error, TLS failure, timeout).
    REJECTED: the remote service answered with a non-success status.
    MALFORMED_RESPONSE: success status but the expected content is missing.
    """

    AUTHORITY = "authority"
    TRANSPORT = "transport"
    REJECTED = "rejected"
    MALFORMED_RESPONSE = "malformed_response"


@dataclass(frozen=True, slots=True)
class Outcome(Generic[T]):
    """Either a value or a classified failure.

    Attributes:
        value: Result on success, None on failure.
        failure: Failure classification, None on success.
        status_code: HTTP status of the remote response, when one was received.
        detail: Human-readable failure description (never contains secrets).
    """

    value: T | None = None
    failure: FailureKind | None = None
    status_code: int | None = None
    detail: str | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    @classmethod
    def success(cls, value: T, *, status_code: int | None = None) -> "Outcome[T]":
        return cls(value=value, status_code=status_code)

    @classmethod
    def failed(
        cls,
        kind: FailureKind,
        detail: str | None = None,
        *,
        status_code: int | None = None,
    ) -> "Outcome[T]":
        return cls(failure=kind, status_code=status_code, detail=detail)
