"""Exception hierarchy for authority-broker.

PreconditionError marks programming errors and is never caught by the broker.
AuthorityError is raised by authorization engines and recovered by the broker.
"""

from __future__ import annotations

__all__ = [
    "AuthorityError",
    "BrokerError",
    "ConfigError",
    "PreconditionError",
]


class BrokerError(Exception):
    """Base class for all authority-broker errors."""


class PreconditionError(BrokerError, ValueError):
    """Raised when a required input is absent, blank or of the wrong kind."""


class ConfigError(BrokerError, ValueError):
    """Raised when the configuration file is invalid or unreadable."""


class AuthorityError(BrokerError):
    """Raised when the identity authority refuses or fails an exchange.

    Attributes:
        error_code: OAuth error code (e.g., "invalid_grant"), if known.
        description: Authority-provided error description, if any.
    """

    def __init__(
        self,
        message: str,
        *,
        error_code: str | None = None,
        description: str | None = None,
    ) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.description = description
