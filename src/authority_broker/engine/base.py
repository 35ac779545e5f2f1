"""Authorization engine contract and token cache.

The broker does not speak OAuth itself. It delegates the protocol exchange to
an AuthorizationEngine and normalizes the AuthResult it returns. Any object
implementing the protocol can be injected, which keeps the broker testable
with fakes and allows alternative engines.

The TokenCache is shared mutable state: one instance is owned by the broker
for its whole lifetime and handed to the engine, which reads and writes it.
"""

from __future__ import annotations

__all__ = [
    "AuthResult",
    "AuthorizationEngine",
    "CacheKey",
    "PromptBehavior",
    "TokenCache",
    "UserIdentity",
]

import threading
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, NamedTuple, Protocol, runtime_checkable

from pydantic import BaseModel, Field

from authority_broker.constants import TOKEN_EXPIRY_SKEW_SECONDS
from authority_broker.exceptions import AuthorityError


class PromptBehavior(str, Enum):
    """Whether the interactive flow may reuse an existing sign-in."""

    AUTO = "auto"
    ALWAYS = "always"


class UserIdentity(str, Enum):
    """Which user the interactive flow authenticates."""

    ANY = "any"


class AuthResult(BaseModel):
    """Result of a successful exchange with the authority.

    Attributes:
        access_token: Access token value.
        refresh_token: Refresh token value, if issued.
        expires_at: Access token expiry, if reported.
        token_type: Token type reported by the authority (usually "Bearer").
        resource: Resource the token was issued for, if reported.
    """

    access_token: str = Field(min_length=1)
    refresh_token: str | None = None
    expires_at: datetime | None = None
    token_type: str = "Bearer"
    resource: str | None = None

    @classmethod
    def from_token_response(cls, data: dict[str, Any], now: datetime | None = None) -> "AuthResult":
        """Parse an OAuth token endpoint response.

        Expiry is taken from ``expires_on`` (epoch seconds) when present,
        otherwise from ``expires_in`` (seconds from now).

        Args:
            data: Decoded JSON token response.
            now: Reference time for ``expires_in`` (default: current UTC time).

        Returns:
            Parsed AuthResult.

        Raises:
            AuthorityError: If the response carries no access token.
        """
        access_token = data.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise AuthorityError("Token response did not contain an access_token")

        now = now or datetime.now(timezone.utc)
        expires_at: datetime | None = None
        try:
            if data.get("expires_on") is not None:
                expires_at = datetime.fromtimestamp(int(data["expires_on"]), tz=timezone.utc)
            elif data.get("expires_in") is not None:
                expires_at = now + timedelta(seconds=int(data["expires_in"]))
        except (TypeError, ValueError, OverflowError):
            expires_at = None

        refresh_token = data.get("refresh_token")
        return cls(
            access_token=access_token,
            refresh_token=refresh_token if isinstance(refresh_token, str) and refresh_token else None,
            expires_at=expires_at,
            token_type=str(data.get("token_type") or "Bearer"),
            resource=data.get("resource") if isinstance(data.get("resource"), str) else None,
        )

    def is_expired(self, skew_seconds: int = TOKEN_EXPIRY_SKEW_SECONDS) -> bool:
        """Check whether the access token expires within the skew window.

        Results without an expiry are treated as expired, so they are never
        served from cache without a refresh.
        """
        if self.expires_at is None:
            return True
        return datetime.now(timezone.utc) + timedelta(seconds=skew_seconds) >= self.expires_at


@runtime_checkable
class AuthorizationEngine(Protocol):
    """Protocol for the engine that performs the OAuth exchange.

    All methods raise AuthorityError when the authority refuses the request.
    Transport failures may surface as httpx.HTTPError.
    """

    def authenticate_interactive(
        self,
        authority_url: str,
        resource: str,
        client_id: str,
        redirect_uri: str,
        prompt: PromptBehavior = PromptBehavior.ALWAYS,
        identity: UserIdentity = UserIdentity.ANY,
        extra_query: str = "",
    ) -> AuthResult:
        """Authenticate through a user-facing dialog (blocking)."""
        ...

    async def authenticate_with_credentials(
        self,
        authority_url: str,
        resource: str,
        client_id: str,
        username: str | None = None,
        password: str | None = None,
    ) -> AuthResult:
        """Authenticate a specific user, or the default user from cached state."""
        ...

    async def authenticate_with_refresh_token(
        self,
        authority_url: str,
        refresh_token_value: str,
        client_id: str,
        resource: str,
    ) -> AuthResult:
        """Exchange a refresh token for new tokens."""
        ...


class CacheKey(NamedTuple):
    """Cache key: authority URL, client ID and resource."""

    authority_url: str
    client_id: str
    resource: str


class TokenCache:
    """In-memory token cache keyed by authority, client and resource.

    Memory only; nothing is persisted. Access is serialized with a
    threading.Lock because the interactive flow runs synchronously and may
    be driven from a worker thread while async acquisitions are in flight.
    """

    def __init__(self) -> None:
        self._entries: dict[CacheKey, AuthResult] = {}
        self._lock = threading.Lock()

    @staticmethod
    def key(authority_url: str, client_id: str, resource: str) -> CacheKey:
        return CacheKey(authority_url.rstrip("/").lower(), client_id, resource)

    def get(self, authority_url: str, client_id: str, resource: str) -> AuthResult | None:
        with self._lock:
            return self._entries.get(self.key(authority_url, client_id, resource))

    def set(self, authority_url: str, client_id: str, resource: str, result: AuthResult) -> None:
        with self._lock:
            self._entries[self.key(authority_url, client_id, resource)] = result

    def remove(self, authority_url: str, client_id: str, resource: str) -> None:
        with self._lock:
            self._entries.pop(self.key(authority_url, client_id, resource), None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
