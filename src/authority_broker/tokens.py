"""Token, credential and scope models.

Token and TokenPair are immutable and created only by the broker as the
result of a successful acquisition or issuance. Their bearer values are
excluded from repr() so they never end up in logs or tracebacks.
"""

from __future__ import annotations

__all__ = [
    "Credential",
    "Token",
    "TokenPair",
    "TokenScope",
    "TokenType",
]

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Iterable

from authority_broker.exceptions import PreconditionError

if TYPE_CHECKING:
    from authority_broker.engine.base import AuthResult


class TokenType(str, Enum):
    """Kinds of token the broker hands out."""

    ACCESS = "access"
    REFRESH = "refresh"
    PERSONAL_ACCESS = "personal_access"


@dataclass(frozen=True, slots=True)
class Token:
    """Opaque bearer material tagged with its type."""

    value: str = field(repr=False)
    type: TokenType

    @property
    def is_blank(self) -> bool:
        return not self.value or not self.value.strip()


@dataclass(frozen=True, slots=True)
class TokenPair:
    """Access token plus optional refresh token and expiry.

    Attributes:
        access: Access-typed token (always present).
        refresh: Refresh-typed token, if the authority issued one.
        expires_at: Access token expiry (timezone-aware), if reported.
    """

    access: Token
    refresh: Token | None = None
    expires_at: datetime | None = None

    def __post_init__(self) -> None:
        if self.access.type is not TokenType.ACCESS:
            raise PreconditionError("access token of a TokenPair must be of type ACCESS")
        if self.refresh is not None and self.refresh.type is not TokenType.REFRESH:
            raise PreconditionError("refresh token of a TokenPair must be of type REFRESH")

    @classmethod
    def from_auth_result(cls, result: "AuthResult") -> "TokenPair":
        """Normalize an authorization engine result.

        Args:
            result: Result returned by an AuthorizationEngine.

        Returns:
            TokenPair holding the access token and, when present, the refresh token.
        """
        refresh = Token(result.refresh_token, TokenType.REFRESH) if result.refresh_token else None
        return cls(
            access=Token(result.access_token, TokenType.ACCESS),
            refresh=refresh,
            expires_at=result.expires_at,
        )


@dataclass(frozen=True, slots=True)
class Credential:
    """Username and password supplied by the caller for a single call."""

    username: str
    password: str = field(repr=False)

    @staticmethod
    def validate(credential: "Credential | None") -> None:
        """Check a credential is structurally usable.

        Args:
            credential: Credential to check.

        Raises:
            PreconditionError: If the credential is absent or a field is empty.
        """
        if credential is None:
            raise PreconditionError("credentials are required")
        if not isinstance(credential, Credential):
            raise PreconditionError(f"expected Credential, got {type(credential).__name__}")
        if not credential.username:
            raise PreconditionError("credential username is empty")
        if not credential.password:
            raise PreconditionError("credential password is empty")


class TokenScope:
    """Set of permissions requested for a personal access token.

    Scope names keep their first-seen order and are serialized as one
    space-separated string. Well-known Azure DevOps scopes are available as
    class attributes and combine with ``|``:

        >>> scope = TokenScope.CODE_WRITE | TokenScope.PACKAGING
        >>> str(scope)
        'vso.code_write vso.packaging'
    """

    __slots__ = ("_names",)

    BUILD_ACCESS: "TokenScope"
    BUILD_EXECUTE: "TokenScope"
    CHAT_WRITE: "TokenScope"
    CHAT_MANAGE: "TokenScope"
    CODE_READ: "TokenScope"
    CODE_WRITE: "TokenScope"
    CODE_MANAGE: "TokenScope"
    CODE_STATUS: "TokenScope"
    CONNECTED_SERVER: "TokenScope"
    IDENTITY_READ: "TokenScope"
    PACKAGING: "TokenScope"
    PACKAGING_WRITE: "TokenScope"
    PACKAGING_MANAGE: "TokenScope"
    PROFILE_READ: "TokenScope"
    PROJECT_READ: "TokenScope"
    PROJECT_WRITE: "TokenScope"
    PROJECT_MANAGE: "TokenScope"
    RELEASE_READ: "TokenScope"
    RELEASE_EXECUTE: "TokenScope"
    RELEASE_MANAGE: "TokenScope"
    SERVICE_ENDPOINT_READ: "TokenScope"
    TEST_READ: "TokenScope"
    TEST_WRITE: "TokenScope"
    WORK_READ: "TokenScope"
    WORK_WRITE: "TokenScope"

    def __init__(self, names: Iterable[str] = ()) -> None:
        seen: dict[str, None] = {}
        for name in names:
            name = name.strip()
            if name:
                seen.setdefault(name, None)
        self._names: tuple[str, ...] = tuple(seen)

    @classmethod
    def parse(cls, value: str) -> "TokenScope":
        """Build a scope from a space-separated string."""
        return cls(value.split())

    @property
    def names(self) -> tuple[str, ...]:
        return self._names

    @property
    def value(self) -> str:
        return " ".join(self._names)

    def __or__(self, other: "TokenScope") -> "TokenScope":
        if not isinstance(other, TokenScope):
            return NotImplemented
        return TokenScope(self._names + other._names)

    def __and__(self, other: "TokenScope") -> "TokenScope":
        if not isinstance(other, TokenScope):
            return NotImplemented
        return TokenScope(name for name in self._names if name in other._names)

    def __contains__(self, item: object) -> bool:
        if isinstance(item, TokenScope):
            return set(item._names) <= set(self._names)
        return item in self._names

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TokenScope):
            return NotImplemented
        return set(self._names) == set(other._names)

    def __hash__(self) -> int:
        return hash(frozenset(self._names))

    def __bool__(self) -> bool:
        return bool(self._names)

    def __str__(self) -> str:
        return self.value

    def __repr__(self) -> str:
        return f"TokenScope({self.value!r})"


TokenScope.BUILD_ACCESS = TokenScope(["vso.build"])
TokenScope.BUILD_EXECUTE = TokenScope(["vso.build_execute"])
TokenScope.CHAT_WRITE = TokenScope(["vso.chat_write"])
TokenScope.CHAT_MANAGE = TokenScope(["vso.chat_manage"])
TokenScope.CODE_READ = TokenScope(["vso.code"])
TokenScope.CODE_WRITE = TokenScope(["vso.code_write"])
TokenScope.CODE_MANAGE = TokenScope(["vso.code_manage"])
TokenScope.CODE_STATUS = TokenScope(["vso.code_status"])
TokenScope.CONNECTED_SERVER = TokenScope(["vso.connected_server"])
TokenScope.IDENTITY_READ = TokenScope(["vso.identity"])
TokenScope.PACKAGING = TokenScope(["vso.packaging"])
TokenScope.PACKAGING_WRITE = TokenScope(["vso.packaging_write"])
TokenScope.PACKAGING_MANAGE = TokenScope(["vso.packaging_manage"])
TokenScope.PROFILE_READ = TokenScope(["vso.profile"])
TokenScope.PROJECT_READ = TokenScope(["vso.project"])
TokenScope.PROJECT_WRITE = TokenScope(["vso.project_write"])
TokenScope.PROJECT_MANAGE = TokenScope(["vso.project_manage"])
TokenScope.RELEASE_READ = TokenScope(["vso.release"])
TokenScope.RELEASE_EXECUTE = TokenScope(["vso.release_execute"])
TokenScope.RELEASE_MANAGE = TokenScope(["vso.release_manage"])
TokenScope.SERVICE_ENDPOINT_READ = TokenScope(["vso.serviceendpoint"])
TokenScope.TEST_READ = TokenScope(["vso.test"])
TokenScope.TEST_WRITE = TokenScope(["vso.test_write"])
TokenScope.WORK_READ = TokenScope(["vso.work"])
TokenScope.WORK_WRITE = TokenScope(["vso.work_write"])
