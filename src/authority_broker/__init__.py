"""authority-broker: token acquisition and personal access token broker.

Obtains, refreshes and exchanges tokens with an identity authority, mints
scope-restricted personal access tokens from access tokens, and validates
basic credentials against the same REST service.
"""

__version__ = "0.1.0"

from authority_broker.authority import HostMode, resolve_authority_url
from authority_broker.broker import AuthorityBroker
from authority_broker.engine import (
    AuthorizationEngine,
    AuthResult,
    OAuthAuthorizationEngine,
    PromptBehavior,
    TokenCache,
    UserIdentity,
)
from authority_broker.exceptions import AuthorityError, BrokerError, ConfigError, PreconditionError
from authority_broker.outcome import FailureKind, Outcome
from authority_broker.tokens import Credential, Token, TokenPair, TokenScope, TokenType

__all__ = [
    "AuthResult",
    "AuthorityBroker",
    "AuthorityError",
    "AuthorizationEngine",
    "BrokerError",
    "ConfigError",
    "Credential",
    "FailureKind",
    "HostMode",
    "OAuthAuthorizationEngine",
    "Outcome",
    "PreconditionError",
    "PromptBehavior",
    "Token",
    "TokenCache",
    "TokenPair",
    "TokenScope",
    "TokenType",
    "UserIdentity",
    "__version__",
    "resolve_authority_url",
]
