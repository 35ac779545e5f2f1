"""Authorization engines.

The broker consumes the AuthorizationEngine protocol; OAuthAuthorizationEngine
is the default implementation against the Azure AD v1 endpoints.
"""

from authority_broker.engine.base import (
    AuthorizationEngine,
    AuthResult,
    CacheKey,
    PromptBehavior,
    TokenCache,
    UserIdentity,
)
from authority_broker.engine.oauth import (
    CodeReceiver,
    OAuthAuthorizationEngine,
    extract_authorization_code,
)

__all__ = [
    "AuthResult",
    "AuthorizationEngine",
    "CacheKey",
    "CodeReceiver",
    "OAuthAuthorizationEngine",
    "PromptBehavior",
    "TokenCache",
    "UserIdentity",
    "extract_authorization_code",
]
