"""Default authorization engine speaking the Azure AD v1 OAuth endpoints.

Grants supported:
- authorization_code: interactive sign-in. The authorize URL is handed to a
  caller-supplied code receiver (e.g., opens a browser and asks the user to
  paste the redirected URL), then the code is exchanged for tokens.
- password: resource owner credentials for a specific user.
- refresh_token: renewal without user interaction.

Without explicit credentials, authenticate_with_credentials serves the
cached result for (authority, client, resource), refreshing it when the
access token is about to expire.

Every successful exchange is written to the shared TokenCache.
"""

from __future__ import annotations

__all__ = [
    "CodeReceiver",
    "OAuthAuthorizationEngine",
    "extract_authorization_code",
]

import json
import logging
import secrets
from typing import Any, Callable
from urllib.parse import parse_qs, urlencode, urlsplit

import httpx

from authority_broker.constants import (
    AUTHORIZE_ENDPOINT_PATH,
    DEFAULT_HTTP_TIMEOUT_SECONDS,
    TOKEN_ENDPOINT_PATH,
)
from authority_broker.engine.base import AuthResult, PromptBehavior, TokenCache, UserIdentity
from authority_broker.exceptions import AuthorityError

logger = logging.getLogger(__name__)

# Receives the authorize URL, returns the redirected URL (or the bare code)
CodeReceiver = Callable[[str], str]

_FORM_HEADERS = {"Accept": "application/json"}


def extract_authorization_code(response: str, expected_state: str | None = None) -> str:
    """Extract the authorization code from a redirect URL or a bare code.

    Args:
        response: Redirected URL (``https://host/cb?code=...&state=...``),
            its query string, or the code itself.
        expected_state: State sent with the authorize request. Checked when
            the response carries a state parameter.

    Returns:
        The authorization code.

    Raises:
        AuthorityError: If the authority returned an error, the state does
            not match, or no code could be found.
    """
    text = response.strip()
    if not text:
        raise AuthorityError("No authorization response received")

    if "://" in text:
        query = urlsplit(text).query
    elif "=" in text:
        query = text.lstrip("?")
    else:
        return text

    params = parse_qs(query)
    error = params.get("error", [None])[0]
    if error:
        description = params.get("error_description", [None])[0]
        raise AuthorityError(
            f"Authorization was refused: {error}",
            error_code=error,
            description=description,
        )

    state = params.get("state", [None])[0]
    if expected_state is not None and state is not None and state != expected_state:
        raise AuthorityError("Authorization response state does not match the request")

    code = params.get("code", [None])[0]
    if not code:
        raise AuthorityError("Authorization response did not contain a code")
    return code


class OAuthAuthorizationEngine:
    """httpx-based implementation of the AuthorizationEngine protocol.

    Usage:
        cache = TokenCache()
        engine = OAuthAuthorizationEngine(cache, code_receiver=ask_user)
        result = await engine.authenticate_with_refresh_token(
            "https://login.microsoftonline.com/common/dev.azure.com",
            refresh_token,
            client_id,
            resource,
        )
    """

    def __init__(
        self,
        token_cache: TokenCache,
        *,
        code_receiver: CodeReceiver | None = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
    ) -> None:
        """Initialize the engine.

        Args:
            token_cache: Shared cache written after every successful exchange.
            code_receiver: Callback driving the interactive dialog.
            timeout: HTTP timeout for token endpoint requests (seconds).
        """
        self._cache = token_cache
        self._code_receiver = code_receiver
        self._timeout = timeout

    @property
    def token_cache(self) -> TokenCache:
        return self._cache

    # -------------------------------------------------------------------------
    # Interactive (authorization code)
    # -------------------------------------------------------------------------

    def build_authorize_url(
        self,
        authority_url: str,
        resource: str,
        client_id: str,
        redirect_uri: str,
        *,
        prompt: PromptBehavior = PromptBehavior.ALWAYS,
        state: str | None = None,
        extra_query: str = "",
    ) -> str:
        """Build the authorize endpoint URL for the interactive dialog.

        Args:
            authority_url: Resolved authority URL.
            resource: Resource the token is requested for.
            client_id: Client application ID.
            redirect_uri: Registered redirect URI.
            prompt: ALWAYS forces the credential UI (prompt=login).
            state: Opaque value echoed back by the authority.
            extra_query: Additional query parameters, appended verbatim.

        Returns:
            Authorize URL to open in a browser.
        """
        params: dict[str, str] = {
            "response_type": "code",
            "client_id": client_id,
            "redirect_uri": redirect_uri,
            "resource": resource,
        }
        if prompt is PromptBehavior.ALWAYS:
            params["prompt"] = "login"
        if state:
            params["state"] = state

        url = f"{authority_url.rstrip('/')}{AUTHORIZE_ENDPOINT_PATH}?{urlencode(params)}"
        extra = extra_query.strip().lstrip("?&")
        if extra:
            url = f"{url}&{extra}"
        return url

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
        """Run the authorization code flow (blocking).

        Raises:
            AuthorityError: If no code receiver is configured, the user or
                authority refuses, or the code exchange fails.
            httpx.HTTPError: On transport failure.
        """
        if self._code_receiver is None:
            raise AuthorityError("Interactive authentication requires a code receiver")

        state = secrets.token_urlsafe(16)
        authorize_url = self.build_authorize_url(
            authority_url,
            resource,
            client_id,
            redirect_uri,
            prompt=prompt,
            state=state,
            extra_query=extra_query,
        )
        code = extract_authorization_code(self._code_receiver(authorize_url), expected_state=state)

        data = {
            "grant_type": "authorization_code",
            "client_id": client_id,
            "code": code,
            "redirect_uri": redirect_uri,
            "resource": resource,
        }
        with httpx.Client(timeout=self._timeout) as client:
            response = client.post(self._token_url(authority_url), data=data, headers=_FORM_HEADERS)

        result = self._parse_token_response(response, grant="authorization_code")
        self._cache.set(authority_url, client_id, resource, result)
        return result

    # -------------------------------------------------------------------------
    # Non-interactive
    # -------------------------------------------------------------------------

    async def authenticate_with_credentials(
        self,
        authority_url: str,
        resource: str,
        client_id: str,
        username: str | None = None,
        password: str | None = None,
    ) -> AuthResult:
        """Authenticate with a password grant, or from cache when no user is given.

        Raises:
            AuthorityError: If the authority refuses, or nothing usable is cached.
            httpx.HTTPError: On transport failure.
        """
        if username is None and password is None:
            return await self._authenticate_from_cache(authority_url, resource, client_id)

        if not username or password is None:
            raise AuthorityError("Username and password must be supplied together")

        data = {
            "grant_type": "password",
            "client_id": client_id,
            "resource": resource,
            "username": username,
            "password": password,
        }
        result = await self._request_token(authority_url, data, grant="password")
        self._cache.set(authority_url, client_id, resource, result)
        return result

    async def authenticate_with_refresh_token(
        self,
        authority_url: str,
        refresh_token_value: str,
        client_id: str,
        resource: str,
    ) -> AuthResult:
        """Redeem a refresh token.

        When the authority does not rotate the refresh token, the one that
        was redeemed is kept on the result.

        Raises:
            AuthorityError: If the authority refuses the refresh token.
            httpx.HTTPError: On transport failure.
        """
        data = {
            "grant_type": "refresh_token",
            "client_id": client_id,
            "resource": resource,
            "refresh_token": refresh_token_value,
        }
        result = await self._request_token(authority_url, data, grant="refresh_token")
        if result.refresh_token is None:
            result = result.model_copy(update={"refresh_token": refresh_token_value})

        self._cache.set(authority_url, client_id, resource, result)
        return result

    async def _authenticate_from_cache(self, authority_url: str, resource: str, client_id: str) -> AuthResult:
        cached = self._cache.get(authority_url, client_id, resource)
        if cached is None:
            raise AuthorityError(
                f"No cached token for {authority_url}; interactive sign-in is required",
                error_code="interaction_required",
            )

        if not cached.is_expired():
            logger.debug("Serving cached token for %s", authority_url)
            return cached

        if not cached.refresh_token:
            self._cache.remove(authority_url, client_id, resource)
            raise AuthorityError(
                "Cached token expired and no refresh token is available",
                error_code="interaction_required",
            )

        logger.debug("Cached token for %s expired, refreshing", authority_url)
        return await self.authenticate_with_refresh_token(authority_url, cached.refresh_token, client_id, resource)

    async def _request_token(self, authority_url: str, data: dict[str, str], *, grant: str) -> AuthResult:
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            response = await client.post(self._token_url(authority_url), data=data, headers=_FORM_HEADERS)
        return self._parse_token_response(response, grant=grant)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _token_url(authority_url: str) -> str:
        return f"{authority_url.rstrip('/')}{TOKEN_ENDPOINT_PATH}"

    @staticmethod
    def _parse_token_response(response: httpx.Response, *, grant: str) -> AuthResult:
        """Turn a token endpoint response into an AuthResult.

        Raises:
            AuthorityError: On error status or an unusable body.
        """
        try:
            payload: Any = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            payload = None

        if response.status_code != 200:
            error_code = payload.get("error") if isinstance(payload, dict) else None
            description = payload.get("error_description") if isinstance(payload, dict) else None
            raise AuthorityError(
                f"Token request ({grant}) failed with HTTP {response.status_code}"
                + (f": {error_code}" if error_code else ""),
                error_code=error_code,
                description=description,
            )

        if not isinstance(payload, dict):
            raise AuthorityError(f"Token response ({grant}) is not a JSON object")

        return AuthResult.from_token_response(payload)
