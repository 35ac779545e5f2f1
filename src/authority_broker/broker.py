"""Authority broker: token acquisition, renewal and PAT issuance.

The broker sits between a client application and the identity authority:

1. acquire_interactive / acquire_async / acquire_by_refresh resolve the
   authority for the target host, delegate the OAuth exchange to the
   injected AuthorizationEngine and normalize the result into a TokenPair.
2. issue_pat exchanges an access token for a scoped personal access token
   through the session token REST API.
3. validate probes the profile REST API with basic credentials.

Input violations raise PreconditionError before any network call. Runtime
failures never cross the public boundary: each operation has an
``*_outcome`` variant returning an Outcome with a FailureKind, and a plain
variant that collapses failures to None (or False for validate).
"""

from __future__ import annotations

__all__ = [
    "AuthorityBroker",
    "extract_token_field",
]

import asyncio
import base64
import json
import logging
from functools import partial
from typing import TYPE_CHECKING, Awaitable, TypeVar

import httpx

from authority_broker.authority import HostMode, host_component, require_absolute_uri, resolve_authority_url
from authority_broker.constants import (
    AUTH_LOGGER_NAME,
    AUTH_SCHEME_BASIC,
    AUTH_SCHEME_BEARER,
    COMPACT_TOKEN_TYPE,
    DEFAULT_AUTHORITY_HOST_URL,
    DEFAULT_AUTHORITY_TIMEOUT_SECONDS,
    DEFAULT_HTTP_TIMEOUT_SECONDS,
    DEFAULT_SERVICE_URL,
    HTTP_JSON_CONTENT_TYPE,
    PROFILE_PATH,
    SERVICE_API_VERSION,
    SESSION_TOKEN_PATH,
)
from authority_broker.engine.base import AuthorizationEngine, PromptBehavior, TokenCache, UserIdentity
from authority_broker.engine.oauth import CodeReceiver, OAuthAuthorizationEngine
from authority_broker.exceptions import PreconditionError
from authority_broker.outcome import FailureKind, Outcome
from authority_broker.telemetry.audit.auth_logger import AuthLogger
from authority_broker.telemetry.models.audit import AuthFlow
from authority_broker.telemetry.system.system_logger import get_system_logger
from authority_broker.tokens import Credential, Token, TokenPair, TokenScope, TokenType

if TYPE_CHECKING:
    from authority_broker.config import AppConfig
    from authority_broker.engine.base import AuthResult

T = TypeVar("T")

_system_logger = get_system_logger()

# Engine failures that mean the authority could not be reached
_TRANSPORT_ERRORS = (httpx.HTTPError, TimeoutError, OSError)


def _classify(error: BaseException) -> FailureKind:
    if isinstance(error, _TRANSPORT_ERRORS):
        return FailureKind.TRANSPORT
    return FailureKind.AUTHORITY


def _require_identifier(value: str, name: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise PreconditionError(f"The {name} parameter is null or empty")


def extract_token_field(body: str) -> str | None:
    """Extract the ``token`` field from a session token response body.

    The body is decoded as JSON. Extra fields are ignored; the field name is
    matched case-insensitively and its value must be a non-empty string.

    Args:
        body: Response body text.

    Returns:
        The token value, or None if the body is not a JSON object or has no
        usable ``token`` field.
    """
    try:
        payload = json.loads(body)
    except (ValueError, RecursionError):
        return None

    if not isinstance(payload, dict):
        return None

    candidates = [payload.get("token")]
    candidates.extend(value for key, value in payload.items() if key.lower() == "token" and key != "token")
    for value in candidates:
        if isinstance(value, str) and value.strip():
            return value
    return None


class AuthorityBroker:
    """Broker between a client application and the identity authority.

    Usage:
        broker = AuthorityBroker()
        pair = await broker.acquire_by_refresh(
            "https://dev.azure.com/org",
            client_id,
            "https://management.core.windows.net/",
            Token(refresh_value, TokenType.REFRESH),
        )
        if pair is not None:
            pat = await broker.issue_pat(
                "https://dev.azure.com/org", pair.access, TokenScope.CODE_WRITE, compact=True
            )

    The TokenCache is owned by the broker for its lifetime and shared with
    the engine; the broker itself keeps no other state between calls.
    """

    def __init__(
        self,
        authority_host_url: str = DEFAULT_AUTHORITY_HOST_URL,
        *,
        engine: AuthorizationEngine | None = None,
        token_cache: TokenCache | None = None,
        service_url: str = DEFAULT_SERVICE_URL,
        http_timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
        authority_timeout: float = DEFAULT_AUTHORITY_TIMEOUT_SECONDS,
        auth_logger: AuthLogger | None = None,
        code_receiver: CodeReceiver | None = None,
    ) -> None:
        """Initialize the broker.

        Args:
            authority_host_url: Authority host URL the target host is appended to.
            engine: Authorization engine (default: OAuthAuthorizationEngine).
            token_cache: Token cache shared with the engine (default: new, empty).
            service_url: REST service root for PAT issuance and validation.
            http_timeout: HTTP timeout for REST calls (seconds).
            authority_timeout: Upper bound for one async authority exchange (seconds).
            auth_logger: Audit logger (default: authority-broker.audit.auth logger).
            code_receiver: Interactive callback for the default engine.

        Raises:
            PreconditionError: If authority_host_url or service_url is empty.
        """
        _require_identifier(authority_host_url, "authority_host_url")
        _require_identifier(service_url, "service_url")

        self._authority_host_url = authority_host_url.strip().rstrip("/")
        self._service_url = service_url.strip().rstrip("/")
        self._http_timeout = http_timeout
        self._authority_timeout = authority_timeout
        self._token_cache = token_cache if token_cache is not None else TokenCache()
        self._engine: AuthorizationEngine = engine or OAuthAuthorizationEngine(
            self._token_cache,
            code_receiver=code_receiver,
            timeout=http_timeout,
        )
        self._auth_logger = auth_logger or AuthLogger(logging.getLogger(AUTH_LOGGER_NAME))

    @classmethod
    def from_config(
        cls,
        config: "AppConfig",
        *,
        engine: AuthorizationEngine | None = None,
        auth_logger: AuthLogger | None = None,
        code_receiver: CodeReceiver | None = None,
    ) -> "AuthorityBroker":
        """Create a broker from application configuration."""
        return cls(
            config.authority.host_url,
            engine=engine,
            service_url=config.service.base_url,
            http_timeout=config.service.timeout_seconds,
            authority_timeout=config.authority.timeout_seconds,
            auth_logger=auth_logger,
            code_receiver=code_receiver,
        )

    @property
    def authority_host_url(self) -> str:
        return self._authority_host_url

    @property
    def service_url(self) -> str:
        return self._service_url

    @property
    def token_cache(self) -> TokenCache:
        return self._token_cache

    # -------------------------------------------------------------------------
    # Token acquisition
    # -------------------------------------------------------------------------

    def acquire_interactive(
        self,
        target_uri: str,
        client_id: str,
        resource: str,
        redirect_uri: str,
        extra_query: str | None = None,
    ) -> TokenPair | None:
        """Acquire tokens through the interactive dialog (blocking).

        Always shows the credential UI, for any user identity.

        Returns:
            TokenPair on success, None on any authority or transport failure.

        Raises:
            PreconditionError: If an argument is missing or not absolute.
        """
        return self.acquire_interactive_outcome(target_uri, client_id, resource, redirect_uri, extra_query).value

    def acquire_interactive_outcome(
        self,
        target_uri: str,
        client_id: str,
        resource: str,
        redirect_uri: str,
        extra_query: str | None = None,
    ) -> Outcome[TokenPair]:
        """Like acquire_interactive, returning the classified Outcome."""
        require_absolute_uri(target_uri)
        _require_identifier(client_id, "client_id")
        _require_identifier(resource, "resource")
        require_absolute_uri(redirect_uri, "redirect_uri")

        authority_url = resolve_authority_url(self._authority_host_url, target_uri, HostMode.DNS_SAFE)

        try:
            result = self._engine.authenticate_interactive(
                authority_url,
                resource,
                client_id,
                redirect_uri,
                prompt=PromptBehavior.ALWAYS,
                identity=UserIdentity.ANY,
                extra_query=extra_query or "",
            )
        except Exception as e:
            return self._acquisition_failed("acquire_interactive", "interactive", target_uri, client_id, e)

        return self._acquired("acquire_interactive", "interactive", target_uri, client_id, result)

    async def acquire_async(
        self,
        target_uri: str,
        client_id: str,
        resource: str,
        credentials: Credential | None = None,
    ) -> TokenPair | None:
        """Acquire tokens for a specific user, or for the default user from cache.

        Returns:
            TokenPair on success, None on any authority or transport failure.

        Raises:
            PreconditionError: If an argument is missing or credentials are invalid.
        """
        outcome = await self.acquire_async_outcome(target_uri, client_id, resource, credentials)
        return outcome.value

    async def acquire_async_outcome(
        self,
        target_uri: str,
        client_id: str,
        resource: str,
        credentials: Credential | None = None,
    ) -> Outcome[TokenPair]:
        """Like acquire_async, returning the classified Outcome."""
        require_absolute_uri(target_uri)
        _require_identifier(client_id, "client_id")
        _require_identifier(resource, "resource")
        if credentials is not None:
            Credential.validate(credentials)

        authority_url = resolve_authority_url(self._authority_host_url, target_uri, HostMode.PLAIN)
        flow: AuthFlow = "credentials" if credentials is not None else "cached"

        try:
            result = await self._bounded(
                self._engine.authenticate_with_credentials(
                    authority_url,
                    resource,
                    client_id,
                    username=credentials.username if credentials is not None else None,
                    password=credentials.password if credentials is not None else None,
                )
            )
        except Exception as e:
            return self._acquisition_failed("acquire_async", flow, target_uri, client_id, e)

        return self._acquired("acquire_async", flow, target_uri, client_id, result)

    async def acquire_by_refresh(
        self,
        target_uri: str,
        client_id: str,
        resource: str,
        refresh_token: Token,
    ) -> TokenPair | None:
        """Renew tokens with a refresh token, bypassing any interactive path.

        Returns:
            TokenPair on success, None on any authority or transport failure.

        Raises:
            PreconditionError: If refresh_token is absent, not REFRESH-typed or
                blank, or another argument is invalid.
        """
        outcome = await self.acquire_by_refresh_outcome(target_uri, client_id, resource, refresh_token)
        return outcome.value

    async def acquire_by_refresh_outcome(
        self,
        target_uri: str,
        client_id: str,
        resource: str,
        refresh_token: Token,
    ) -> Outcome[TokenPair]:
        """Like acquire_by_refresh, returning the classified Outcome."""
        require_absolute_uri(target_uri)
        _require_identifier(client_id, "client_id")
        _require_identifier(resource, "resource")
        if refresh_token is None:
            raise PreconditionError("The refresh_token parameter is null")
        if not isinstance(refresh_token, Token) or refresh_token.type is not TokenType.REFRESH:
            raise PreconditionError("The value of the refresh_token parameter is not a refresh token")
        if refresh_token.is_blank:
            raise PreconditionError("The value of the refresh_token parameter is null or empty")

        authority_url = resolve_authority_url(self._authority_host_url, target_uri, HostMode.PLAIN)

        try:
            result = await self._bounded(
                self._engine.authenticate_with_refresh_token(
                    authority_url,
                    refresh_token.value,
                    client_id,
                    resource,
                )
            )
        except Exception as e:
            return self._acquisition_failed("acquire_by_refresh", "refresh_token", target_uri, client_id, e)

        return self._acquired("acquire_by_refresh", "refresh_token", target_uri, client_id, result)

    # -------------------------------------------------------------------------
    # Personal access token issuance
    # -------------------------------------------------------------------------

    async def issue_pat(
        self,
        target_uri: str,
        access_token: Token,
        scope: TokenScope | str,
        compact: bool = False,
    ) -> Token | None:
        """Exchange an access token for a personal access token.

        Args:
            target_uri: Target resource URI (logging context only).
            access_token: ACCESS-typed token presented as bearer credential.
            scope: Scope requested for the PAT.
            compact: Request the compact token variant.

        Returns:
            PERSONAL_ACCESS token on success, None on any failure.

        Raises:
            PreconditionError: If access_token is absent, not ACCESS-typed or
                blank, or scope is empty.
        """
        outcome = await self.issue_pat_outcome(target_uri, access_token, scope, compact)
        return outcome.value

    async def issue_pat_outcome(
        self,
        target_uri: str,
        access_token: Token,
        scope: TokenScope | str,
        compact: bool = False,
    ) -> Outcome[Token]:
        """Like issue_pat, returning the classified Outcome."""
        target_host = host_component(target_uri)
        if access_token is None:
            raise PreconditionError("The access_token parameter is null")
        if not isinstance(access_token, Token) or access_token.type is not TokenType.ACCESS:
            raise PreconditionError("The value of the access_token parameter is not an access token")
        if access_token.is_blank:
            raise PreconditionError("The value of the access_token parameter is null or empty")
        scope_value = self._scope_value(scope)

        _system_logger.info(
            {
                "event": "pat_generation_started",
                "message": f"Generating personal access token for {target_uri}",
                "component": "broker",
                "details": {"target_host": target_host, "compact": compact},
            }
        )

        try:
            headers = {
                "Authorization": f"{AUTH_SCHEME_BEARER} {access_token.value}",
                "Accept": HTTP_JSON_CONTENT_TYPE,
            }
            async with httpx.AsyncClient(timeout=self._http_timeout) as client:
                response = await client.post(
                    self.session_token_url(compact),
                    json={"scope": scope_value},
                    headers=headers,
                )
        except httpx.HTTPError as e:
            return self._pat_failed(target_host, FailureKind.TRANSPORT, f"{type(e).__name__}: {e}", error=e)
        except Exception as e:
            # Request could not be built or sent (e.g., non-ASCII token value)
            return self._pat_failed(
                target_host,
                FailureKind.TRANSPORT,
                f"Unexpected {type(e).__name__} while requesting personal access token: {e}",
                error=e,
            )

        if response.status_code != 200:
            return self._pat_failed(
                target_host,
                FailureKind.REJECTED,
                f"Received {response.status_code} {response.reason_phrase} from the authority; "
                "unable to generate personal access token",
                status_code=response.status_code,
            )

        try:
            token_value = extract_token_field(response.text)
        except Exception as e:
            return self._pat_failed(
                target_host,
                FailureKind.MALFORMED_RESPONSE,
                f"Session token response could not be read: {type(e).__name__}: {e}",
                status_code=response.status_code,
                error=e,
            )
        if token_value is None:
            return self._pat_failed(
                target_host,
                FailureKind.MALFORMED_RESPONSE,
                "Session token response did not contain a token field",
                status_code=response.status_code,
            )

        _system_logger.info(
            {
                "event": "pat_issued",
                "message": "AuthorityBroker.issue_pat succeeded",
                "component": "broker",
                "details": {"target_host": target_host, "compact": compact},
            }
        )
        self._auth_logger.log_pat_issued(
            target_host=target_host,
            details={"compact": compact, "scope": scope_value},
        )
        return Outcome.success(Token(token_value, TokenType.PERSONAL_ACCESS), status_code=200)

    def session_token_url(self, compact: bool = False) -> str:
        """URL of the session token API, optionally selecting compact tokens."""
        url = f"{self._service_url}{SESSION_TOKEN_PATH}?api-version={SERVICE_API_VERSION}"
        if compact:
            url = f"{url}&tokentype={COMPACT_TOKEN_TYPE}"
        return url

    # -------------------------------------------------------------------------
    # Credential validation
    # -------------------------------------------------------------------------

    async def validate(self, target_uri: str, credentials: Credential) -> bool:
        """Check basic credentials against the profile API.

        Returns:
            True iff the service answered HTTP 200.

        Raises:
            PreconditionError: If credentials are absent or a field is empty.
        """
        outcome = await self.validate_outcome(target_uri, credentials)
        return outcome.ok

    async def validate_outcome(self, target_uri: str, credentials: Credential) -> Outcome[bool]:
        """Like validate, returning REJECTED or TRANSPORT on failure."""
        Credential.validate(credentials)
        target_host = host_component(target_uri)

        try:
            raw = f"{credentials.username}:{credentials.password}".encode("utf-8")
            headers = {"Authorization": f"{AUTH_SCHEME_BASIC} {base64.b64encode(raw).decode('ascii')}"}
            async with httpx.AsyncClient(timeout=self._http_timeout) as client:
                response = await client.get(self.profile_url, headers=headers)
        except Exception as e:
            # httpx.HTTPError and anything else raised while sending
            return self._validation_failed(target_host, e)

        _system_logger.debug(
            {
                "event": "credential_validation_status",
                "message": f"Validation status code: {response.status_code}",
                "component": "broker",
                "details": {"target_host": target_host, "status_code": response.status_code},
            }
        )

        if response.status_code != 200:
            self._auth_logger.log_credentials_rejected(
                target_host=target_host,
                failure_kind=FailureKind.REJECTED.value,
                status_code=response.status_code,
            )
            return Outcome.failed(
                FailureKind.REJECTED,
                f"Profile API answered {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )

        self._auth_logger.log_credentials_validated(target_host=target_host)
        return Outcome.success(True, status_code=200)

    @property
    def profile_url(self) -> str:
        """URL of the profile API used for credential validation."""
        return f"{self._service_url}{PROFILE_PATH}?api-version={SERVICE_API_VERSION}"

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    async def _bounded(self, awaitable: Awaitable[T]) -> T:
        return await asyncio.wait_for(awaitable, timeout=self._authority_timeout)

    @staticmethod
    def _scope_value(scope: TokenScope | str) -> str:
        if scope is None:
            raise PreconditionError("The scope parameter is null")
        value = str(scope).strip()
        if not value:
            raise PreconditionError("The scope parameter is empty")
        return value

    def _acquired(
        self,
        operation: str,
        flow: AuthFlow,
        target_uri: str,
        client_id: str,
        result: "AuthResult",
    ) -> Outcome[TokenPair]:
        pair = TokenPair.from_auth_result(result)
        target_host = host_component(target_uri)
        renewal = flow == "refresh_token"
        _system_logger.info(
            {
                "event": "token_refreshed" if renewal else "token_acquired",
                "message": f"AuthorityBroker.{operation} succeeded",
                "component": "broker",
                "details": {"target_host": target_host, "flow": flow},
            }
        )
        audit = self._auth_logger.log_token_refreshed if renewal else partial(
            self._auth_logger.log_token_acquired, flow=flow
        )
        audit(
            target_host=target_host,
            client_id=client_id,
            has_refresh_token=pair.refresh is not None,
        )
        return Outcome.success(pair)

    def _acquisition_failed(
        self,
        operation: str,
        flow: AuthFlow,
        target_uri: str,
        client_id: str,
        error: BaseException,
    ) -> Outcome[TokenPair]:
        kind = _classify(error)
        target_host = host_component(target_uri)
        renewal = flow == "refresh_token"
        _system_logger.error(
            {
                "event": "token_refresh_failed" if renewal else "token_acquisition_failed",
                "message": f"AuthorityBroker.{operation} failed",
                "component": "broker",
                "error_type": type(error).__name__,
                "error_message": str(error),
                "details": {"target_host": target_host, "flow": flow, "failure_kind": kind.value},
            }
        )
        audit = self._auth_logger.log_token_refresh_failed if renewal else partial(
            self._auth_logger.log_token_acquisition_failed, flow=flow
        )
        audit(
            target_host=target_host,
            client_id=client_id,
            failure_kind=kind.value,
            error_type=type(error).__name__,
            error_message=str(error),
        )
        return Outcome.failed(kind, str(error) or type(error).__name__)

    def _validation_failed(self, target_host: str, error: BaseException) -> Outcome[bool]:
        _system_logger.error(
            {
                "event": "credential_validation_failed",
                "message": "Credential validation failed",
                "component": "broker",
                "error_type": type(error).__name__,
                "error_message": str(error),
                "details": {"target_host": target_host, "failure_kind": FailureKind.TRANSPORT.value},
            }
        )
        self._auth_logger.log_credentials_rejected(
            target_host=target_host,
            failure_kind=FailureKind.TRANSPORT.value,
            error_type=type(error).__name__,
            error_message=str(error),
        )
        return Outcome.failed(FailureKind.TRANSPORT, f"{type(error).__name__}: {error}")

    def _pat_failed(
        self,
        target_host: str,
        kind: FailureKind,
        detail: str,
        *,
        status_code: int | None = None,
        error: BaseException | None = None,
    ) -> Outcome[Token]:
        _system_logger.error(
            {
                "event": "pat_issuance_failed",
                "message": "AuthorityBroker.issue_pat failed",
                "component": "broker",
                "error_type": type(error).__name__ if error is not None else None,
                "error_message": detail,
                "details": {"target_host": target_host, "failure_kind": kind.value, "status_code": status_code},
            }
        )
        self._auth_logger.log_pat_issuance_failed(
            target_host=target_host,
            failure_kind=kind.value,
            status_code=status_code,
            error_type=type(error).__name__ if error is not None else None,
            error_message=detail,
        )
        return Outcome.failed(kind, detail, status_code=status_code)
