"""Tests for the default OAuth authorization engine.

Tests cover:
- Authorization response parsing (redirect URL, query, bare code, errors)
- Authorize URL construction
- authorization_code, password and refresh_token grants with mocked HTTP
- Cached acquisition (fresh, expired with/without refresh token, empty)
- Token endpoint error handling
- AuthResult parsing and expiry
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest

from authority_broker.engine.base import AuthorizationEngine, AuthResult, PromptBehavior, TokenCache
from authority_broker.engine.oauth import OAuthAuthorizationEngine, extract_authorization_code
from authority_broker.exceptions import AuthorityError

AUTHORITY_URL = "https://login.microsoftonline.com/common/dev.azure.com"
TOKEN_URL = AUTHORITY_URL + "/oauth2/token"
CLIENT_ID = "11111111-1111-1111-1111-111111111111"
RESOURCE = "https://management.core.windows.net/"
REDIRECT_URI = "https://localhost/callback"


def _form(request: httpx.Request) -> dict[str, str]:
    return {key: values[0] for key, values in parse_qs(request.content.decode()).items()}


def _echo_receiver(code: str = "auth-code"):
    """Code receiver that answers with the state from the authorize URL."""

    def receive(authorize_url: str) -> str:
        state = parse_qs(urlsplit(authorize_url).query)["state"][0]
        return f"{REDIRECT_URI}?code={code}&state={state}"

    return receive


@pytest.fixture
def cache() -> TokenCache:
    return TokenCache()


@pytest.fixture
def engine(cache: TokenCache) -> OAuthAuthorizationEngine:
    return OAuthAuthorizationEngine(cache, code_receiver=_echo_receiver())


# ============================================================================
# Tests: extract_authorization_code
# ============================================================================


class TestExtractAuthorizationCode:
    """Tests for parsing what the user pastes back after sign-in."""

    @pytest.mark.parametrize(
        "response",
        [
            "https://localhost/callback?code=abc&state=s1",
            "?code=abc&state=s1",
            "code=abc",
            "  abc  ",
        ],
    )
    def test_accepted_forms(self, response: str):
        assert extract_authorization_code(response, expected_state="s1") == "abc"

    def test_error_response_raises_with_code(self):
        """Given an error redirect, AuthorityError carries the OAuth error code."""
        # Act & Assert
        with pytest.raises(AuthorityError) as exc_info:
            extract_authorization_code(
                "https://localhost/callback?error=access_denied&error_description=User+cancelled"
            )

        assert exc_info.value.error_code == "access_denied"
        assert exc_info.value.description == "User cancelled"

    def test_state_mismatch_raises(self):
        with pytest.raises(AuthorityError, match="state"):
            extract_authorization_code("https://localhost/callback?code=abc&state=other", expected_state="s1")

    @pytest.mark.parametrize("response", ["", "   ", "https://localhost/callback?state=s1"])
    def test_missing_code_raises(self, response: str):
        with pytest.raises(AuthorityError):
            extract_authorization_code(response)


# ============================================================================
# Tests: interactive flow
# ============================================================================


class TestInteractive:
    """Tests for the authorization_code flow."""

    def test_engine_satisfies_protocol(self, engine: OAuthAuthorizationEngine):
        assert isinstance(engine, AuthorizationEngine)

    def test_authorize_url_forces_login_prompt(self, engine: OAuthAuthorizationEngine):
        """Given ALWAYS prompt and extra query, the URL carries prompt=login and the extras verbatim."""
        # Act
        url = engine.build_authorize_url(
            AUTHORITY_URL,
            RESOURCE,
            CLIENT_ID,
            REDIRECT_URI,
            prompt=PromptBehavior.ALWAYS,
            state="s1",
            extra_query="?domain_hint=contoso.com",
        )

        # Assert
        parts = urlsplit(url)
        params = parse_qs(parts.query)
        assert f"{parts.scheme}://{parts.netloc}{parts.path}" == AUTHORITY_URL + "/oauth2/authorize"
        assert params["response_type"] == ["code"]
        assert params["prompt"] == ["login"]
        assert params["state"] == ["s1"]
        assert params["resource"] == [RESOURCE]
        assert params["domain_hint"] == ["contoso.com"]

    def test_auto_prompt_omits_prompt_parameter(self, engine: OAuthAuthorizationEngine):
        url = engine.build_authorize_url(AUTHORITY_URL, RESOURCE, CLIENT_ID, REDIRECT_URI, prompt=PromptBehavior.AUTO)

        assert "prompt" not in parse_qs(urlsplit(url).query)

    def test_code_is_exchanged_and_cached(self, engine: OAuthAuthorizationEngine, cache: TokenCache, respx_mock):
        """Given the user returns a code, it is redeemed and the result cached."""
        # Arrange
        route = respx_mock.post(TOKEN_URL).mock(
            return_value=httpx.Response(200, json={"access_token": "at", "refresh_token": "rt", "expires_in": 3600})
        )

        # Act
        result = engine.authenticate_interactive(AUTHORITY_URL, RESOURCE, CLIENT_ID, REDIRECT_URI)

        # Assert
        form = _form(route.calls.last.request)
        assert form["grant_type"] == "authorization_code"
        assert form["code"] == "auth-code"
        assert form["redirect_uri"] == REDIRECT_URI
        assert result.access_token == "at"
        assert cache.get(AUTHORITY_URL, CLIENT_ID, RESOURCE) == result

    def test_missing_code_receiver_raises(self, cache: TokenCache):
        # Arrange
        engine = OAuthAuthorizationEngine(cache)

        # Act & Assert
        with pytest.raises(AuthorityError, match="code receiver"):
            engine.authenticate_interactive(AUTHORITY_URL, RESOURCE, CLIENT_ID, REDIRECT_URI)

    def test_forged_state_is_refused(self, cache: TokenCache, respx_mock):
        """Given a redirect with a foreign state, no token request is made."""
        # Arrange
        engine = OAuthAuthorizationEngine(cache, code_receiver=lambda url: f"{REDIRECT_URI}?code=x&state=forged")

        # Act & Assert
        with pytest.raises(AuthorityError):
            engine.authenticate_interactive(AUTHORITY_URL, RESOURCE, CLIENT_ID, REDIRECT_URI)
        assert not respx_mock.calls


# ============================================================================
# Tests: password and refresh grants
# ============================================================================


class TestNonInteractive:
    """Tests for password and refresh_token grants."""

    @pytest.mark.asyncio
    async def test_password_grant(self, engine: OAuthAuthorizationEngine, cache: TokenCache, respx_mock):
        # Arrange
        route = respx_mock.post(TOKEN_URL).mock(return_value=httpx.Response(200, json={"access_token": "at"}))

        # Act
        result = await engine.authenticate_with_credentials(
            AUTHORITY_URL, RESOURCE, CLIENT_ID, username="user", password="pw"
        )

        # Assert
        form = _form(route.calls.last.request)
        assert form["grant_type"] == "password"
        assert form["username"] == "user"
        assert form["password"] == "pw"
        assert result.access_token == "at"
        assert len(cache) == 1

    @pytest.mark.asyncio
    async def test_username_without_password_raises(self, engine: OAuthAuthorizationEngine):
        with pytest.raises(AuthorityError, match="together"):
            await engine.authenticate_with_credentials(AUTHORITY_URL, RESOURCE, CLIENT_ID, username="user")

    @pytest.mark.asyncio
    async def test_refresh_grant_keeps_unrotated_refresh_token(self, engine: OAuthAuthorizationEngine, respx_mock):
        """Given a response without a new refresh token, the redeemed one is kept."""
        # Arrange
        route = respx_mock.post(TOKEN_URL).mock(return_value=httpx.Response(200, json={"access_token": "at-1"}))

        # Act
        result = await engine.authenticate_with_refresh_token(AUTHORITY_URL, "rt-1", CLIENT_ID, RESOURCE)

        # Assert
        form = _form(route.calls.last.request)
        assert form["grant_type"] == "refresh_token"
        assert form["refresh_token"] == "rt-1"
        assert result.access_token == "at-1"
        assert result.refresh_token == "rt-1"

    @pytest.mark.asyncio
    async def test_refresh_grant_takes_rotated_refresh_token(self, engine: OAuthAuthorizationEngine, respx_mock):
        # Arrange
        respx_mock.post(TOKEN_URL).mock(
            return_value=httpx.Response(200, json={"access_token": "at-2", "refresh_token": "rt-2"})
        )

        # Act
        result = await engine.authenticate_with_refresh_token(AUTHORITY_URL, "rt-1", CLIENT_ID, RESOURCE)

        # Assert
        assert result.refresh_token == "rt-2"

    @pytest.mark.asyncio
    async def test_error_response_raises_authority_error(self, engine: OAuthAuthorizationEngine, respx_mock):
        """Given a 400 with an OAuth error body, AuthorityError carries the code and description."""
        # Arrange
        respx_mock.post(TOKEN_URL).mock(
            return_value=httpx.Response(
                400,
                json={"error": "invalid_grant", "error_description": "AADSTS70008: The refresh token has expired."},
            )
        )

        # Act & Assert
        with pytest.raises(AuthorityError) as exc_info:
            await engine.authenticate_with_refresh_token(AUTHORITY_URL, "rt-1", CLIENT_ID, RESOURCE)

        assert exc_info.value.error_code == "invalid_grant"
        assert "AADSTS70008" in exc_info.value.description
        assert "HTTP 400" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_non_json_success_raises(self, engine: OAuthAuthorizationEngine, respx_mock):
        # Arrange
        respx_mock.post(TOKEN_URL).mock(return_value=httpx.Response(200, text="<html>maintenance</html>"))

        # Act & Assert
        with pytest.raises(AuthorityError, match="not a JSON object"):
            await engine.authenticate_with_refresh_token(AUTHORITY_URL, "rt-1", CLIENT_ID, RESOURCE)

    @pytest.mark.asyncio
    async def test_transport_error_propagates(self, engine: OAuthAuthorizationEngine, respx_mock):
        # Arrange
        respx_mock.post(TOKEN_URL).mock(side_effect=httpx.ConnectError("Connection refused"))

        # Act & Assert
        with pytest.raises(httpx.ConnectError):
            await engine.authenticate_with_refresh_token(AUTHORITY_URL, "rt-1", CLIENT_ID, RESOURCE)


# ============================================================================
# Tests: cached acquisition
# ============================================================================


class TestCachedAcquisition:
    """Tests for acquisition without explicit credentials."""

    @pytest.mark.asyncio
    async def test_empty_cache_requires_interaction(self, engine: OAuthAuthorizationEngine):
        with pytest.raises(AuthorityError) as exc_info:
            await engine.authenticate_with_credentials(AUTHORITY_URL, RESOURCE, CLIENT_ID)

        assert exc_info.value.error_code == "interaction_required"

    @pytest.mark.asyncio
    async def test_fresh_entry_is_served_without_request(
        self,
        engine: OAuthAuthorizationEngine,
        cache: TokenCache,
        respx_mock,
    ):
        # Arrange
        cached = AuthResult(access_token="at", expires_at=datetime.now(timezone.utc) + timedelta(hours=1))
        cache.set(AUTHORITY_URL + "/", CLIENT_ID, RESOURCE, cached)

        # Act
        result = await engine.authenticate_with_credentials(AUTHORITY_URL.upper(), RESOURCE, CLIENT_ID)

        # Assert
        assert result == cached
        assert not respx_mock.calls

    @pytest.mark.asyncio
    async def test_expired_entry_is_refreshed(self, cache: TokenCache, respx_mock):
        """Given an expired entry with a refresh token, it is renewed and the cache updated."""
        # Arrange
        engine = OAuthAuthorizationEngine(cache)
        expired = AuthResult(
            access_token="old",
            refresh_token="rt-old",
            expires_at=datetime.now(timezone.utc) - timedelta(minutes=1),
        )
        cache.set(AUTHORITY_URL, CLIENT_ID, RESOURCE, expired)
        route = respx_mock.post(TOKEN_URL).mock(
            return_value=httpx.Response(200, json={"access_token": "new", "expires_in": 3600})
        )

        # Act
        result = await engine.authenticate_with_credentials(AUTHORITY_URL, RESOURCE, CLIENT_ID)

        # Assert
        assert _form(route.calls.last.request)["refresh_token"] == "rt-old"
        assert result.access_token == "new"
        assert cache.get(AUTHORITY_URL, CLIENT_ID, RESOURCE).access_token == "new"

    @pytest.mark.asyncio
    async def test_expired_entry_without_refresh_token_is_evicted(
        self,
        engine: OAuthAuthorizationEngine,
        cache: TokenCache,
    ):
        # Arrange
        cache.set(AUTHORITY_URL, CLIENT_ID, RESOURCE, AuthResult(access_token="old"))

        # Act & Assert
        with pytest.raises(AuthorityError) as exc_info:
            await engine.authenticate_with_credentials(AUTHORITY_URL, RESOURCE, CLIENT_ID)

        assert exc_info.value.error_code == "interaction_required"
        assert len(cache) == 0


# ============================================================================
# Tests: AuthResult
# ============================================================================


class TestAuthResult:
    """Tests for token response parsing and expiry."""

    def test_expires_in_is_relative_to_now(self):
        # Arrange
        now = datetime(2030, 1, 1, tzinfo=timezone.utc)

        # Act
        result = AuthResult.from_token_response({"access_token": "at", "expires_in": "3599"}, now=now)

        # Assert
        assert result.expires_at == now + timedelta(seconds=3599)

    def test_expires_on_takes_precedence(self):
        # Act
        result = AuthResult.from_token_response({"access_token": "at", "expires_on": 1893456000, "expires_in": 10})

        # Assert
        assert result.expires_at == datetime(2030, 1, 1, tzinfo=timezone.utc)

    def test_unparseable_expiry_is_ignored(self):
        result = AuthResult.from_token_response({"access_token": "at", "expires_in": "soon"})

        assert result.expires_at is None

    @pytest.mark.parametrize("data", [{}, {"access_token": ""}, {"access_token": 5}])
    def test_missing_access_token_raises(self, data: dict):
        with pytest.raises(AuthorityError):
            AuthResult.from_token_response(data)

    def test_is_expired_uses_skew(self):
        # Arrange
        result = AuthResult(access_token="at", expires_at=datetime.now(timezone.utc) + timedelta(seconds=120))

        # Assert
        assert result.is_expired(skew_seconds=300) is True
        assert result.is_expired(skew_seconds=0) is False
