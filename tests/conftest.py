"""Shared fixtures for authority-broker tests."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from authority_broker.broker import AuthorityBroker
from authority_broker.constants import AUTH_LOGGER_NAME, SYSTEM_LOGGER_NAME
from authority_broker.engine.base import AuthResult, TokenCache
from authority_broker.telemetry.audit.auth_logger import AuthLogger
from authority_broker.tokens import Credential, Token, TokenType


@pytest.fixture(autouse=True)
def reset_loggers():
    """Detach handlers added by configure_system_logger / create_auth_logger."""
    yield
    for name in (SYSTEM_LOGGER_NAME, AUTH_LOGGER_NAME):
        logger = logging.getLogger(name)
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
        logger.propagate = True
        logger.setLevel(logging.NOTSET)


@pytest.fixture
def auth_result() -> AuthResult:
    """Engine result with both tokens, valid for one hour."""
    return AuthResult(
        access_token="at-1",
        refresh_token="rt-2",
        expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
    )


@pytest.fixture
def engine(auth_result: AuthResult) -> MagicMock:
    """Mocked authorization engine returning auth_result from every flow."""
    mock = MagicMock()
    mock.authenticate_interactive = MagicMock(return_value=auth_result)
    mock.authenticate_with_credentials = AsyncMock(return_value=auth_result)
    mock.authenticate_with_refresh_token = AsyncMock(return_value=auth_result)
    return mock


@pytest.fixture
def auth_logger() -> MagicMock:
    """Mocked audit logger."""
    return MagicMock(spec=AuthLogger)


@pytest.fixture
def broker(engine: MagicMock, auth_logger: MagicMock) -> AuthorityBroker:
    """Broker wired to the mocked engine and audit logger."""
    return AuthorityBroker(engine=engine, auth_logger=auth_logger, token_cache=TokenCache())


@pytest.fixture
def access_token() -> Token:
    return Token("at-1", TokenType.ACCESS)


@pytest.fixture
def refresh_token() -> Token:
    return Token("rt-1", TokenType.REFRESH)


@pytest.fixture
def credentials() -> Credential:
    return Credential("user@example.com", "p@ss:word")
