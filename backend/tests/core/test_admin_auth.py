"""Tests for admin password login and bearer-token checks."""

import pytest
from fastapi.security import HTTPAuthorizationCredentials

from discovery.core.auth import login, password_matches, require_admin
from discovery.core.config import get_settings
from discovery.core.exceptions import UnauthorizedError
from discovery.repositories.cache import AdminTokenStore

pytestmark = pytest.mark.unit


@pytest.fixture
def tokens(redis_client) -> AdminTokenStore:
    return AdminTokenStore(redis_client, ttl_seconds=86400)


@pytest.fixture
def admin_password(monkeypatch):
    monkeypatch.setattr(get_settings(), "admin_password", "s3cret")
    return "s3cret"


def test_password_matches(admin_password):
    assert password_matches("s3cret")
    assert not password_matches("S3CRET")
    assert not password_matches("")
    assert not password_matches(None)


def test_unset_password_never_matches(monkeypatch):
    monkeypatch.setattr(get_settings(), "admin_password", "")
    assert not password_matches("")
    assert not password_matches("anything")


async def test_login_issues_a_valid_token(admin_password, tokens):
    token = await login("s3cret", tokens)
    assert await tokens.is_valid(token)


async def test_login_with_wrong_password_is_rejected(admin_password, tokens):
    with pytest.raises(UnauthorizedError, match="Invalid password"):
        await login("guess", tokens)


async def test_require_admin_accepts_issued_token(admin_password, tokens):
    token = await login("s3cret", tokens)
    credentials = HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)

    assert await require_admin(credentials, tokens) == token


async def test_require_admin_rejects_missing_and_unknown_tokens(tokens):
    with pytest.raises(UnauthorizedError):
        await require_admin(None, tokens)

    credentials = HTTPAuthorizationCredentials(scheme="Bearer", credentials="f" * 64)
    with pytest.raises(UnauthorizedError, match="expired"):
        await require_admin(credentials, tokens)
