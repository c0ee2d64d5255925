"""Admin authentication: shared-password login and opaque bearer tokens."""

import hmac

import structlog
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from discovery.core.config import get_settings
from discovery.core.exceptions import UnauthorizedError
from discovery.db.redis import get_redis
from discovery.repositories.cache import AdminTokenStore

logger = structlog.get_logger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)


def get_admin_tokens() -> AdminTokenStore:
    return AdminTokenStore(get_redis())


def password_matches(candidate: str | None) -> bool:
    """Constant-time comparison; an unset admin password never matches."""
    expected = get_settings().admin_password
    if not expected or not candidate:
        return False
    return hmac.compare_digest(candidate.encode(), expected.encode())


async def login(password: str | None, tokens: AdminTokenStore) -> str:
    """Exchange the admin password for a token that expires after the admin TTL.

    Raises ``UnauthorizedError`` on a wrong or missing password.
    """
    if not password_matches(password):
        logger.warning("admin_login_rejected")
        raise UnauthorizedError("Invalid password")
    token = await tokens.issue()
    logger.info("admin_login_succeeded")
    return token


async def require_admin(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
    tokens: AdminTokenStore = Depends(get_admin_tokens),
) -> str:
    """FastAPI dependency guarding every admin route except login.

    Returns the validated token.
    """
    if credentials is None:
        raise UnauthorizedError("Unauthorized")
    if not await tokens.is_valid(credentials.credentials):
        raise UnauthorizedError("Invalid or expired token")
    return credentials.credentials
