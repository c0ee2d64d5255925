"""Redis-backed fast cache: conversation-state mirror, admin tokens, admin config.

Key layout:
    session:{session_id}  ConversationState JSON, TTL = session_state_ttl_seconds
    admin:{token}         "1", TTL = admin_token_ttl_seconds
    config:{key}          admin-set configuration value, no TTL

The cache is a latency optimization only; the store stays authoritative.
"""

import secrets

import redis.asyncio as redis
import structlog
from pydantic import ValidationError

from discovery.core.config import get_settings
from discovery.schemas.quiz import ConversationState

logger = structlog.get_logger(__name__)


def _state_key(session_id: str) -> str:
    return f"session:{session_id}"


def _admin_key(token: str) -> str:
    return f"admin:{token}"


def _config_key(key: str) -> str:
    return f"config:{key}"


class ConversationCache:
    """Low-latency mirror of in-flight ConversationState."""

    def __init__(self, redis_client: redis.Redis, ttl_seconds: int | None = None):
        self.redis = redis_client
        self.ttl_seconds = ttl_seconds or get_settings().session_state_ttl_seconds

    async def get(self, session_id: str) -> ConversationState | None:
        raw = await self.redis.get(_state_key(session_id))
        if raw is None:
            return None
        try:
            return ConversationState.from_json(raw)
        except ValidationError as exc:
            # Unreadable entry: treat as a miss so the store copy is used
            logger.warning("cached_state_invalid", session_id=session_id, error=str(exc))
            return None

    async def put(self, state: ConversationState) -> None:
        await self.redis.set(_state_key(state.session_id), state.to_json(), ex=self.ttl_seconds)

    async def delete(self, session_id: str) -> None:
        await self.redis.delete(_state_key(session_id))


class AdminTokenStore:
    """Opaque admin bearer tokens with a fixed TTL."""

    def __init__(self, redis_client: redis.Redis, ttl_seconds: int | None = None):
        self.redis = redis_client
        self.ttl_seconds = ttl_seconds or get_settings().admin_token_ttl_seconds

    async def issue(self) -> str:
        token = secrets.token_hex(32)
        await self.redis.set(_admin_key(token), "1", ex=self.ttl_seconds)
        return token

    async def is_valid(self, token: str) -> bool:
        if not token:
            return False
        return await self.redis.exists(_admin_key(token)) > 0


class ConfigStore:
    """Admin-managed configuration values (e.g. the board API key)."""

    def __init__(self, redis_client: redis.Redis):
        self.redis = redis_client

    async def get(self, key: str) -> str | None:
        return await self.redis.get(_config_key(key))

    async def set(self, key: str, value: str) -> None:
        await self.redis.set(_config_key(key), value)
