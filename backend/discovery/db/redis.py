"""Process-wide redis client.

One client serves the conversation-state cache, admin tokens and the
admin config keys. Tests hand in a fakeredis client instead of a URL.
"""

import redis.asyncio as redis
import structlog
from redis.exceptions import RedisError

from discovery.core.config import get_settings

logger = structlog.get_logger(__name__)

_client: redis.Redis | None = None


def build_redis(url: str) -> redis.Redis:
    return redis.from_url(url, encoding="utf-8", decode_responses=True, health_check_interval=30)


async def init_redis(url: str | None = None, client: redis.Redis | None = None) -> None:
    """Install the shared client; connects and pings unless ``client`` is given."""
    global _client

    if _client is not None:
        return

    if client is None:
        client = build_redis(url or get_settings().redis_url)
        await client.ping()
    _client = client


async def close_redis() -> None:
    global _client

    if _client is not None:
        await _client.aclose()
        _client = None


def get_redis() -> redis.Redis:
    """Shared client. Raises RuntimeError before init_redis()."""
    if _client is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _client


async def redis_is_healthy() -> bool:
    """Readiness check: True when the shared client answers PING."""
    try:
        return bool(await get_redis().ping())
    except (RuntimeError, RedisError) as exc:
        logger.error("redis_health_check_failed", error=str(exc), error_type=type(exc).__name__)
        return False
