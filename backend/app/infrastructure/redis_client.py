"""
Redis connection for the change notification bridge.

Redis only carries change events to other processes; the database stays
authoritative. When Redis is disabled or unreachable `get_redis()` returns
None and publishers skip remote fan-out. A failed connection is retried on
the next call instead of being cached.
"""

from typing import Optional

import redis.asyncio as redis

from app.core.config import get_settings
from app.core.logging import get_logger

logger = get_logger(__name__)

_client: Optional[redis.Redis] = None


def _connect(settings) -> redis.Redis:
    return redis.from_url(
        settings.REDIS_URL,
        encoding="utf-8",
        decode_responses=True,
        socket_connect_timeout=settings.REDIS_SOCKET_TIMEOUT,
        socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
        health_check_interval=30,
    )


async def get_redis() -> Optional[redis.Redis]:
    global _client
    settings = get_settings()
    if not settings.REDIS_ENABLED:
        return None
    if _client is not None:
        return _client

    client = _connect(settings)
    try:
        await client.ping()
    except (redis.RedisError, OSError) as e:
        logger.error("redis_connection_failed", url=settings.REDIS_URL, error=str(e))
        await client.aclose()
        return None

    logger.info("redis_connected", url=settings.REDIS_URL, channel_prefix=settings.CHANGE_CHANNEL_PREFIX)
    _client = client
    return _client


async def close_redis() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None
