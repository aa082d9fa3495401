"""
Redis Configuration

Shared async Redis client holding the rate limit counters. Every API
instance points at the same server, so a user's claims, joins and posts
are counted once across the deployment.

Redis is optional outside production. When init_redis fails or was never
called, get_redis() returns None and the rate limiter counts in process
memory instead. Socket timeouts are short so a stalled Redis degrades a
request to the memory fallback instead of hanging it.

All keys are namespaced with settings.redis_key_prefix so the counters
can share a Redis database with other services.
"""

import logging

from redis.asyncio import Redis, from_url
from redis.exceptions import RedisError

from app.core.config import settings

logger = logging.getLogger(__name__)

# Redis client instance (None until init_redis succeeds)
redis_client: Redis | None = None


def redis_key(*parts: object) -> str:
    """
    Build a namespaced key.

    Example:
        redis_key("rate_limit", "club:claim", user_id)
        -> "schoolconnect:rate_limit:club:claim:<user_id>"
    """
    return ":".join([settings.redis_key_prefix, *(str(part) for part in parts)])


async def init_redis() -> Redis:
    """
    Connect to Redis and verify the connection with a ping.

    Call this on application startup. The client is only published once
    the ping succeeds, so a failed start leaves the memory fallback active.
    """
    global redis_client
    client = from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        socket_timeout=settings.redis_socket_timeout,
        socket_connect_timeout=settings.redis_socket_timeout,
    )
    await client.ping()
    redis_client = client
    logger.info("Redis connection established, rate limits are shared")
    return redis_client


async def get_redis() -> Redis | None:
    """Return the shared client, or None when rate limiting runs in memory."""
    return redis_client


async def redis_status() -> str:
    """
    Report the rate limit store for readiness checks.

    Returns:
        "up" if Redis answers a ping, "down" if the client exists but the
        ping fails, "disabled" if no client was initialized
    """
    if redis_client is None:
        return "disabled"
    try:
        await redis_client.ping()
    except RedisError as e:
        logger.warning(f"Redis ping failed, rate limits fall back to memory: {e}")
        return "down"
    return "up"


async def close_redis() -> None:
    """Close the Redis connection."""
    global redis_client
    if redis_client:
        await redis_client.aclose()
        redis_client = None
