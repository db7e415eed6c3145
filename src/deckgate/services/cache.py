"""Redis client lifecycle.

The client is created once at startup, kept on ``app.state`` and handed to
handlers through a dependency, so tests can swap it for a fake.
"""

import logging

import redis.asyncio as redis
from redis.exceptions import RedisError

from deckgate.config import settings

logger = logging.getLogger(__name__)


class CacheUnavailableError(RuntimeError):
    """Raised at startup when the cache cannot be reached in production."""


def create_redis_client(url: str | None = None) -> redis.Redis:
    """Build a client with bounded socket timeouts for every call."""
    return redis.from_url(
        url or settings.redis_url,
        decode_responses=True,
        socket_timeout=settings.cache_timeout_seconds,
        socket_connect_timeout=settings.cache_timeout_seconds,
        health_check_interval=30,
    )


async def connect_cache(url: str | None = None) -> redis.Redis:
    """Create the shared client and check connectivity.

    In production an unreachable cache is fatal: OTP issuance and verification
    must never run without the shared store.
    """
    client = create_redis_client(url)
    try:
        await client.ping()
        logger.info("Connected to Redis")
    except (RedisError, OSError) as e:
        if settings.is_production:
            await client.aclose()
            raise CacheUnavailableError(f"Redis is unreachable: {e!r}") from e
        logger.warning(f"Redis is unreachable, continuing outside production: {e!r}")
    return client


async def close_cache(client: redis.Redis | None) -> None:
    """Close the shared client."""
    if client is not None:
        await client.aclose()
        logger.info("Redis connection closed")
