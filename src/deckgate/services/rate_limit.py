"""Per-client request limiting backed by Redis fixed windows."""

import logging
import time
from dataclasses import dataclass
from enum import Enum

import redis.asyncio as redis
from fastapi import Request
from redis.exceptions import RedisError

from deckgate.config import settings
from deckgate.errors import InternalError

logger = logging.getLogger(__name__)

RATE_LIMIT_KEY_PREFIX = "ratelimit"

# Increment and set the window expiry in one step so a crash between the two
# cannot leave a counter without a TTL.
INCREMENT_SCRIPT = """
local count = redis.call('INCR', KEYS[1])
if count == 1 then
    redis.call('EXPIRE', KEYS[1], tonumber(ARGV[1]))
end
local ttl = redis.call('TTL', KEYS[1])
return {count, ttl}
"""


class RateLimitType(str, Enum):
    """Rate limit types for different endpoint categories."""

    ACCESS = "access"
    OWNER = "owner"
    TRACKING = "tracking"


@dataclass
class RateLimitConfig:
    requests: int
    window_seconds: int


def get_rate_limit_config(limit_type: RateLimitType) -> RateLimitConfig:
    if limit_type == RateLimitType.ACCESS:
        return RateLimitConfig(requests=settings.access_rate_limit, window_seconds=60)
    if limit_type == RateLimitType.TRACKING:
        return RateLimitConfig(requests=settings.tracking_rate_limit, window_seconds=60)
    return RateLimitConfig(requests=settings.owner_rate_limit, window_seconds=60)


@dataclass
class RateLimitResult:
    """Result of a rate limit check."""

    success: bool
    limit: int
    remaining: int
    reset: int  # Unix timestamp in seconds


class RedisRateLimiter:
    """Fixed-window counter per (limit type, identifier)."""

    def __init__(self, client: redis.Redis) -> None:
        self.client = client
        self._increment = client.register_script(INCREMENT_SCRIPT)

    async def check(self, identifier: str, limit_type: RateLimitType) -> RateLimitResult:
        config = get_rate_limit_config(limit_type)
        key = f"{RATE_LIMIT_KEY_PREFIX}:{limit_type.value}:{identifier}"
        try:
            count, ttl = await self._increment(keys=[key], args=[config.window_seconds])
        except RedisError as e:
            logger.error(f"Rate limiter unavailable: {e!r}")
            raise InternalError("Rate limiter unavailable") from e

        count = int(count)
        ttl = int(ttl) if int(ttl) > 0 else config.window_seconds
        return RateLimitResult(
            success=count <= config.requests,
            limit=config.requests,
            remaining=max(0, config.requests - count),
            reset=int(time.time()) + ttl,
        )


def get_client_ip(request: Request) -> str | None:
    """Extract client IP from request headers.

    Checks common headers used by proxies and load balancers.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        # x-forwarded-for can be a comma-separated list, take the first IP
        return forwarded.split(",")[0].strip()

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    if request.client:
        return request.client.host

    return None


def rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    """Build the X-RateLimit-* (and Retry-After when blocked) headers."""
    headers = {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(result.reset),
    }
    if not result.success:
        headers["Retry-After"] = str(max(1, result.reset - int(time.time())))
    return headers
