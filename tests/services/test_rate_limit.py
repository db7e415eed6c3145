"""Rate limiter tests."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from deckgate.config import settings
from deckgate.errors import InternalError
from deckgate.services.rate_limit import (
    RateLimitResult,
    RateLimitType,
    RedisRateLimiter,
    get_client_ip,
    rate_limit_headers,
)


class TestRedisRateLimiter:
    @pytest.mark.asyncio
    async def test_blocks_after_limit(self, redis_client, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setattr(settings, "access_rate_limit", 3)
        limiter = RedisRateLimiter(redis_client)

        results = [await limiter.check("ip:1.2.3.4", RateLimitType.ACCESS) for _ in range(4)]

        assert [r.success for r in results] == [True, True, True, False]
        assert results[2].remaining == 0
        assert await redis_client.ttl("ratelimit:access:ip:1.2.3.4") > 0

    @pytest.mark.asyncio
    async def test_identifiers_are_independent(self, redis_client, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setattr(settings, "owner_rate_limit", 1)
        limiter = RedisRateLimiter(redis_client)

        assert (await limiter.check("ip:1.1.1.1", RateLimitType.OWNER)).success is True
        assert (await limiter.check("ip:2.2.2.2", RateLimitType.OWNER)).success is True
        assert (await limiter.check("ip:1.1.1.1", RateLimitType.OWNER)).success is False

    @pytest.mark.asyncio
    async def test_store_failure_is_internal_error(self):
        client = MagicMock()
        client.register_script.return_value = AsyncMock(
            side_effect=RedisConnectionError("refused")
        )

        with pytest.raises(InternalError):
            await RedisRateLimiter(client).check("ip:1.2.3.4", RateLimitType.ACCESS)


def test_headers_include_retry_after_when_blocked():
    blocked = RateLimitResult(success=False, limit=3, remaining=0, reset=2**31)

    headers = rate_limit_headers(blocked)

    assert headers["X-RateLimit-Limit"] == "3"
    assert int(headers["Retry-After"]) > 0
    assert "Retry-After" not in rate_limit_headers(
        RateLimitResult(success=True, limit=3, remaining=2, reset=2**31)
    )


def test_client_ip_prefers_forwarded_header():
    request = MagicMock()
    request.headers = {"x-forwarded-for": "203.0.113.7, 10.0.0.1"}

    assert get_client_ip(request) == "203.0.113.7"
