"""FastAPI dependencies for dependency injection."""

import logging
from typing import Annotated

import redis.asyncio as redis
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from deckgate.database import get_session
from deckgate.errors import InternalError, RateLimitedError, UnauthenticatedError
from deckgate.models import User
from deckgate.services.access_token import AccessClaims, verify_access_token
from deckgate.services.auth import AuthError, verify_token
from deckgate.services.otp import OtpStore
from deckgate.services.rate_limit import (
    RateLimitType,
    RedisRateLimiter,
    get_client_ip,
    rate_limit_headers,
)

logger = logging.getLogger(__name__)

# Type alias for database session dependency
SessionDep = Annotated[AsyncSession, Depends(get_session)]

# Security scheme
security = HTTPBearer(auto_error=False)
BearerCredentials = Annotated[HTTPAuthorizationCredentials | None, Depends(security)]


def get_redis(request: Request) -> redis.Redis:
    """Return the client created by the application lifespan."""
    client = getattr(request.app.state, "redis", None)
    if client is None:
        raise InternalError("Cache is not configured")
    return client


RedisDep = Annotated[redis.Redis, Depends(get_redis)]


def get_otp_store(client: RedisDep) -> OtpStore:
    return OtpStore(client)


OtpStoreDep = Annotated[OtpStore, Depends(get_otp_store)]


async def get_current_user(session: SessionDep, credentials: BearerCredentials) -> User:
    """Get the authenticated deck owner or raise 401."""
    if not credentials:
        raise UnauthenticatedError()

    try:
        return await verify_token(session, credentials.credentials)
    except AuthError as e:
        logger.debug(f"Owner token verification failed: {e!r}")
        raise UnauthenticatedError("Invalid or expired token") from e


def get_access_claims(credentials: BearerCredentials) -> AccessClaims | None:
    """Claims of a share access token, None when absent or invalid."""
    if not credentials:
        return None
    return verify_access_token(credentials.credentials)


# Type aliases for common dependencies
CurrentUser = Annotated[User, Depends(get_current_user)]
AccessClaimsDep = Annotated[AccessClaims | None, Depends(get_access_claims)]


class RateLimitDependency:
    """Dependency class for rate limiting endpoints.

    Usage:
        @router.post("/endpoint")
        async def endpoint(_rate_limit: AccessRateLimit):
            ...
    """

    def __init__(self, limit_type: RateLimitType) -> None:
        self.limit_type = limit_type

    async def __call__(self, request: Request, client: RedisDep) -> None:
        identifier = f"ip:{get_client_ip(request) or 'unknown'}"
        result = await RedisRateLimiter(client).check(identifier, self.limit_type)

        if not result.success:
            headers = rate_limit_headers(result)
            retry_after = int(headers["Retry-After"])
            error = RateLimitedError(
                f"Rate limit exceeded. Please try again in {retry_after} seconds.",
                retry_after=retry_after,
            )
            error.headers = headers
            raise error


# Pre-configured rate limit dependencies
AccessRateLimit = Annotated[None, Depends(RateLimitDependency(RateLimitType.ACCESS))]
OwnerRateLimit = Annotated[None, Depends(RateLimitDependency(RateLimitType.OWNER))]
TrackingRateLimit = Annotated[None, Depends(RateLimitDependency(RateLimitType.TRACKING))]
