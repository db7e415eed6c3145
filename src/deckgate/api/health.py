"""Health check endpoints."""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from deckgate.api.deps import SessionDep

logger = logging.getLogger(__name__)

router = APIRouter()


async def _ping_redis(request: Request) -> str:
    client = getattr(request.app.state, "redis", None)
    if client is None:
        return "not_initialized"
    try:
        await client.ping()
    except (RedisError, OSError) as e:
        logger.error(f"Redis health check failed: {e!r}")
        return "disconnected"
    return "connected"


async def _ping_db(session: SessionDep) -> str:
    try:
        await session.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        logger.error(f"Database health check failed: {e!r}")
        return "disconnected"
    return "connected"


@router.get("")
async def health_check():
    """Basic health check - just confirms the service is running."""
    return {"status": "ok"}


@router.get("/db")
async def health_check_db(session: SessionDep):
    """Health check with database connectivity."""
    db_status = await _ping_db(session)
    if db_status != "connected":
        return JSONResponse(status_code=503, content={"status": "error", "database": db_status})
    return {"status": "ok", "database": db_status}


@router.get("/redis")
async def health_check_redis(request: Request):
    """Health check for the cache holding OTP state."""
    redis_status = await _ping_redis(request)
    if redis_status != "connected":
        return JSONResponse(status_code=503, content={"status": "error", "redis": redis_status})
    return {"status": "ok", "redis": redis_status}


@router.get("/ready")
async def readiness_check(request: Request, session: SessionDep):
    """Readiness check - 503 unless both the database and the cache answer.

    Use this endpoint for load balancer health checks.
    """
    response = {
        "database": await _ping_db(session),
        "redis": await _ping_redis(request),
    }
    if any(value != "connected" for value in response.values()):
        return JSONResponse(status_code=503, content={"status": "degraded", **response})
    return {"status": "ok", **response}
