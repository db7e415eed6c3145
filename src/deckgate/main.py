"""FastAPI application entrypoint."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from deckgate import __version__
from deckgate.api.middleware import RequestIDMiddleware, RequestLoggingMiddleware
from deckgate.api.router import api_router
from deckgate.api.uploads import router as uploads_router
from deckgate.config import settings
from deckgate.database import close_db
from deckgate.errors import AppError
from deckgate.schemas.common import ErrorResponse
from deckgate.services.cache import close_cache, connect_cache

logger = logging.getLogger(__name__)

# Initialize Sentry for error tracking
if settings.sentry_dsn:
    import sentry_sdk

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        release=f"deckgate@{__version__}",
        traces_sample_rate=0.1 if settings.is_production else 1.0,
        send_default_pii=False,
    )
    logger.info("Sentry initialized")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup: refuses to boot in production without a reachable cache
    app.state.redis = await connect_cache()
    yield
    # Shutdown
    await close_cache(app.state.redis)
    app.state.redis = None
    await close_db()


app = FastAPI(
    title="DeckGate API",
    description="Access control and one-time passcodes for shared pitch decks",
    version=__version__,
    lifespan=lifespan,
    docs_url="/api/docs" if settings.debug_enabled else None,
    redoc_url="/api/redoc" if settings.debug_enabled else None,
    openapi_url="/api/openapi.json" if settings.debug_enabled else None,
)


@app.exception_handler(AppError)
async def app_error_handler(_request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__}: {exc.detail}", exc_info=exc.__cause__)
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(detail=exc.detail, code=exc.code).model_dump(),
        headers=exc.headers,
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    detail = f"{location}: {message}" if location else message
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(detail=detail, code="validation_error").model_dump(),
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(_request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error: {exc!r}")
    detail = f"Internal server error: {exc!r}" if settings.debug_enabled else "Internal server error"
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(detail=detail, code="internal_error").model_dump(),
    )


app.add_middleware(RequestLoggingMiddleware)  # type: ignore[arg-type]

# Wraps request logging so its lines carry the request ID
app.add_middleware(RequestIDMiddleware)  # type: ignore[arg-type]

app.add_middleware(
    CORSMiddleware,  # type: ignore[arg-type]
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "Accept", "X-Request-ID"],
    expose_headers=["X-Request-ID", "Retry-After", "X-RateLimit-Remaining"],
)

app.include_router(api_router, prefix="/api")

# Deck files, reachable only through signed URLs
app.include_router(uploads_router, prefix="/uploads", tags=["uploads"])


if __name__ == "__main__":
    import uvicorn

    from deckgate.logging import get_uvicorn_log_config

    uvicorn.run(
        "deckgate.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development,
        log_config=get_uvicorn_log_config(),
    )
