"""API middleware for cross-cutting concerns."""

import logging
import time
import uuid
from collections.abc import Callable
from contextvars import ContextVar

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

# Request ID for the current request, readable from anywhere below the middleware
request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)

# Probes hit these every few seconds
QUIET_PATHS = ("/api/health",)


def get_request_id() -> str | None:
    return request_id_var.get()


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Propagate X-Request-ID, generating one when the caller did not send it."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        token = request_id_var.set(request_id)
        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            request_id_var.reset(token)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log method, path, status and duration of each request."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            duration_ms = (time.perf_counter() - start) * 1000
            logger.exception(f"{request.method} {path} failed after {duration_ms:.1f}ms")
            raise

        if not path.startswith(QUIET_PATHS):
            duration_ms = (time.perf_counter() - start) * 1000
            logger.info(
                f"{request.method} {path} {response.status_code} in {duration_ms:.1f}ms",
                extra={"status_code": response.status_code, "duration_ms": duration_ms},
            )
        return response


class RequestContextFilter(logging.Filter):
    """Adds ``request_id`` to every log record ("-" outside a request)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id() or "-"
        return True
