"""Retry and circuit breaker helpers for outbound calls (mail providers)."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from functools import wraps
from typing import ParamSpec, TypeVar

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


class TransientDeliveryError(Exception):
    """Provider answered with a status worth retrying (5xx, 429)."""

    pass


RETRYABLE_EXCEPTIONS = (
    asyncio.TimeoutError,
    ConnectionError,
    httpx.TransportError,
    TransientDeliveryError,
)


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitOpenError(Exception):
    """Raised when a call is rejected by an open circuit."""

    pass


@dataclass
class CircuitBreaker:
    """Stop calling a provider that keeps failing.

    After ``failure_threshold`` consecutive failures the circuit opens and
    calls fail immediately with ``CircuitOpenError``. Once
    ``recovery_timeout`` has elapsed a probe call is let through; success
    closes the circuit again, failure reopens it.
    """

    name: str
    failure_threshold: int = 5
    recovery_timeout: float = 30.0
    clock: Callable[[], float] = time.monotonic

    state: CircuitState = field(default=CircuitState.CLOSED, init=False)
    failure_count: int = field(default=0, init=False)
    opened_at: float = field(default=0.0, init=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False)

    async def call(
        self,
        func: Callable[P, Awaitable[T]],
        *args: P.args,
        **kwargs: P.kwargs,
    ) -> T:
        async with self._lock:
            if (
                self.state == CircuitState.OPEN
                and self.clock() - self.opened_at >= self.recovery_timeout
            ):
                logger.info(f"Circuit '{self.name}' half-open, probing")
                self.state = CircuitState.HALF_OPEN
            if self.state == CircuitState.OPEN:
                raise CircuitOpenError(f"Circuit breaker '{self.name}' is open")

        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            await self._on_failure(e)
            raise

        async with self._lock:
            if self.state == CircuitState.HALF_OPEN:
                logger.info(f"Circuit '{self.name}' recovered")
            self.state = CircuitState.CLOSED
            self.failure_count = 0
        return result

    async def _on_failure(self, error: Exception) -> None:
        async with self._lock:
            self.failure_count += 1
            if self.state == CircuitState.HALF_OPEN or self.failure_count >= self.failure_threshold:
                if self.state != CircuitState.OPEN:
                    logger.warning(
                        f"Circuit '{self.name}' opened after {self.failure_count} failures: {error!r}"
                    )
                self.state = CircuitState.OPEN
                self.opened_at = self.clock()

    def reset(self) -> None:
        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.opened_at = 0.0


email_circuit = CircuitBreaker(name="email")


async def with_retry(
    func: Callable[P, Awaitable[T]],
    *args: P.args,
    max_attempts: int = 3,
    min_wait: float = 0.5,
    max_wait: float = 4.0,
    **kwargs: P.kwargs,
) -> T:  # type: ignore[return-value]
    """Run ``func`` with exponential backoff on transient errors.

    Non-retryable exceptions propagate immediately; after the last attempt
    the final exception is re-raised unchanged.
    """
    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=min_wait, min=min_wait, max=max_wait),
        retry=retry_if_exception_type(RETRYABLE_EXCEPTIONS),
        reraise=True,
    ):
        with attempt:
            return await func(*args, **kwargs)


def with_resilience(
    circuit_breaker: CircuitBreaker | None = None,
    max_retries: int = 3,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Decorate an async call with retries, optionally behind a circuit breaker.

    The breaker counts one failure per exhausted retry sequence, not one per
    attempt.
    """

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            async def attempt() -> T:
                return await with_retry(func, *args, max_attempts=max_retries, **kwargs)  # type: ignore[arg-type]

            if circuit_breaker is not None:
                return await circuit_breaker.call(attempt)
            return await attempt()

        return wrapper

    return decorator
