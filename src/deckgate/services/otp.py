"""Rate-limited one-time passcode store backed by Redis.

Every check-then-act sequence runs inside a single server-side Lua script, so
concurrent requests for the same (email, token) pair are totally ordered by
Redis and nobody can slip between reading the attempts counter and writing
it. Application code never reads-then-writes the counters itself.

Script contracts (all keys belong to one (email, token) pair):

GENERATE
    pre:  attempts < max_attempts
    post: code hash stored with expiry, attempts incremented and its window
          refreshed, cooldown marker set
    else: RATE_LIMITED, nothing written

VERIFY
    pre:  attempts < max_attempts, else LOCKED (nothing written)
    post: live code hash equal to the candidate -> code, attempts and
          cooldown deleted, OK
    else: attempts incremented, NO_CODE (absent or past its expiry) or
          INVALID (hash mismatch), with the remaining attempts

Codes are stored as an HMAC-SHA256 of (token, email, code) keyed by the
server secret. Scripts compare digests, never plaintext codes, so the time a
comparison takes reveals nothing about the code.
"""

import hashlib
import hmac
import logging
import math
import secrets
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

import redis.asyncio as redis
from redis.exceptions import RedisError

from deckgate.config import settings
from deckgate.errors import InternalError, ValidationError

logger = logging.getLogger(__name__)

CODE_KEY_PREFIX = "otp"
ATTEMPTS_KEY_PREFIX = "otp_attempts"
COOLDOWN_KEY_PREFIX = "otp_cooldown"
LOCK_KEY_PREFIX = "otp_lock"

# Patterns used by the maintenance sweep
OTP_KEY_PATTERNS = (
    f"{CODE_KEY_PREFIX}:*",
    f"{ATTEMPTS_KEY_PREFIX}:*",
    f"{COOLDOWN_KEY_PREFIX}:*",
    f"{LOCK_KEY_PREFIX}:*",
)

GENERATE_SCRIPT = """
local attempts = tonumber(redis.call('GET', KEYS[2]) or '0')
if attempts >= tonumber(ARGV[4]) then
    return {'RATE_LIMITED', 0}
end
redis.call('HSET', KEYS[1], 'digest', ARGV[1], 'expires_at', ARGV[2])
redis.call('EXPIRE', KEYS[1], tonumber(ARGV[3]))
attempts = redis.call('INCR', KEYS[2])
redis.call('EXPIRE', KEYS[2], tonumber(ARGV[5]))
if tonumber(ARGV[6]) > 0 then
    redis.call('SET', KEYS[3], '1', 'EX', tonumber(ARGV[6]))
end
return {'OK', tonumber(ARGV[4]) - attempts}
"""

VERIFY_SCRIPT = """
local max_attempts = tonumber(ARGV[3])
local attempts = tonumber(redis.call('GET', KEYS[2]) or '0')
if attempts >= max_attempts then
    return {'LOCKED', 0}
end
local stored = redis.call('HMGET', KEYS[1], 'digest', 'expires_at')
local digest = stored[1]
local expires_at = tonumber(stored[2] or '0')
if (not digest) or expires_at <= tonumber(ARGV[2]) then
    if digest then
        redis.call('DEL', KEYS[1])
    end
    attempts = redis.call('INCR', KEYS[2])
    redis.call('EXPIRE', KEYS[2], tonumber(ARGV[4]))
    return {'NO_CODE', math.max(max_attempts - attempts, 0)}
end
if digest ~= ARGV[1] then
    attempts = redis.call('INCR', KEYS[2])
    redis.call('EXPIRE', KEYS[2], tonumber(ARGV[4]))
    return {'INVALID', math.max(max_attempts - attempts, 0)}
end
redis.call('DEL', KEYS[1], KEYS[2], KEYS[3])
return {'OK', max_attempts}
"""

RELEASE_LOCK_SCRIPT = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
end
return 0
"""


class OtpStatus(str, Enum):
    """Outcome of an OTP store operation."""

    OK = "OK"
    RATE_LIMITED = "RATE_LIMITED"
    THROTTLED = "THROTTLED"
    LOCKED = "LOCKED"
    NO_CODE = "NO_CODE"
    INVALID = "INVALID"


@dataclass
class OtpResult:
    """Discriminated result of generate/verify."""

    status: OtpStatus
    code: str | None = None
    remaining_attempts: int | None = None
    retry_after: int | None = None

    @property
    def success(self) -> bool:
        return self.status == OtpStatus.OK


@dataclass(frozen=True)
class OtpKeys:
    code: str
    attempts: str
    cooldown: str
    lock: str


def mask_email(email: str) -> str:
    """Mask the local part of an address for logs."""
    local, _, domain = email.partition("@")
    if not domain:
        return "***"
    return f"{local[:1]}***@{domain}"


def _text(value: bytes | str) -> str:
    return value.decode() if isinstance(value, bytes) else value


class OtpStore:
    """Issue and verify one-time codes for (email, share token) pairs."""

    def __init__(
        self,
        client: redis.Redis,
        *,
        secret: str | None = None,
        clock: Callable[[], float] = time.time,
        code_length: int | None = None,
        code_ttl_seconds: int | None = None,
        max_attempts: int | None = None,
        attempt_window_seconds: int | None = None,
        cooldown_seconds: int | None = None,
        lock_timeout_ms: int | None = None,
    ) -> None:
        self.client = client
        self._secret = (secret or settings.session_secret).encode()
        self._clock = clock
        self.code_length = settings.otp_length if code_length is None else code_length
        self.code_ttl_seconds = (
            settings.otp_expiration_minutes * 60 if code_ttl_seconds is None else code_ttl_seconds
        )
        self.max_attempts = settings.otp_max_attempts if max_attempts is None else max_attempts
        self.attempt_window_seconds = (
            settings.otp_attempt_window_seconds
            if attempt_window_seconds is None
            else attempt_window_seconds
        )
        self.cooldown_seconds = (
            settings.otp_cooldown_seconds if cooldown_seconds is None else cooldown_seconds
        )
        self.lock_timeout_ms = (
            settings.otp_lock_timeout_ms if lock_timeout_ms is None else lock_timeout_ms
        )

        self._generate_script = client.register_script(GENERATE_SCRIPT)
        self._verify_script = client.register_script(VERIFY_SCRIPT)
        self._release_script = client.register_script(RELEASE_LOCK_SCRIPT)

    @staticmethod
    def keys(email: str, token: str) -> OtpKeys:
        suffix = f"{token}:{email}"
        return OtpKeys(
            code=f"{CODE_KEY_PREFIX}:{suffix}",
            attempts=f"{ATTEMPTS_KEY_PREFIX}:{suffix}",
            cooldown=f"{COOLDOWN_KEY_PREFIX}:{suffix}",
            lock=f"{LOCK_KEY_PREFIX}:{suffix}",
        )

    def _digest(self, email: str, token: str, code: str) -> str:
        message = f"{token}:{email}:{code}".encode()
        return hmac.new(self._secret, message, hashlib.sha256).hexdigest()

    def _new_code(self) -> str:
        return f"{secrets.randbelow(10**self.code_length):0{self.code_length}d}"

    @staticmethod
    def _normalize(email: str, token: str) -> tuple[str, str]:
        email = (email or "").strip().lower()
        token = (token or "").strip()
        if not email or not token:
            raise ValidationError("Email and token are required")
        return email, token

    async def generate(self, email: str, token: str) -> OtpResult:
        """Issue a fresh code, or report why one cannot be issued now."""
        email, token = self._normalize(email, token)
        keys = self.keys(email, token)
        lock_value = secrets.token_hex(16)

        try:
            acquired = await self.client.set(
                keys.lock, lock_value, nx=True, px=self.lock_timeout_ms
            )
            if not acquired:
                pttl = await self.client.pttl(keys.lock)
                retry_after = max(1, math.ceil(pttl / 1000)) if pttl > 0 else 1
                logger.info(f"OTP generation already in progress for {mask_email(email)}")
                return OtpResult(OtpStatus.THROTTLED, retry_after=retry_after)

            try:
                return await self._generate_locked(email, token, keys)
            finally:
                await self._release_script(keys=[keys.lock], args=[lock_value])
        except RedisError as e:
            logger.error(f"OTP generation failed for {mask_email(email)}: {e!r}")
            raise InternalError("Verification service unavailable") from e

    async def _generate_locked(self, email: str, token: str, keys: OtpKeys) -> OtpResult:
        cooldown_ttl = await self.client.ttl(keys.cooldown)
        if cooldown_ttl != -2:
            logger.info(f"OTP cooldown active for {mask_email(email)} ({cooldown_ttl}s)")
            return OtpResult(OtpStatus.THROTTLED, retry_after=max(cooldown_ttl, 1))

        code = self._new_code()
        expires_at_ms = int((self._clock() + self.code_ttl_seconds) * 1000)
        reply = await self._generate_script(
            keys=[keys.code, keys.attempts, keys.cooldown],
            args=[
                self._digest(email, token, code),
                expires_at_ms,
                self.code_ttl_seconds,
                self.max_attempts,
                self.attempt_window_seconds,
                self.cooldown_seconds,
            ],
        )
        status = OtpStatus(_text(reply[0]))
        if status != OtpStatus.OK:
            logger.warning(f"OTP generation rate limited for {mask_email(email)}")
            return OtpResult(status, remaining_attempts=0, retry_after=self.attempt_window_seconds)

        logger.info(f"OTP issued for {mask_email(email)}")
        return OtpResult(status, code=code, remaining_attempts=int(reply[1]))

    async def verify(self, email: str, token: str, code: str) -> OtpResult:
        """Consume the code if it matches; count the attempt otherwise."""
        email, token = self._normalize(email, token)
        keys = self.keys(email, token)
        now_ms = int(self._clock() * 1000)

        try:
            reply = await self._verify_script(
                keys=[keys.code, keys.attempts, keys.cooldown],
                args=[
                    self._digest(email, token, (code or "").strip()),
                    now_ms,
                    self.max_attempts,
                    self.attempt_window_seconds,
                ],
            )
        except RedisError as e:
            logger.error(f"OTP verification failed for {mask_email(email)}: {e!r}")
            raise InternalError("Verification service unavailable") from e

        status = OtpStatus(_text(reply[0]))
        remaining = int(reply[1])
        if status == OtpStatus.OK:
            logger.info(f"OTP verified for {mask_email(email)}")
        else:
            logger.info(
                f"OTP verification {status.value} for {mask_email(email)} "
                f"({remaining} attempts left)"
            )
        return OtpResult(status, remaining_attempts=remaining)

    async def clear(self, email: str, token: str) -> int:
        """Drop code, attempts and cooldown for the pair. Returns keys deleted."""
        email, token = self._normalize(email, token)
        keys = self.keys(email, token)
        try:
            deleted = await self.client.delete(keys.code, keys.attempts, keys.cooldown)
        except RedisError as e:
            logger.error(f"OTP reset failed for {mask_email(email)}: {e!r}")
            raise InternalError("Verification service unavailable") from e
        logger.info(f"OTP state cleared for {mask_email(email)}")
        return int(deleted)

    async def discard_code(self, email: str, token: str) -> None:
        """Drop the pending code and cooldown but keep the attempts counter."""
        email, token = self._normalize(email, token)
        keys = self.keys(email, token)
        try:
            await self.client.delete(keys.code, keys.cooldown)
        except RedisError as e:
            logger.error(f"OTP discard failed for {mask_email(email)}: {e!r}")
            raise InternalError("Verification service unavailable") from e
