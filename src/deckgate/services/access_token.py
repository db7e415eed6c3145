"""Signed session tokens for verified share-link viewers.

A token asserts that ``email`` was verified for one share ``token`` at a given
access level. It is short lived and stateless: the server keeps nothing, the
client replays it on each content request.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt

from deckgate.config import settings

logger = logging.getLogger(__name__)

ACCESS_TOKEN_TYPE = "share_access"


@dataclass(frozen=True)
class AccessClaims:
    """Verified claims of a share access token."""

    token: str
    email: str
    access_level: str
    issued_at: datetime
    expires_at: datetime


def issue_access_token(
    token: str,
    email: str,
    access_level: str,
    now: datetime | None = None,
) -> str:
    """Mint a session token for a verified (email, share token) pair."""
    issued = now or datetime.now(UTC)
    expires = issued + timedelta(hours=settings.access_token_expiration_hours)
    payload = {
        "type": ACCESS_TOKEN_TYPE,
        "token": token,
        "email": email.strip().lower(),
        "accessLevel": access_level,
        "iat": int(issued.timestamp()),
        "exp": int(expires.timestamp()),
    }
    return jwt.encode(payload, settings.session_secret, algorithm=settings.jwt_algorithm)


def verify_access_token(signed: str | None) -> AccessClaims | None:
    """Return the claims of a valid token, None for anything else.

    Signature mismatch, malformed input, wrong token type and expiry all
    yield None. Callers treat None as anonymous, never as a retryable error.
    """
    if not signed:
        return None
    try:
        payload = jwt.decode(
            signed,
            settings.session_secret,
            algorithms=[settings.jwt_algorithm],
            options={"require_exp": True, "require_iat": True},
        )
    except JWTError as e:
        logger.debug(f"Access token rejected: {e}")
        return None

    if payload.get("type") != ACCESS_TOKEN_TYPE:
        return None
    token = payload.get("token")
    email = payload.get("email")
    if not isinstance(token, str) or not isinstance(email, str) or not token or not email:
        return None

    return AccessClaims(
        token=token,
        email=email,
        access_level=str(payload.get("accessLevel", "")),
        issued_at=datetime.fromtimestamp(payload["iat"], UTC),
        expires_at=datetime.fromtimestamp(payload["exp"], UTC),
    )
