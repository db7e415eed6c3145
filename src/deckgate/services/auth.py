"""Owner authentication with JWT bearer tokens."""

from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from deckgate.config import settings
from deckgate.models import User

OWNER_TOKEN_TYPE = "owner"


class AuthError(Exception):
    """Authentication error."""

    pass


def create_token(user: User) -> str:
    """Create an owner JWT for a user."""
    now = datetime.now(UTC)
    payload = {
        "sub": str(user.id),
        "email": user.email,
        "type": OWNER_TOKEN_TYPE,
        "exp": now + timedelta(days=settings.owner_token_expiration_days),
        "iat": now,
    }
    return jwt.encode(payload, settings.session_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict:
    """Decode and validate an owner JWT."""
    try:
        payload = jwt.decode(
            token,
            settings.session_secret,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError as e:
        raise AuthError(f"Invalid token: {e}") from e

    # Share access tokens are signed with the same secret
    if payload.get("type") != OWNER_TOKEN_TYPE:
        raise AuthError("Invalid token: not an owner token")
    return payload


async def verify_token(session: AsyncSession, token: str) -> User:
    """Verify an owner JWT and return the associated user."""
    payload = decode_token(token)

    user_id = payload.get("sub")
    if not user_id:
        raise AuthError("Invalid token: missing user ID")

    stmt = select(User).where(User.id == user_id)
    result = await session.execute(stmt)
    user = result.scalar_one_or_none()

    if not user:
        raise AuthError("User not found")

    return user
