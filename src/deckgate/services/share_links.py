"""Share link lifecycle: creation, identifiers, liveness and revocation.

Persistence is delegated to the database; every mutating query is scoped by
the owning user id so authorization holds at the query level.
"""

import logging
import re
from datetime import datetime, timedelta

from sqlalchemy import delete, or_, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from deckgate.config import settings
from deckgate.errors import ConflictError, ExpiredError, NotFoundError, ValidationError
from deckgate.models import AccessLevel, DeckFile, ShareLink, User
from deckgate.models.base import utcnow
from deckgate.models.share_link import ShareLinkCreate
from deckgate.services.access_policy import Liveness, check_liveness

logger = logging.getLogger(__name__)

IDENTIFIER_MAX_LENGTH = 50
MIN_TOKEN_LENGTH = 10


def sanitize_identifier(raw: str) -> str:
    """Normalize a human-chosen identifier to ``[a-z0-9_-]{1,50}``.

    Examples:
        sanitize_identifier("My Deck!") -> "my_deck"
        sanitize_identifier("Series-A 2026") -> "series-a_2026"
    """
    if not isinstance(raw, str):
        raise ValidationError("Identifier is required and must be a string")
    text = re.sub(r"\s+", "_", raw.strip().lower())
    text = re.sub(r"[^a-z0-9_-]", "", text)
    if not text:
        raise ValidationError("Identifier cannot be empty after sanitization")
    if len(text) > IDENTIFIER_MAX_LENGTH:
        raise ValidationError(f"Identifier must be {IDENTIFIER_MAX_LENGTH} characters or less")
    return text


def resolve_expiration_days(requested: int | None) -> int:
    """Clamp the requested duration to the allowed set, else the default."""
    if requested in settings.share_link_expiration_choices:
        return requested  # type: ignore[return-value]
    return settings.share_link_default_expiration_days


def build_share_url(token: str, identifier: str | None = None) -> str:
    base = settings.app_url.rstrip("/")
    if identifier:
        return f"{base}/{identifier}/view?token={token}"
    return f"{base}/view?token={token}"


def require_token(token: str | None) -> str:
    """Reject tokens that cannot possibly exist before touching storage."""
    if not token or not isinstance(token, str) or len(token.strip()) < MIN_TOKEN_LENGTH:
        raise ValidationError("Invalid token format")
    return token.strip()


async def get_by_token(session: AsyncSession, token: str) -> ShareLink | None:
    stmt = select(ShareLink).where(ShareLink.token == token)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_live_link(
    session: AsyncSession,
    token: str,
    now: datetime | None = None,
) -> ShareLink:
    """Load a link and enforce liveness.

    Unknown and revoked tokens are indistinguishable (404). Expiry is not a
    secret and gets its own status (410).
    """
    link = await get_by_token(session, require_token(token))
    if link is None:
        raise NotFoundError()

    liveness = check_liveness(link, now)
    if liveness == Liveness.EXPIRED:
        raise ExpiredError("This share link has expired")
    if liveness == Liveness.TOO_OLD:
        raise ExpiredError("Share link is too old")
    return link


async def list_share_links(
    session: AsyncSession,
    owner_id: str,
    deck_id: str | None = None,
) -> list[ShareLink]:
    stmt = select(ShareLink).where(ShareLink.user_id == owner_id)
    if deck_id:
        stmt = stmt.where(ShareLink.deck_id == deck_id)
    stmt = stmt.order_by(ShareLink.created_at.desc())  # type: ignore[attr-defined]
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def create_share_link(
    session: AsyncSession,
    owner: User,
    data: ShareLinkCreate,
    now: datetime | None = None,
) -> tuple[ShareLink, int]:
    """Create a link for one of the owner's decks. Returns (link, days valid)."""
    deck_stmt = select(DeckFile).where(DeckFile.id == data.deck_id, DeckFile.user_id == owner.id)
    deck = (await session.execute(deck_stmt)).scalar_one_or_none()
    if deck is None:
        raise NotFoundError("Deck not found or unauthorized")

    now = now or utcnow()
    days = resolve_expiration_days(data.expiration_days)
    is_public = data.access_level == AccessLevel.PUBLIC

    link = ShareLink(
        user_id=owner.id,
        deck_id=deck.id,
        access_level=data.access_level,
        recipient_email=None if is_public else data.recipient_email,
        allowed_emails=None if is_public else data.allowed_emails,
        allowed_domains=None if is_public else data.allowed_domains,
        is_downloadable=data.is_downloadable,
        expires_at=now + timedelta(days=days),
        created_at=now,
        updated_at=now,
    )
    session.add(link)
    await session.commit()
    await session.refresh(link)

    logger.info(f"Share link {link.id} created for deck {deck.id} ({link.access_level.value})")
    return link, days


async def set_identifier(
    session: AsyncSession,
    owner: User,
    token: str,
    raw_identifier: str,
) -> ShareLink:
    """Assign a sanitized identifier, unique among the owner's links."""
    identifier = sanitize_identifier(raw_identifier)

    stmt = select(ShareLink).where(ShareLink.token == token, ShareLink.user_id == owner.id)
    link = (await session.execute(stmt)).scalar_one_or_none()
    if link is None:
        raise NotFoundError("Share link not found or unauthorized")

    clash_stmt = select(ShareLink.id).where(
        ShareLink.user_id == owner.id,
        ShareLink.link_identifier == identifier,
        ShareLink.token != token,
    )
    if (await session.execute(clash_stmt)).first() is not None:
        raise ConflictError("This identifier is already in use by another link")

    link.link_identifier = identifier
    session.add(link)
    try:
        await session.commit()
    except IntegrityError as e:
        # Lost a race against a concurrent assignment of the same identifier
        await session.rollback()
        raise ConflictError("This identifier is already in use by another link") from e
    await session.refresh(link)
    return link


async def revoke_share_link(session: AsyncSession, owner_id: str, token: str) -> bool:
    """Delete the owner's link. Revoking a missing link is not an error."""
    stmt = (
        delete(ShareLink)
        .where(
            ShareLink.token == token,  # type: ignore[arg-type]
            ShareLink.user_id == owner_id,  # type: ignore[arg-type]
        )
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    await session.commit()
    deleted = bool(result.rowcount)  # type: ignore[attr-defined]
    if deleted:
        logger.info(f"Share link revoked by owner {owner_id}")
    return deleted


async def mark_verified(session: AsyncSession, token: str, email: str) -> bool:
    """Best-effort audit flag after a successful verification.

    Failures are logged and swallowed: the flag never gates access, so a
    degraded database must not block a viewer who proved their identity.
    """
    stmt = (
        update(ShareLink)
        .where(ShareLink.token == token)  # type: ignore[arg-type]
        .values(is_verified=True, updated_at=utcnow())
    )
    try:
        await session.execute(stmt)
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.warning(f"Could not record verification for share link: {e!r}")
        return False
    return True


async def clear_legacy_code(session: AsyncSession, owner_id: str, token: str) -> None:
    """Reset the single-shot code columns on the owner's link."""
    stmt = (
        update(ShareLink)
        .where(ShareLink.token == token, ShareLink.user_id == owner_id)  # type: ignore[arg-type]
        .values(verification_code=None, verification_code_expires_at=None)
    )
    await session.execute(stmt)
    await session.commit()


async def purge_dead_links(session: AsyncSession, now: datetime | None = None) -> int:
    """Delete links past their expiry or maximum age. Returns rows deleted."""
    now = now or utcnow()
    oldest = now - timedelta(days=settings.share_link_max_age_days)
    stmt = (
        delete(ShareLink)
        .where(
            or_(
                ShareLink.expires_at < now,  # type: ignore[arg-type,operator]
                ShareLink.created_at < oldest,  # type: ignore[arg-type]
            )
        )
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    await session.commit()
    return int(result.rowcount or 0)  # type: ignore[attr-defined]
