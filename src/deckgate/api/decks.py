"""Owner endpoints for deck records."""

import logging

from fastapi import APIRouter, Query, status
from sqlalchemy import delete
from sqlmodel import select

from deckgate.api.deps import CurrentUser, OwnerRateLimit, SessionDep
from deckgate.errors import NotFoundError, ValidationError
from deckgate.models import DeckFile, ShareLink
from deckgate.models.deck import DeckFileCreate, DeckFileRead
from deckgate.schemas.analytics import DeckAnalyticsResponse
from deckgate.services import analytics
from deckgate.services.storage import storage

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=list[DeckFileRead])
async def list_decks(session: SessionDep, user: CurrentUser, _rate_limit: OwnerRateLimit):
    """List the current user's decks."""
    stmt = (
        select(DeckFile)
        .where(DeckFile.user_id == user.id)
        .order_by(DeckFile.created_at.desc())  # type: ignore[attr-defined]
    )
    result = await session.execute(stmt)
    return result.scalars().all()


@router.post("", response_model=DeckFileRead, status_code=status.HTTP_201_CREATED)
async def register_deck(
    deck_in: DeckFileCreate,
    session: SessionDep,
    user: CurrentUser,
    _rate_limit: OwnerRateLimit,
):
    """Register an already stored PDF as a deck."""
    if not await storage.file_exists(deck_in.file_path):
        raise ValidationError("Deck file not found in storage")

    deck = DeckFile(user_id=user.id, name=deck_in.name, file_path=deck_in.file_path)
    session.add(deck)
    await session.commit()
    await session.refresh(deck)
    return deck


@router.delete("/{deck_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_deck(
    deck_id: str,
    session: SessionDep,
    user: CurrentUser,
    _rate_limit: OwnerRateLimit,
):
    """Delete a deck with its share links, view history and stored PDF."""
    stmt = select(DeckFile).where(DeckFile.id == deck_id, DeckFile.user_id == user.id)
    deck = (await session.execute(stmt)).scalar_one_or_none()
    if deck is None:
        raise NotFoundError("Deck not found")

    # Explicit so the cascade does not depend on database-level FK enforcement
    await session.execute(delete(ShareLink).where(ShareLink.deck_id == deck.id))  # type: ignore[arg-type]
    await analytics.delete_deck_views(session, deck.id)
    file_path = deck.file_path
    await session.delete(deck)
    await session.commit()
    logger.info(f"Deck {deck_id} deleted by {user.id}")

    try:
        await storage.delete_file(file_path)
    except OSError as e:
        logger.warning(f"Failed to delete deck blob {file_path}: {e}")


@router.get("/{deck_id}/analytics", response_model=DeckAnalyticsResponse)
async def get_deck_analytics(
    deck_id: str,
    session: SessionDep,
    user: CurrentUser,
    _rate_limit: OwnerRateLimit,
    token: str | None = Query(default=None, description="Only views through this link"),
):
    """View counts, engagement and viewer history for one of the user's decks."""
    result = await analytics.get_deck_analytics(session, user.id, deck_id, token)
    return DeckAnalyticsResponse.model_validate(result)
