"""Viewing sessions and per-page events recorded for share links."""

from datetime import datetime

from sqlalchemy import JSON, DateTime
from sqlmodel import Field, SQLModel

from deckgate.models.base import generate_nanoid, utcnow


class DeckView(SQLModel, table=True):
    """One viewer's session on a deck, opened through a share link."""

    __tablename__ = "deck_views"

    id: str = Field(default_factory=generate_nanoid, primary_key=True, max_length=21)
    deck_id: str = Field(
        foreign_key="deck_files.id", index=True, ondelete="CASCADE", max_length=21
    )
    # Revoking or purging a link keeps its history
    share_link_id: str | None = Field(
        default=None, foreign_key="share_links.id", index=True, ondelete="SET NULL", max_length=21
    )
    viewer_email: str | None = Field(default=None, max_length=255)
    viewer_id: str = Field(max_length=64, description="Anonymous session id for unverified viewers")
    started_at: datetime = Field(
        default_factory=utcnow,
        sa_type=DateTime(timezone=True),  # type: ignore[call-overload]
    )
    last_active_at: datetime = Field(
        default_factory=utcnow,
        sa_type=DateTime(timezone=True),  # type: ignore[call-overload]
    )
    ended_at: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore[call-overload]
    )
    total_duration: int = Field(default=0, description="Seconds spent on the deck")
    pages_viewed: list[int] = Field(default_factory=list, sa_type=JSON)
    total_pages: int = Field(default=0)
    completed: bool = Field(default=False)
    user_agent: str | None = Field(default=None, max_length=512)
    ip_address: str | None = Field(default=None, max_length=64)


class PageView(SQLModel, table=True):
    """Time spent on a single page during a view."""

    __tablename__ = "page_views"

    id: str = Field(default_factory=generate_nanoid, primary_key=True, max_length=21)
    view_id: str = Field(
        foreign_key="deck_views.id", index=True, ondelete="CASCADE", max_length=21
    )
    page_number: int
    duration: int = Field(default=0, description="Seconds on the page")
    viewed_at: datetime = Field(
        sa_type=DateTime(timezone=True),  # type: ignore[call-overload]
    )
    exited_at: datetime = Field(
        sa_type=DateTime(timezone=True),  # type: ignore[call-overload]
    )
