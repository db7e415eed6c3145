"""SQLModel database models."""

from deckgate.models.analytics import DeckView, PageView
from deckgate.models.base import TimestampMixin, as_utc, generate_nanoid, generate_share_token
from deckgate.models.deck import DeckFile
from deckgate.models.share_link import AccessLevel, ShareLink
from deckgate.models.user import User

__all__ = [
    "AccessLevel",
    "DeckFile",
    "DeckView",
    "PageView",
    "ShareLink",
    "TimestampMixin",
    "User",
    "as_utc",
    "generate_nanoid",
    "generate_share_token",
]
