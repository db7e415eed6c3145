"""Deck file model."""

from pydantic import field_validator
from sqlmodel import Field, SQLModel

from deckgate.models.base import TimestampMixin, generate_nanoid


class DeckFile(TimestampMixin, SQLModel, table=True):
    """An uploaded PDF deck owned by a user."""

    __tablename__ = "deck_files"

    id: str = Field(default_factory=generate_nanoid, primary_key=True, max_length=21)
    user_id: str = Field(foreign_key="users.id", index=True, ondelete="CASCADE", max_length=21)
    name: str = Field(max_length=255)
    file_path: str = Field(max_length=1024, description="Blob store key of the PDF")


class DeckFileCreate(SQLModel):
    """Schema for registering a deck."""

    name: str
    file_path: str

    @field_validator("name", "file_path")
    @classmethod
    def not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value

    @field_validator("file_path")
    @classmethod
    def relative_path(cls, value: str) -> str:
        if value.startswith("/") or ".." in value.split("/"):
            raise ValueError("must be a relative storage key")
        return value


class DeckFileRead(SQLModel):
    """Schema for reading a deck."""

    id: str
    name: str
    file_path: str
