"""Deck owner accounts."""

from pydantic import EmailStr, field_validator
from sqlmodel import Field, SQLModel

from deckgate.models.base import TimestampMixin, generate_nanoid


class User(TimestampMixin, SQLModel, table=True):
    """A deck owner. Owners authenticate with bearer tokens minted by the CLI."""

    __tablename__ = "users"

    id: str = Field(default_factory=generate_nanoid, primary_key=True, max_length=21)
    email: str = Field(unique=True, index=True, max_length=255)
    name: str | None = Field(default=None, max_length=255)


class UserCreate(SQLModel):
    """Input for ``deckgate users create``."""

    email: EmailStr
    name: str | None = None

    @field_validator("email")
    @classmethod
    def lower_email(cls, value: str) -> str:
        return value.strip().lower()
