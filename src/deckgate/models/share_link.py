"""Share link model and schemas."""

from datetime import datetime
from enum import Enum
from typing import Self

from pydantic import EmailStr, field_validator, model_validator
from sqlalchemy import JSON, DateTime, UniqueConstraint
from sqlmodel import Field, SQLModel

from deckgate.models.base import TimestampMixin, generate_nanoid, generate_share_token


class AccessLevel(str, Enum):
    """How a share link checks the viewer's identity."""

    PUBLIC = "public"
    RESTRICTED = "restricted"
    WHITELISTED = "whitelisted"


class ShareLink(TimestampMixin, SQLModel, table=True):
    """A tokenized, policy-bound grant of view access to one deck."""

    __tablename__ = "share_links"
    __table_args__ = (
        UniqueConstraint("user_id", "link_identifier", name="uq_share_links_user_identifier"),
    )

    id: str = Field(default_factory=generate_nanoid, primary_key=True, max_length=21)
    token: str = Field(
        default_factory=generate_share_token, unique=True, index=True, max_length=64
    )
    link_identifier: str | None = Field(default=None, max_length=50)
    user_id: str = Field(foreign_key="users.id", index=True, ondelete="CASCADE", max_length=21)
    deck_id: str = Field(
        foreign_key="deck_files.id", index=True, ondelete="CASCADE", max_length=21
    )
    access_level: AccessLevel = Field(default=AccessLevel.RESTRICTED)
    recipient_email: str | None = Field(default=None, max_length=255)
    allowed_emails: list[str] | None = Field(default=None, sa_type=JSON)
    allowed_domains: list[str] | None = Field(default=None, sa_type=JSON)
    is_downloadable: bool = Field(default=False)
    expires_at: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore[call-overload]
    )

    # Single-shot code fields kept for rows written by the old verification flow
    verification_code: str | None = Field(default=None, max_length=128)
    verification_code_expires_at: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore[call-overload]
    )
    is_verified: bool = Field(default=False, description="Audit flag, never gates access")


def _normalize_list(values: list[str] | None) -> list[str] | None:
    if not values:
        return None
    normalized = [value.strip().lower() for value in values if value and value.strip()]
    return normalized or None


class ShareLinkCreate(SQLModel):
    """Schema for creating a share link."""

    deck_id: str
    access_level: AccessLevel = AccessLevel.RESTRICTED
    recipient_email: EmailStr | None = None
    allowed_emails: list[str] | None = None
    allowed_domains: list[str] | None = None
    expiration_days: int | None = None
    is_downloadable: bool = False

    @field_validator("recipient_email")
    @classmethod
    def lower_recipient(cls, value: str | None) -> str | None:
        return value.strip().lower() if value else None

    @field_validator("allowed_emails", "allowed_domains")
    @classmethod
    def normalize_lists(cls, value: list[str] | None) -> list[str] | None:
        return _normalize_list(value)

    @field_validator("allowed_domains")
    @classmethod
    def strip_at_signs(cls, value: list[str] | None) -> list[str] | None:
        if value is None:
            return None
        return [domain.strip().lower().lstrip("@") for domain in value]

    @model_validator(mode="after")
    def check_whitelist(self) -> Self:
        if self.access_level == AccessLevel.WHITELISTED and not self.recipient_email:
            raise ValueError("Recipient email is required for whitelisted links")
        return self


class IdentifierUpdate(SQLModel):
    """Schema for assigning a human-chosen link identifier."""

    identifier: str


class ShareLinkRead(SQLModel):
    """Schema for reading a share link (owner view)."""

    id: str
    token: str
    link_identifier: str | None
    deck_id: str
    access_level: AccessLevel
    recipient_email: str | None
    allowed_emails: list[str] | None
    allowed_domains: list[str] | None
    is_downloadable: bool
    is_verified: bool
    expires_at: datetime | None
    created_at: datetime
    share_url: str
    expiration_days: int | None = None


class OtpReset(SQLModel):
    """Schema for clearing a recipient's passcode state on a link."""

    email: EmailStr

    @field_validator("email")
    @classmethod
    def lower_email(cls, value: str) -> str:
        return value.strip().lower()
