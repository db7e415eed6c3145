"""Viewer-facing access flows for share links.

Composes link liveness, the access policy, the OTP store and access tokens
into the request-code / verify-code / content flows exposed over HTTP. The
helpers here raise ``AppError`` subclasses; routes stay thin.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from deckgate.config import settings
from deckgate.errors import (
    InternalError,
    NotFoundError,
    PolicyDeniedError,
    RateLimitedError,
    UnauthenticatedError,
    ValidationError,
)
from deckgate.models import AccessLevel, DeckFile, ShareLink
from deckgate.services import share_links
from deckgate.services.access_policy import (
    DenialReason,
    Verdict,
    VerdictKind,
    evaluate,
    normalize_email,
)
from deckgate.services.access_token import AccessClaims, issue_access_token
from deckgate.services.email import EmailService, email_service
from deckgate.services.otp import OtpStatus, OtpStore, mask_email
from deckgate.services.storage import StorageService, storage

logger = logging.getLogger(__name__)

GENERIC_OTP_FAILURE = "Invalid or expired OTP"


@dataclass
class CodeRequestResult:
    message: str
    requires_verification: bool
    dev_code: str | None = None


@dataclass
class VerifiedAccess:
    access_token: str | None
    access_level: AccessLevel
    is_downloadable: bool


@dataclass
class AccessRequirements:
    access_level: AccessLevel
    require_verification: bool
    allow_anonymous: bool
    is_downloadable: bool
    expires_at: datetime | None


@dataclass
class ContentAccess:
    url: str
    deck_name: str
    is_downloadable: bool
    expires_in: int


def _require_email(email: str | None) -> str:
    normalized = normalize_email(email)
    if normalized is None:
        raise ValidationError("A valid email address is required")
    return normalized


def _raise_for_denial(verdict: Verdict) -> None:
    if verdict.kind != VerdictKind.DENIED:
        return
    if verdict.reason == DenialReason.INVALID_EMAIL:
        raise ValidationError("A valid email address is required")
    raise PolicyDeniedError("This email is not authorized to view this deck")


async def request_code(
    session: AsyncSession,
    store: OtpStore,
    token: str,
    email: str | None,
    *,
    mailer: EmailService | None = None,
    now: datetime | None = None,
) -> CodeRequestResult:
    """Issue and deliver a one-time code for (token, email)."""
    link = await share_links.get_live_link(session, token, now)
    verdict = evaluate(link, email, now)
    if verdict.kind == VerdictKind.GRANTED:
        return CodeRequestResult(
            message="This link is public, no verification required",
            requires_verification=False,
        )
    _raise_for_denial(verdict)

    address = _require_email(email)
    result = await store.generate(address, link.token)
    if result.status == OtpStatus.THROTTLED:
        raise RateLimitedError(
            "Please wait before requesting another code", retry_after=result.retry_after
        )
    if result.status == OtpStatus.RATE_LIMITED:
        raise RateLimitedError(
            "Too many attempts. Please try again later.", retry_after=result.retry_after
        )
    if result.code is None:
        logger.error(f"OTP store issued no code for {mask_email(address)}")
        raise InternalError("Failed to issue verification code")

    sent = await (mailer or email_service).send_verification_code(address, result.code)
    if not sent:
        if settings.is_production:
            # Undeliverable code; the attempt it consumed still counts
            await store.discard_code(address, link.token)
            raise InternalError("Failed to send verification code")
        logger.warning(f"Verification email to {mask_email(address)} not delivered")

    return CodeRequestResult(
        message="Verification code sent",
        requires_verification=True,
        dev_code=result.code if settings.otp_echo_enabled else None,
    )


async def verify_code(
    session: AsyncSession,
    store: OtpStore,
    token: str,
    email: str | None,
    code: str | None,
    now: datetime | None = None,
) -> VerifiedAccess:
    """Consume a code and mint an access token for the verified email."""
    code = (code or "").strip()
    if not re.fullmatch(rf"\d{{{settings.otp_length}}}", code):
        raise ValidationError(f"Code must be {settings.otp_length} digits")

    link = await share_links.get_live_link(session, token, now)
    verdict = evaluate(link, email, now)
    if verdict.kind == VerdictKind.GRANTED:
        return VerifiedAccess(
            access_token=None,
            access_level=link.access_level,
            is_downloadable=link.is_downloadable,
        )
    _raise_for_denial(verdict)

    address = _require_email(email)
    result = await store.verify(address, link.token, code)
    if result.status == OtpStatus.LOCKED:
        raise RateLimitedError(
            "Too many failed attempts. Please request a new code later.",
            retry_after=store.attempt_window_seconds,
        )
    if not result.success:
        raise PolicyDeniedError(GENERIC_OTP_FAILURE)

    # A failed audit write rolls back and expires the instance
    link_token, access_level, downloadable = link.token, link.access_level, link.is_downloadable
    await share_links.mark_verified(session, link_token, address)
    access_token = issue_access_token(link_token, address, access_level.value, now)
    return VerifiedAccess(
        access_token=access_token,
        access_level=access_level,
        is_downloadable=downloadable,
    )


async def get_requirements(
    session: AsyncSession,
    token: str,
    now: datetime | None = None,
) -> AccessRequirements:
    """Describe what a viewer needs, without revealing who is allowed."""
    link = await share_links.get_live_link(session, token, now)
    is_public = link.access_level == AccessLevel.PUBLIC
    return AccessRequirements(
        access_level=link.access_level,
        require_verification=not is_public,
        allow_anonymous=is_public,
        is_downloadable=link.is_downloadable,
        expires_at=link.expires_at,
    )


async def evaluate_email(
    session: AsyncSession,
    token: str,
    email: str | None,
    now: datetime | None = None,
) -> Verdict:
    """Report whether ``email`` would be admitted. Grants nothing by itself."""
    link = await share_links.get_live_link(session, token, now)
    verdict = evaluate(link, email, now)
    _raise_for_denial(verdict)
    return verdict


async def authorize_viewer(
    session: AsyncSession,
    token: str,
    claims: AccessClaims | None,
    now: datetime | None = None,
) -> tuple[ShareLink, str | None]:
    """Resolve a live link for a viewer and the email they proved, if any.

    Non-public links need access claims minted for this very link whose
    email still passes the current policy.
    """
    link = await share_links.get_live_link(session, token, now)
    email = claims.email if claims is not None and claims.token == link.token else None

    if link.access_level != AccessLevel.PUBLIC:
        if email is None:
            raise UnauthenticatedError("A valid access token is required")
        # Allow-lists may have changed since the token was issued
        _raise_for_denial(evaluate(link, email, now))

    return link, email


async def authorize_content(
    session: AsyncSession,
    token: str,
    claims: AccessClaims | None,
    *,
    blob_store: StorageService | None = None,
    now: datetime | None = None,
) -> ContentAccess:
    """Hand out a short-lived URL for the deck behind a live link."""
    link, _ = await authorize_viewer(session, token, claims, now)

    deck = await _load_deck(session, link)
    blob_store = blob_store or storage
    ttl = settings.signed_url_expiration_seconds
    return ContentAccess(
        url=blob_store.create_signed_url(deck.file_path, ttl),
        deck_name=deck.name,
        is_downloadable=link.is_downloadable,
        expires_in=ttl,
    )


async def _load_deck(session: AsyncSession, link: ShareLink) -> DeckFile:
    deck = await session.get(DeckFile, link.deck_id)
    if deck is None:
        raise NotFoundError()
    return deck
