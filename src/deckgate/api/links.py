"""Owner endpoints for managing share links."""

from fastapi import APIRouter, status

from deckgate.api.deps import CurrentUser, OtpStoreDep, OwnerRateLimit, SessionDep
from deckgate.errors import NotFoundError
from deckgate.models import ShareLink
from deckgate.models.share_link import IdentifierUpdate, OtpReset, ShareLinkCreate, ShareLinkRead
from deckgate.schemas.common import SuccessResponse
from deckgate.services import share_links

router = APIRouter()


def to_read(link: ShareLink, expiration_days: int | None = None) -> ShareLinkRead:
    return ShareLinkRead(
        id=link.id,
        token=link.token,
        link_identifier=link.link_identifier,
        deck_id=link.deck_id,
        access_level=link.access_level,
        recipient_email=link.recipient_email,
        allowed_emails=link.allowed_emails,
        allowed_domains=link.allowed_domains,
        is_downloadable=link.is_downloadable,
        is_verified=link.is_verified,
        expires_at=link.expires_at,
        created_at=link.created_at,
        share_url=share_links.build_share_url(link.token, link.link_identifier),
        expiration_days=expiration_days,
    )


@router.get("", response_model=list[ShareLinkRead])
async def list_links(
    session: SessionDep,
    user: CurrentUser,
    _rate_limit: OwnerRateLimit,
    deck_id: str | None = None,
):
    """List the current user's share links, newest first."""
    links = await share_links.list_share_links(session, user.id, deck_id)
    return [to_read(link) for link in links]


@router.post("", response_model=ShareLinkRead, status_code=status.HTTP_201_CREATED)
async def create_link(
    link_in: ShareLinkCreate,
    session: SessionDep,
    user: CurrentUser,
    _rate_limit: OwnerRateLimit,
):
    """Create a share link for one of the current user's decks."""
    link, days = await share_links.create_share_link(session, user, link_in)
    return to_read(link, days)


@router.put("/{token}/identifier", response_model=ShareLinkRead)
async def update_identifier(
    token: str,
    body: IdentifierUpdate,
    session: SessionDep,
    user: CurrentUser,
    _rate_limit: OwnerRateLimit,
):
    """Assign a readable identifier used in the share URL."""
    link = await share_links.set_identifier(session, user, token, body.identifier)
    return to_read(link)


@router.delete("/{token}", status_code=status.HTTP_204_NO_CONTENT)
async def revoke_link(
    token: str,
    session: SessionDep,
    user: CurrentUser,
    _rate_limit: OwnerRateLimit,
):
    """Revoke a share link. Revoking twice is not an error."""
    await share_links.revoke_share_link(session, user.id, token)


@router.post("/{token}/otp/reset", response_model=SuccessResponse)
async def reset_otp(
    token: str,
    body: OtpReset,
    session: SessionDep,
    store: OtpStoreDep,
    user: CurrentUser,
    _rate_limit: OwnerRateLimit,
):
    """Clear a recipient's passcode, attempts and cooldown for this link."""
    link = await share_links.get_by_token(session, token)
    if link is None or link.user_id != user.id:
        raise NotFoundError("Share link not found or unauthorized")

    await store.clear(body.email, link.token)
    await share_links.clear_legacy_code(session, user.id, link.token)
    return SuccessResponse(message="Verification state cleared")
