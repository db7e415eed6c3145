"""Share link owner endpoint tests."""

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from deckgate.models import DeckFile, ShareLink, User
from deckgate.services.access_token import issue_access_token
from deckgate.services.auth import create_token
from deckgate.services.otp import OtpStore
from tests.conftest import make_link


@pytest.mark.asyncio
async def test_requires_authentication(client: AsyncClient):
    """Owner endpoints reject anonymous callers."""
    response = await client.get("/api/links")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_rejects_viewer_access_token(client: AsyncClient, whitelisted_link: ShareLink):
    """A share access token is not an owner credential."""
    token = issue_access_token(whitelisted_link.token, "a@x.com", "whitelisted")
    response = await client.get("/api/links", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_create_link(client: AsyncClient, auth_headers: dict[str, str], deck: DeckFile):
    """Create a whitelisted link and get its share URL back."""
    response = await client.post(
        "/api/links",
        headers=auth_headers,
        json={
            "deck_id": deck.id,
            "access_level": "whitelisted",
            "recipient_email": "A@X.com",
            "expiration_days": 7,
        },
    )
    assert response.status_code == 201
    data = response.json()
    assert data["recipient_email"] == "a@x.com"
    assert data["expiration_days"] == 7
    assert data["share_url"].endswith(f"/view?token={data['token']}")
    assert len(data["token"]) == 32


@pytest.mark.asyncio
async def test_create_whitelisted_without_recipient(
    client: AsyncClient, auth_headers: dict[str, str], deck: DeckFile
):
    """Whitelisted links need a recipient."""
    response = await client.post(
        "/api/links",
        headers=auth_headers,
        json={"deck_id": deck.id, "access_level": "whitelisted"},
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_create_for_foreign_deck(
    client: AsyncClient, other_user: User, deck: DeckFile
):
    """Linking someone else's deck looks like a missing deck."""
    headers = {"Authorization": f"Bearer {create_token(other_user)}"}
    response = await client.post("/api/links", headers=headers, json={"deck_id": deck.id})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_list_links_is_owner_scoped(
    client: AsyncClient,
    session: AsyncSession,
    auth_headers: dict[str, str],
    other_user: User,
    deck: DeckFile,
):
    """Owners only see their own links."""
    mine = await make_link(session, deck)
    foreign_deck = DeckFile(user_id=other_user.id, name="Seed", file_path="decks/seed.pdf")
    session.add(foreign_deck)
    await session.commit()
    await make_link(session, foreign_deck)

    response = await client.get("/api/links", headers=auth_headers)
    assert response.status_code == 200
    assert [item["token"] for item in response.json()] == [mine.token]


@pytest.mark.asyncio
async def test_set_identifier(
    client: AsyncClient, session: AsyncSession, auth_headers: dict[str, str], deck: DeckFile
):
    """Identifiers are sanitized and unique per owner."""
    first = await make_link(session, deck)
    second = await make_link(session, deck)

    response = await client.put(
        f"/api/links/{first.token}/identifier",
        headers=auth_headers,
        json={"identifier": "My Deck!"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["link_identifier"] == "my_deck"
    assert data["share_url"].endswith(f"/my_deck/view?token={first.token}")

    response = await client.put(
        f"/api/links/{second.token}/identifier",
        headers=auth_headers,
        json={"identifier": "my deck"},
    )
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_set_identifier_rejects_empty(
    client: AsyncClient, whitelisted_link: ShareLink, auth_headers: dict[str, str]
):
    """Identifiers with nothing left after sanitizing are rejected."""
    response = await client.put(
        f"/api/links/{whitelisted_link.token}/identifier",
        headers=auth_headers,
        json={"identifier": "***"},
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_revoke_is_idempotent(
    client: AsyncClient, whitelisted_link: ShareLink, auth_headers: dict[str, str]
):
    """Revoking twice is fine, and the link stops resolving."""
    for _ in range(2):
        response = await client.delete(f"/api/links/{whitelisted_link.token}", headers=auth_headers)
        assert response.status_code == 204

    response = await client.get(
        "/api/access/requirements", params={"token": whitelisted_link.token}
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_reset_otp_clears_cooldown(
    client: AsyncClient,
    whitelisted_link: ShareLink,
    auth_headers: dict[str, str],
    redis_client,
):
    """Owners can unblock a recipient stuck behind a cooldown."""
    store = OtpStore(redis_client, cooldown_seconds=60)
    await store.generate("a@x.com", whitelisted_link.token)
    keys = OtpStore.keys("a@x.com", whitelisted_link.token)
    assert await redis_client.exists(keys.cooldown) == 1

    response = await client.post(
        f"/api/links/{whitelisted_link.token}/otp/reset",
        headers=auth_headers,
        json={"email": "A@x.com"},
    )
    assert response.status_code == 200
    assert await redis_client.exists(keys.code, keys.cooldown) == 0


@pytest.mark.asyncio
async def test_reset_otp_for_foreign_link(
    client: AsyncClient, whitelisted_link: ShareLink, other_user: User
):
    """Only the link's owner can reset its passcodes."""
    headers = {"Authorization": f"Bearer {create_token(other_user)}"}
    response = await client.post(
        f"/api/links/{whitelisted_link.token}/otp/reset",
        headers=headers,
        json={"email": "a@x.com"},
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_reset_otp_clears_legacy_code(
    client: AsyncClient, session: AsyncSession, auth_headers: dict[str, str], deck: DeckFile
):
    """Reset also wipes the single-shot code columns of older links."""
    link = await make_link(session, deck, verification_code="123456")

    response = await client.post(
        f"/api/links/{link.token}/otp/reset",
        headers=auth_headers,
        json={"email": "a@x.com"},
    )
    assert response.status_code == 200

    await session.refresh(link)
    assert link.verification_code is None
