"""Deck endpoint tests."""

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from deckgate.models import DeckFile, ShareLink, User
from deckgate.services import share_links
from deckgate.services.storage import StorageService


@pytest.fixture
async def stored_pdf(tmp_path, monkeypatch: pytest.MonkeyPatch) -> StorageService:
    """Point deck storage at a temp dir holding one PDF."""
    blob_store = StorageService(root=tmp_path)
    await blob_store.upload_file("decks/seed.pdf", b"%PDF-1.4 test")
    monkeypatch.setattr("deckgate.api.decks.storage", blob_store)
    return blob_store


@pytest.mark.asyncio
async def test_register_deck(
    client: AsyncClient, auth_headers: dict[str, str], stored_pdf: StorageService
):
    """Register a PDF that is already in storage."""
    response = await client.post(
        "/api/decks",
        headers=auth_headers,
        json={"name": "Seed Round", "file_path": "decks/seed.pdf"},
    )
    assert response.status_code == 201
    data = response.json()
    assert data["name"] == "Seed Round"
    assert data["file_path"] == "decks/seed.pdf"


@pytest.mark.asyncio
async def test_register_missing_file(
    client: AsyncClient, auth_headers: dict[str, str], stored_pdf: StorageService
):
    """Decks must point at a stored file."""
    response = await client.post(
        "/api/decks",
        headers=auth_headers,
        json={"name": "Ghost", "file_path": "decks/ghost.pdf"},
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Deck file not found in storage"


@pytest.mark.asyncio
async def test_register_rejects_path_escape(client: AsyncClient, auth_headers: dict[str, str]):
    """Storage keys cannot climb out of the storage root."""
    response = await client.post(
        "/api/decks",
        headers=auth_headers,
        json={"name": "Escape", "file_path": "../etc/passwd"},
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_list_decks(client: AsyncClient, auth_headers: dict[str, str], deck: DeckFile):
    """List the owner's decks."""
    response = await client.get("/api/decks", headers=auth_headers)
    assert response.status_code == 200
    assert [item["id"] for item in response.json()] == [deck.id]


@pytest.mark.asyncio
async def test_delete_deck_removes_links(
    client: AsyncClient,
    session: AsyncSession,
    auth_headers: dict[str, str],
    deck: DeckFile,
    whitelisted_link: ShareLink,
):
    """Deleting a deck revokes every link to it."""
    response = await client.delete(f"/api/decks/{deck.id}", headers=auth_headers)
    assert response.status_code == 204

    assert await share_links.get_by_token(session, whitelisted_link.token) is None
    assert await session.get(DeckFile, deck.id) is None


@pytest.mark.asyncio
async def test_delete_unknown_deck(client: AsyncClient, auth_headers: dict[str, str]):
    """Missing decks are 404."""
    response = await client.delete("/api/decks/nope", headers=auth_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_delete_deck_removes_stored_file(
    client: AsyncClient,
    session: AsyncSession,
    auth_headers: dict[str, str],
    user: User,
    stored_pdf: StorageService,
):
    """The PDF behind a deleted deck is not left in storage."""
    seeded = DeckFile(user_id=user.id, name="Seed", file_path="decks/seed.pdf")
    session.add(seeded)
    await session.commit()
    assert await stored_pdf.file_exists("decks/seed.pdf")

    response = await client.delete(f"/api/decks/{seeded.id}", headers=auth_headers)
    assert response.status_code == 204

    assert not await stored_pdf.file_exists("decks/seed.pdf")


@pytest.mark.asyncio
async def test_delete_deck_with_missing_file(
    client: AsyncClient, auth_headers: dict[str, str], deck: DeckFile, stored_pdf: StorageService
):
    """A blob that is already gone does not fail the delete."""
    response = await client.delete(f"/api/decks/{deck.id}", headers=auth_headers)
    assert response.status_code == 204
