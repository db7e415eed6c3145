"""Pytest configuration and fixtures."""

import os
from collections.abc import AsyncGenerator
from datetime import timedelta
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

# Set test environment before importing app
os.environ["ENVIRONMENT"] = "test"
os.environ.setdefault("SESSION_SECRET", "test-secret-key-that-is-at-least-32-characters-long")

import fakeredis
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from deckgate.config import settings
from deckgate.database import get_session
from deckgate.main import app
from deckgate.models import AccessLevel, DeckFile, ShareLink, User
from deckgate.models.base import utcnow
from deckgate.services.auth import create_token
from deckgate.services.otp import OtpStore


@pytest.fixture(autouse=True)
def mock_queue():
    """Mock the SAQ queue to avoid Redis connections in tests."""
    mock_job = MagicMock()
    mock_job.id = "test-job-id"

    with patch("deckgate.tasks.queue.queue.enqueue", new_callable=AsyncMock) as mock_enqueue:
        mock_enqueue.return_value = mock_job
        yield mock_enqueue


@pytest.fixture
async def test_engine():
    """Fresh in-memory SQLite database per test."""
    engine = create_async_engine(
        settings.database_url_test,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Database session bound to the per-test engine.

    Services commit for real; isolation comes from the fresh database.
    """
    factory = async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with factory() as session:
        yield session


@pytest.fixture
async def redis_client() -> AsyncGenerator[fakeredis.FakeAsyncRedis, None]:
    """In-memory Redis with Lua support, isolated per test."""
    client = fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer(), decode_responses=True)
    yield client
    await client.aclose()


@pytest.fixture
def otp_store(redis_client) -> OtpStore:
    """OTP store without issuance cooldown, so tests can generate back to back."""
    return OtpStore(redis_client, cooldown_seconds=0)


@pytest.fixture
async def client(session: AsyncSession, redis_client) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""

    async def override_get_session():
        yield session

    app.dependency_overrides[get_session] = override_get_session
    app.state.redis = redis_client

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
    app.state.redis = None


@pytest.fixture
def sent_codes():
    """Capture verification emails instead of sending them.

    Yields the AsyncMock; ``mock.call_args.args`` is ``(email, code)``.
    """
    with patch(
        "deckgate.services.verification.email_service.send_verification_code",
        new_callable=AsyncMock,
    ) as mock_send:
        mock_send.return_value = True
        yield mock_send


@pytest.fixture
async def user(session: AsyncSession) -> User:
    """Create a deck owner."""
    user = User(email="owner@example.com", name="Deck Owner")
    session.add(user)
    await session.commit()
    return user


@pytest.fixture
async def other_user(session: AsyncSession) -> User:
    """Create a second, unrelated deck owner."""
    user = User(email="someone-else@example.com", name="Other Owner")
    session.add(user)
    await session.commit()
    return user


@pytest.fixture
def auth_headers(user: User) -> dict[str, str]:
    """Authorization headers for the deck owner."""
    return {"Authorization": f"Bearer {create_token(user)}"}


@pytest.fixture
async def deck(session: AsyncSession, user: User) -> DeckFile:
    """Create a deck owned by the test user."""
    deck = DeckFile(user_id=user.id, name="Series A", file_path="decks/series-a.pdf")
    session.add(deck)
    await session.commit()
    return deck


async def make_link(
    session: AsyncSession,
    deck: DeckFile,
    access_level: AccessLevel = AccessLevel.RESTRICTED,
    **fields: Any,
) -> ShareLink:
    """Persist a share link with sensible defaults (7 days valid)."""
    fields.setdefault("expires_at", utcnow() + timedelta(days=7))
    link = ShareLink(user_id=deck.user_id, deck_id=deck.id, access_level=access_level, **fields)
    session.add(link)
    await session.commit()
    await session.refresh(link)
    return link


@pytest.fixture
async def whitelisted_link(session: AsyncSession, deck: DeckFile) -> ShareLink:
    """Whitelisted link for a single recipient."""
    return await make_link(
        session, deck, AccessLevel.WHITELISTED, recipient_email="a@x.com"
    )


@pytest.fixture
async def public_link(session: AsyncSession, deck: DeckFile) -> ShareLink:
    """Public link, no identity check."""
    return await make_link(session, deck, AccessLevel.PUBLIC, is_downloadable=True)
