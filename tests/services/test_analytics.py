"""View tracking and deck analytics tests."""

from datetime import timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from deckgate.errors import NotFoundError, ValidationError
from deckgate.models import DeckFile, DeckView, PageView, ShareLink, User
from deckgate.models.base import utcnow
from deckgate.services import analytics
from deckgate.services.analytics import ViewerInfo
from tests.conftest import make_link


class TestStartView:
    @pytest.mark.asyncio
    async def test_anonymous_view_gets_generated_viewer_id(
        self, session: AsyncSession, public_link: ShareLink
    ):
        result = await analytics.start_view(session, public_link, ViewerInfo(user_agent="UA"))

        assert result.resumed is False
        view = await session.get(DeckView, result.view_id)
        assert view is not None
        assert view.viewer_id.startswith("anon_")
        assert view.viewer_email is None
        assert view.deck_id == public_link.deck_id
        assert view.user_agent == "UA"

    @pytest.mark.asyncio
    async def test_resumes_by_view_id(self, session: AsyncSession, public_link: ShareLink):
        first = await analytics.start_view(session, public_link, ViewerInfo())
        await analytics.end_view(session, public_link, first.view_id, duration=30)

        again = await analytics.start_view(session, public_link, ViewerInfo(), first.view_id)

        assert again.resumed is True
        assert again.view_id == first.view_id
        view = await session.get(DeckView, first.view_id)
        assert view.ended_at is None

    @pytest.mark.asyncio
    async def test_view_id_from_another_link_opens_new_view(
        self, session: AsyncSession, deck: DeckFile, public_link: ShareLink
    ):
        other = await make_link(session, deck)
        foreign = await analytics.start_view(session, other, ViewerInfo())

        result = await analytics.start_view(session, public_link, ViewerInfo(), foreign.view_id)

        assert result.resumed is False
        assert result.view_id != foreign.view_id

    @pytest.mark.asyncio
    async def test_verified_viewer_resumes_recent_session(
        self, session: AsyncSession, whitelisted_link: ShareLink
    ):
        viewer = ViewerInfo(email="a@x.com")
        first = await analytics.start_view(session, whitelisted_link, viewer)

        again = await analytics.start_view(session, whitelisted_link, viewer)

        assert again.resumed is True
        assert again.view_id == first.view_id

    @pytest.mark.asyncio
    async def test_stale_session_is_not_resumed(
        self, session: AsyncSession, whitelisted_link: ShareLink
    ):
        viewer = ViewerInfo(email="a@x.com")
        first = await analytics.start_view(
            session, whitelisted_link, viewer, now=utcnow() - timedelta(hours=25)
        )

        again = await analytics.start_view(session, whitelisted_link, viewer)

        assert again.resumed is False
        assert again.view_id != first.view_id


class TestPageViews:
    @pytest.mark.asyncio
    async def test_records_page_and_accumulates_duration(
        self, session: AsyncSession, public_link: ShareLink
    ):
        started = await analytics.start_view(session, public_link, ViewerInfo())

        await analytics.record_page_view(
            session, public_link, started.view_id, 1, duration=12, total_pages=10
        )
        await analytics.record_page_view(session, public_link, started.view_id, 1, duration=3)

        view = await session.get(DeckView, started.view_id)
        assert view.pages_viewed == [1]
        assert view.total_duration == 15
        assert view.total_pages == 10
        assert view.completed is False
        events = (await session.execute(select(PageView))).scalars().all()
        assert sorted(event.duration for event in events) == [3, 12]

    @pytest.mark.asyncio
    async def test_eighty_percent_of_pages_completes_view(
        self, session: AsyncSession, public_link: ShareLink
    ):
        started = await analytics.start_view(session, public_link, ViewerInfo())

        for page in range(1, 5):
            await analytics.record_page_view(
                session, public_link, started.view_id, page, total_pages=5
            )

        view = await session.get(DeckView, started.view_id)
        assert view.completed is True

    @pytest.mark.asyncio
    async def test_last_page_completes_view(self, session: AsyncSession, public_link: ShareLink):
        started = await analytics.start_view(session, public_link, ViewerInfo())

        await analytics.record_page_view(
            session, public_link, started.view_id, 20, total_pages=20
        )

        view = await session.get(DeckView, started.view_id)
        assert view.completed is True

    @pytest.mark.asyncio
    async def test_negative_duration_counts_as_zero(
        self, session: AsyncSession, public_link: ShareLink
    ):
        started = await analytics.start_view(session, public_link, ViewerInfo())

        await analytics.record_page_view(session, public_link, started.view_id, 2, duration=-40)

        view = await session.get(DeckView, started.view_id)
        assert view.total_duration == 0

    @pytest.mark.asyncio
    async def test_requires_view_and_page(self, session: AsyncSession, public_link: ShareLink):
        with pytest.raises(ValidationError):
            await analytics.record_page_view(session, public_link, None, 1)

        started = await analytics.start_view(session, public_link, ViewerInfo())
        with pytest.raises(ValidationError):
            await analytics.record_page_view(session, public_link, started.view_id, None)

    @pytest.mark.asyncio
    async def test_unknown_view(self, session: AsyncSession, public_link: ShareLink):
        with pytest.raises(NotFoundError):
            await analytics.record_page_view(session, public_link, "missing", 1)


class TestDeckAnalytics:
    async def _seed(self, session: AsyncSession, link: ShareLink) -> None:
        reader = await analytics.start_view(session, link, ViewerInfo(email="a@x.com"))
        for page in (1, 2, 3, 4):
            await analytics.record_page_view(
                session, link, reader.view_id, page, duration=10, total_pages=5
            )

        skimmer = await analytics.start_view(session, link, ViewerInfo())
        await analytics.record_page_view(
            session, link, skimmer.view_id, 1, duration=20, total_pages=5
        )

    @pytest.mark.asyncio
    async def test_summary(
        self, session: AsyncSession, user: User, deck: DeckFile, whitelisted_link: ShareLink
    ):
        await self._seed(session, whitelisted_link)

        result = await analytics.get_deck_analytics(session, user.id, deck.id)

        assert result.total_views == 2
        assert result.unique_viewers == 2
        assert result.avg_duration == 30
        assert result.completion_rate == 50
        assert result.page_engagement[0].page == 1
        assert result.page_engagement[0].views == 2
        assert sum(day.count for day in result.views_by_day) == 2
        assert {view.viewer for view in result.views} == {"a@x.com", "Anonymous"}

    @pytest.mark.asyncio
    async def test_filter_by_link(
        self, session: AsyncSession, user: User, deck: DeckFile, whitelisted_link: ShareLink
    ):
        await self._seed(session, whitelisted_link)
        quiet = await make_link(session, deck)

        result = await analytics.get_deck_analytics(session, user.id, deck.id, quiet.token)

        assert result.total_views == 0
        assert result.avg_duration == 0
        assert result.completion_rate == 0
        assert result.page_engagement == []

    @pytest.mark.asyncio
    async def test_foreign_deck_is_not_found(
        self, session: AsyncSession, other_user: User, deck: DeckFile
    ):
        with pytest.raises(NotFoundError):
            await analytics.get_deck_analytics(session, other_user.id, deck.id)

    @pytest.mark.asyncio
    async def test_link_of_another_deck_is_not_found(
        self, session: AsyncSession, user: User, deck: DeckFile, whitelisted_link: ShareLink
    ):
        second = DeckFile(user_id=user.id, name="Seed", file_path="decks/seed.pdf")
        session.add(second)
        await session.commit()

        with pytest.raises(NotFoundError):
            await analytics.get_deck_analytics(session, user.id, second.id, whitelisted_link.token)

    @pytest.mark.asyncio
    async def test_delete_deck_views(
        self, session: AsyncSession, deck: DeckFile, whitelisted_link: ShareLink
    ):
        await self._seed(session, whitelisted_link)

        await analytics.delete_deck_views(session, deck.id)
        await session.commit()

        assert (await session.execute(select(DeckView))).scalars().all() == []
        assert (await session.execute(select(PageView))).scalars().all() == []
