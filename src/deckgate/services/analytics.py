"""Deck view analytics.

Viewers open a view session when the deck loads, report each page they leave
and close the session on exit. Owners read a per-deck summary built from
those sessions.
"""

import logging
import secrets
from collections import Counter
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from deckgate.errors import NotFoundError, ValidationError
from deckgate.models import DeckFile, DeckView, PageView, ShareLink
from deckgate.models.base import as_utc, utcnow
from deckgate.services import share_links
from deckgate.services.otp import mask_email

logger = logging.getLogger(__name__)

# Share of distinct pages a viewer must reach for the view to count as read
COMPLETION_RATIO = 0.8
RESUME_WINDOW = timedelta(hours=24)
RECENT_VIEWERS_LIMIT = 10


class TrackEventType(str, Enum):
    VIEW_START = "view_start"
    PAGE_VIEW = "page_view"
    VIEW_END = "view_end"


@dataclass
class ViewerInfo:
    email: str | None = None
    user_agent: str | None = None
    ip_address: str | None = None


@dataclass
class TrackResult:
    view_id: str | None = None
    resumed: bool = False


@dataclass
class PageEngagement:
    page: int
    views: int


@dataclass
class DailyViews:
    day: date
    count: int


@dataclass
class ViewSummary:
    id: str
    viewer: str
    started_at: datetime
    last_active_at: datetime
    duration: int
    pages_viewed: list[int]
    completed: bool
    user_agent: str | None


@dataclass
class DeckAnalytics:
    total_views: int
    unique_viewers: int
    avg_duration: int
    completion_rate: int
    page_engagement: list[PageEngagement]
    views_by_day: list[DailyViews]
    recent_viewers: list[ViewSummary]
    views: list[ViewSummary]


def is_completed(pages_viewed: list[int], total_pages: int) -> bool:
    """A view is complete once it covers 80% of the deck."""
    if total_pages <= 0:
        return False
    return len(set(pages_viewed)) / total_pages >= COMPLETION_RATIO


async def _get_view(session: AsyncSession, link: ShareLink, view_id: str | None) -> DeckView:
    if not view_id:
        raise ValidationError("viewId is required for this event")
    view = await session.get(DeckView, view_id)
    # A view id only works through the link that opened it
    if view is None or view.share_link_id != link.id:
        raise NotFoundError("View not found")
    return view


async def _resume(session: AsyncSession, view: DeckView, now: datetime) -> TrackResult:
    view.last_active_at = now
    view.ended_at = None
    session.add(view)
    await session.commit()
    return TrackResult(view_id=view.id, resumed=True)


async def start_view(
    session: AsyncSession,
    link: ShareLink,
    viewer: ViewerInfo,
    view_id: str | None = None,
    now: datetime | None = None,
) -> TrackResult:
    """Open a view session, resuming the caller's previous one when possible."""
    now = now or utcnow()

    if view_id:
        existing = await session.get(DeckView, view_id)
        if existing is not None and existing.share_link_id == link.id:
            return await _resume(session, existing, now)

    if viewer.email:
        stmt = (
            select(DeckView)
            .where(
                DeckView.share_link_id == link.id,
                DeckView.viewer_email == viewer.email,
                DeckView.started_at >= now - RESUME_WINDOW,  # type: ignore[operator]
            )
            .order_by(DeckView.started_at.desc())  # type: ignore[attr-defined]
            .limit(1)
        )
        recent = (await session.execute(stmt)).scalar_one_or_none()
        if recent is not None:
            return await _resume(session, recent, now)

    view = DeckView(
        deck_id=link.deck_id,
        share_link_id=link.id,
        viewer_email=viewer.email,
        viewer_id=view_id or f"anon_{secrets.token_urlsafe(12)}",
        started_at=now,
        last_active_at=now,
        user_agent=viewer.user_agent[:512] if viewer.user_agent else None,
        ip_address=viewer.ip_address,
    )
    session.add(view)
    await session.commit()
    viewer_label = mask_email(viewer.email) if viewer.email else "anonymous viewer"
    logger.info(f"View {view.id} started on deck {link.deck_id} by {viewer_label}")
    return TrackResult(view_id=view.id, resumed=False)


async def record_page_view(
    session: AsyncSession,
    link: ShareLink,
    view_id: str | None,
    page_number: int | None,
    *,
    duration: int | None = None,
    total_pages: int | None = None,
    page_started_at: datetime | None = None,
    page_ended_at: datetime | None = None,
    now: datetime | None = None,
) -> TrackResult:
    """Record time spent on one page and fold it into the view totals."""
    if page_number is None:
        raise ValidationError("pageNumber is required for page_view")
    view = await _get_view(session, link, view_id)
    now = now or utcnow()

    seconds = max(duration or 0, 0)
    pages = list(view.pages_viewed or [])
    if page_number not in pages:
        pages.append(page_number)
    deck_pages = total_pages or view.total_pages or 0
    ended_at = page_ended_at or now
    started_at = page_started_at or ended_at - timedelta(seconds=seconds)

    # Reaching the last page also counts as reading the deck
    completed = view.completed or is_completed(pages, deck_pages) or (
        deck_pages > 0 and page_number == deck_pages
    )

    view.pages_viewed = pages
    view.total_pages = deck_pages
    view.total_duration = (view.total_duration or 0) + seconds
    view.last_active_at = ended_at
    view.completed = completed
    session.add(view)
    session.add(
        PageView(
            view_id=view.id,
            page_number=page_number,
            duration=seconds,
            viewed_at=started_at,
            exited_at=ended_at,
        )
    )
    await session.commit()
    return TrackResult(view_id=view.id)


async def end_view(
    session: AsyncSession,
    link: ShareLink,
    view_id: str | None,
    duration: int | None = None,
    now: datetime | None = None,
) -> TrackResult:
    """Close a view session. ``duration`` is the client's total for the session."""
    view = await _get_view(session, link, view_id)
    now = now or utcnow()

    if duration is not None:
        view.total_duration = max(duration, 0)
    view.last_active_at = now
    view.ended_at = now
    session.add(view)
    await session.commit()
    return TrackResult(view_id=view.id)


def _summarize(view: DeckView) -> ViewSummary:
    return ViewSummary(
        id=view.id,
        viewer=view.viewer_email or "Anonymous",
        started_at=as_utc(view.started_at),
        last_active_at=as_utc(view.last_active_at),
        duration=view.total_duration,
        pages_viewed=list(view.pages_viewed or []),
        completed=view.completed,
        user_agent=view.user_agent,
    )


async def get_deck_analytics(
    session: AsyncSession,
    owner_id: str,
    deck_id: str,
    token: str | None = None,
) -> DeckAnalytics:
    """Summarize views of an owner's deck, optionally through one link only."""
    deck = await session.get(DeckFile, deck_id)
    if deck is None or deck.user_id != owner_id:
        raise NotFoundError("Deck not found")

    stmt = select(DeckView).where(DeckView.deck_id == deck.id)
    if token:
        link = await share_links.get_by_token(session, token)
        if link is None or link.user_id != owner_id or link.deck_id != deck.id:
            raise NotFoundError("Share link not found or unauthorized")
        stmt = stmt.where(DeckView.share_link_id == link.id)
    stmt = stmt.order_by(DeckView.started_at.desc())  # type: ignore[attr-defined]
    views = list((await session.execute(stmt)).scalars().all())

    page_counts: Counter[int] = Counter()
    if views:
        page_stmt = select(PageView.page_number).where(
            PageView.view_id.in_([view.id for view in views])  # type: ignore[attr-defined]
        )
        page_counts.update((await session.execute(page_stmt)).scalars().all())

    total_views = len(views)
    deck_pages = max((view.total_pages for view in views), default=0)
    completed = sum(
        1
        for view in views
        if view.completed
        or is_completed(view.pages_viewed or [], view.total_pages or deck_pages)
    )
    daily = Counter(as_utc(view.started_at).date() for view in views)
    summaries = [_summarize(view) for view in views]

    return DeckAnalytics(
        total_views=total_views,
        unique_viewers=len({view.viewer_email or view.viewer_id for view in views}),
        avg_duration=round(sum(v.total_duration for v in views) / total_views) if views else 0,
        completion_rate=round(completed / total_views * 100) if views else 0,
        page_engagement=[
            PageEngagement(page=page, views=count)
            for page, count in sorted(page_counts.items(), key=lambda item: (-item[1], item[0]))
        ],
        views_by_day=[DailyViews(day=day, count=daily[day]) for day in sorted(daily)],
        recent_viewers=summaries[:RECENT_VIEWERS_LIMIT],
        views=summaries,
    )


async def delete_deck_views(session: AsyncSession, deck_id: str) -> None:
    """Drop every view and page event of a deck. The caller commits."""
    view_ids = select(DeckView.id).where(DeckView.deck_id == deck_id)
    await session.execute(
        delete(PageView).where(PageView.view_id.in_(view_ids))  # type: ignore[attr-defined]
    )
    await session.execute(delete(DeckView).where(DeckView.deck_id == deck_id))  # type: ignore[arg-type]
