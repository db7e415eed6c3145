"""Bodies of the view tracking and deck analytics endpoints."""

from datetime import date, datetime

from pydantic import ConfigDict, Field

from deckgate.schemas.access import CamelModel
from deckgate.services.analytics import TrackEventType


class TrackEvent(CamelModel):
    token: str
    event_type: TrackEventType
    view_id: str | None = Field(default=None, max_length=64)
    page_number: int | None = Field(default=None, ge=1)
    duration: int | None = None
    total_pages: int | None = Field(default=None, ge=0)
    page_started_at: datetime | None = None
    page_ended_at: datetime | None = None


class TrackResponse(CamelModel):
    success: bool = True
    view_id: str | None = None
    resumed: bool = False


class AnalyticsModel(CamelModel):
    model_config = ConfigDict(from_attributes=True)


class PageEngagementRead(AnalyticsModel):
    page: int
    views: int


class DailyViewsRead(AnalyticsModel):
    day: date
    count: int


class ViewRead(AnalyticsModel):
    id: str
    viewer: str
    started_at: datetime
    last_active_at: datetime
    duration: int
    pages_viewed: list[int]
    completed: bool
    user_agent: str | None = None


class DeckAnalyticsResponse(AnalyticsModel):
    total_views: int
    unique_viewers: int
    avg_duration: int
    completion_rate: int
    page_engagement: list[PageEngagementRead]
    views_by_day: list[DailyViewsRead]
    recent_viewers: list[ViewRead]
    views: list[ViewRead]
