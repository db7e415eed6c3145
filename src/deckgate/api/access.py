"""Viewer access endpoints: passcodes, requirements, content and view tracking."""

from fastapi import APIRouter, Query, Request

from deckgate.api.deps import (
    AccessClaimsDep,
    AccessRateLimit,
    OtpStoreDep,
    SessionDep,
    TrackingRateLimit,
)
from deckgate.schemas.access import (
    AccessRequirementsResponse,
    CodeRequest,
    CodeRequestResponse,
    CodeVerify,
    CodeVerifyResponse,
    ContentResponse,
    EvaluateResponse,
)
from deckgate.schemas.analytics import TrackEvent, TrackResponse
from deckgate.services import analytics, verification
from deckgate.services.access_policy import VerdictKind
from deckgate.services.analytics import TrackEventType, ViewerInfo
from deckgate.services.rate_limit import get_client_ip

router = APIRouter()


@router.post("/request-code", response_model=CodeRequestResponse)
async def request_code(
    body: CodeRequest,
    session: SessionDep,
    store: OtpStoreDep,
    _rate_limit: AccessRateLimit,
):
    """Email a one-time code to a viewer allowed by the link's policy."""
    result = await verification.request_code(session, store, body.token, body.email)
    return CodeRequestResponse(
        message=result.message,
        requires_verification=result.requires_verification,
        dev_code=result.dev_code,
    )


@router.post("/verify-code", response_model=CodeVerifyResponse)
async def verify_code(
    body: CodeVerify,
    session: SessionDep,
    store: OtpStoreDep,
    _rate_limit: AccessRateLimit,
):
    """Exchange a valid code for a short-lived access token."""
    result = await verification.verify_code(session, store, body.token, body.email, body.code)
    return CodeVerifyResponse(
        access_token=result.access_token,
        access_level=result.access_level,
        is_downloadable=result.is_downloadable,
    )


@router.get("/requirements", response_model=AccessRequirementsResponse)
async def get_requirements(
    session: SessionDep,
    _rate_limit: AccessRateLimit,
    token: str = Query(default=""),
):
    """What a viewer needs to open the link. Never reveals allow-lists."""
    result = await verification.get_requirements(session, token)
    return AccessRequirementsResponse(
        access_level=result.access_level,
        require_verification=result.require_verification,
        allow_anonymous=result.allow_anonymous,
        is_downloadable=result.is_downloadable,
        expires_at=result.expires_at,
    )


@router.post("/evaluate", response_model=EvaluateResponse)
async def evaluate_email(
    body: CodeRequest,
    session: SessionDep,
    _rate_limit: AccessRateLimit,
):
    """Legacy email check. Reports the verdict only; grants no access."""
    verdict = await verification.evaluate_email(session, body.token, body.email)
    return EvaluateResponse(requires_verification=verdict.kind == VerdictKind.REQUIRES_OTP)


@router.get("/content", response_model=ContentResponse)
async def get_content(
    session: SessionDep,
    claims: AccessClaimsDep,
    _rate_limit: AccessRateLimit,
    token: str = Query(default=""),
):
    """Signed URL for the deck behind the link."""
    result = await verification.authorize_content(session, token, claims)
    return ContentResponse(
        url=result.url,
        deck_name=result.deck_name,
        is_downloadable=result.is_downloadable,
        expires_in=result.expires_in,
    )


@router.post("/track", response_model=TrackResponse)
async def track_view(
    body: TrackEvent,
    request: Request,
    session: SessionDep,
    claims: AccessClaimsDep,
    _rate_limit: TrackingRateLimit,
):
    """Record view sessions and page events for the deck behind a link."""
    link, email = await verification.authorize_viewer(session, body.token, claims)

    if body.event_type == TrackEventType.VIEW_START:
        viewer = ViewerInfo(
            email=email,
            user_agent=request.headers.get("user-agent"),
            ip_address=get_client_ip(request),
        )
        result = await analytics.start_view(session, link, viewer, body.view_id)
    elif body.event_type == TrackEventType.PAGE_VIEW:
        result = await analytics.record_page_view(
            session,
            link,
            body.view_id,
            body.page_number,
            duration=body.duration,
            total_pages=body.total_pages,
            page_started_at=body.page_started_at,
            page_ended_at=body.page_ended_at,
        )
    else:
        result = await analytics.end_view(session, link, body.view_id, body.duration)

    return TrackResponse(view_id=result.view_id, resumed=result.resumed)
