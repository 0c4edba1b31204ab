"""
Google Calendar API

Connection endpoints (OAuth connect, callback, status), outbound sync for a
single appointment, the raw event listing used by client-side
reconciliation, and an on-demand inbound pass.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, Field

from .. import config
from ..dependencies import CalendarServices, get_calendar_services
from ..exceptions import (
    CalendarSyncError,
    ForbiddenError,
    InvalidStateError,
    RefreshTokenMissingError,
)
from ..middleware.auth import require_user_id
from ..models.appointment import Appointment
from ..models.calendar import ConnectionState, SyncAction
from ..utils.timezone_utils import sync_window, to_rfc3339

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/google/calendar", tags=["calendar-connection"])
sync_router = APIRouter(prefix="/api/calendar", tags=["calendar-sync"])


class ConnectRequest(BaseModel):
    force_consent: bool = Field(default=True, alias="forceConsent")

    class Config:
        populate_by_name = True


class ConnectResponse(BaseModel):
    url: str


class StatusResponse(BaseModel):
    connected: bool
    state: ConnectionState


class SyncRequest(BaseModel):
    appointment: Appointment
    action: SyncAction
    office_color_id: Optional[str] = Field(default=None, alias="officeColorId")

    class Config:
        populate_by_name = True


class SyncResponse(BaseModel):
    success: bool
    event_id: Optional[str] = Field(default=None, alias="eventId")

    class Config:
        populate_by_name = True


class PullRequest(BaseModel):
    time_min: Optional[str] = Field(default=None, alias="timeMin")
    time_max: Optional[str] = Field(default=None, alias="timeMax")

    class Config:
        populate_by_name = True


def _http_error(error: CalendarSyncError) -> HTTPException:
    return HTTPException(
        status_code=error.status_code,
        detail={"error": error.code, "message": error.message}
    )


@router.post("/connect", response_model=ConnectResponse)
async def connect_calendar(
    request: Request,
    body: Optional[ConnectRequest] = None,
    user_id: str = Depends(require_user_id),
    services: CalendarServices = Depends(get_calendar_services)
):
    """
    Initiate Google Calendar OAuth for the authenticated user.

    Returns the Google consent URL the browser should navigate to.
    """
    force_consent = body.force_consent if body else True
    try:
        url = await services.oauth.begin_authorization(
            user_id,
            redirect_uri=config.get_redirect_uri(dict(request.headers)),
            force_consent=force_consent
        )
    except CalendarSyncError as e:
        raise _http_error(e)
    return ConnectResponse(url=url)


@router.get("/callback")
async def calendar_oauth_callback(
    request: Request,
    code: Optional[str] = Query(None, description="Authorization code from Google"),
    state: Optional[str] = Query(None, description="State issued by /connect"),
    error: Optional[str] = Query(None, description="Error reported by Google"),
    services: CalendarServices = Depends(get_calendar_services)
):
    """
    Handle the Google OAuth redirect.

    Always answers with a redirect to a landing page of the browser app,
    never with JSON.
    """
    headers = dict(request.headers)
    frontend = config.get_frontend_url(headers)

    def _failure(reason: str) -> RedirectResponse:
        return RedirectResponse(f"{frontend}/login?calendar={reason}", status_code=302)

    if error:
        logger.warning(f"Google OAuth returned error: {error}")
        return _failure("error")
    if not code or not state:
        return _failure("invalid")

    try:
        user_id = await services.oauth.complete_authorization(
            code, state, redirect_uri=config.get_redirect_uri(headers)
        )
    except InvalidStateError:
        return _failure("state")
    except RefreshTokenMissingError:
        return _failure("refresh_missing")
    except CalendarSyncError as e:
        logger.error(f"Calendar OAuth callback failed: {e}")
        return _failure("error")

    logger.info(f"Calendar connected for user {user_id}")
    return RedirectResponse(f"{frontend}/agenda?calendar=connected", status_code=302)


@router.get("/status", response_model=StatusResponse)
async def get_calendar_status(
    user_id: str = Depends(require_user_id),
    services: CalendarServices = Depends(get_calendar_services)
):
    """Calendar connection status for the authenticated user."""
    state = await services.monitor.get_state(user_id)
    return StatusResponse(connected=state != ConnectionState.DISCONNECTED, state=state)


@router.post("/reconcile")
async def reconcile_calendar(
    user_id: str = Depends(require_user_id),
    services: CalendarServices = Depends(get_calendar_services)
):
    """
    Run one inbound pass for the authenticated user now (app foreground).

    Dropped if a pass is already running; failures are logged, not raised.
    """
    results = await services.reconciler.run([user_id])
    if results is None:
        return {"skipped": True, "stats": None}
    return {"skipped": False, "stats": results.get(user_id)}


@sync_router.post("/sync", response_model=SyncResponse, response_model_by_alias=True)
async def sync_appointment(
    body: SyncRequest,
    user_id: str = Depends(require_user_id),
    services: CalendarServices = Depends(get_calendar_services)
):
    """
    Push one appointment create/update/delete to Google Calendar.

    The appointment itself was already saved by the caller; a failure here
    leaves it as is and only reports that the calendar is out of step.
    """
    if body.appointment.user_id != user_id:
        logger.warning(
            f"User {user_id} tried to sync appointment {body.appointment.id} owned by another user"
        )
        raise _http_error(ForbiddenError("Appointment belongs to another user"))

    try:
        event_id = await services.outbound.sync(
            user_id,
            body.appointment,
            body.action,
            color_id=body.office_color_id
        )
    except CalendarSyncError as e:
        raise _http_error(e)
    return SyncResponse(success=True, event_id=event_id)


@sync_router.post("/pull")
async def pull_events(
    body: PullRequest,
    user_id: str = Depends(require_user_id),
    services: CalendarServices = Depends(get_calendar_services)
):
    """Raw Google Calendar events in [timeMin, timeMax), ordered by last update."""
    time_min, time_max = body.time_min, body.time_max
    if not time_min or not time_max:
        default_min, default_max = sync_window(
            months_back=config.SYNC_WINDOW_MONTHS_BACK,
            months_ahead=config.SYNC_WINDOW_MONTHS_AHEAD
        )
        time_min = time_min or to_rfc3339(default_min)
        time_max = time_max or to_rfc3339(default_max)

    try:
        items = await services.client.list_events(user_id, time_min, time_max)
    except CalendarSyncError as e:
        raise _http_error(e)
    return {"items": items}
