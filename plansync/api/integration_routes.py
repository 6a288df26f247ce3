"""
Google Calendar integration routes.

1. /integrations/google/start - Authorization URL for the consent screen
2. /integrations/google/callback - Exchange the code and connect the account
3. /integrations/google/calendars - Account, calendars and sync state
4. /integrations/google/calendars/toggle - Opt a calendar in or out
5. /integrations/google/sync - Manual availability sync
6. /integrations/google/disconnect - Revoke the connection

Sync errors raised here are turned into responses by the handler in
plansync.api.main.
"""

import logging
import secrets
import uuid
from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from plansync.api.dependencies import get_connection_service, get_current_user_id
from plansync.api.models import (
    AccountResponse,
    AuthCallbackResponse,
    AuthStartResponse,
    CalendarResponse,
    DisconnectResponse,
    OverviewResponse,
    SyncAvailabilityResponse,
    SyncStateResponse,
    ToggleCalendarRequest,
    ToggleCalendarResponse,
)
from plansync.integrations.google_calendar.oauth import OAuthError
from plansync.models.accounts import RemoteCalendarRef
from plansync.models.base import utcnow
from plansync.services.connections import ConnectionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/integrations/google", tags=["google-calendar"])


# In-memory state storage, single process only
# State tokens expire after 10 minutes; expired ones are pruned on each /start
STATE_TTL = timedelta(minutes=10)
_oauth_states: dict[str, tuple[uuid.UUID, datetime]] = {}


def _prune_states(now: datetime) -> None:
    expired = [state for state, (_, issued_at) in _oauth_states.items() if now - issued_at > STATE_TTL]
    for state in expired:
        del _oauth_states[state]


def _generate_state(user_id: uuid.UUID) -> str:
    """Generate a random state token and remember which user it belongs to."""
    now = utcnow()
    _prune_states(now)
    state = secrets.token_urlsafe(32)
    _oauth_states[state] = (user_id, now)
    return state


def _validate_state(state: str) -> Optional[uuid.UUID]:
    """Consume a state token and return its user, if it was issued here and has not expired."""
    entry = _oauth_states.pop(state, None)
    if entry is None:
        return None
    user_id, issued_at = entry
    if utcnow() - issued_at > STATE_TTL:
        return None
    return user_id


def _calendar_response(calendar: RemoteCalendarRef) -> CalendarResponse:
    return CalendarResponse(
        id=str(calendar.id),
        calendar_id=calendar.remote_calendar_id,
        summary=calendar.summary,
        primary=calendar.primary,
        selected=calendar.selected,
        background_color=calendar.background_color,
        foreground_color=calendar.foreground_color,
    )


@router.get("/start", response_model=AuthStartResponse)
def start_connection(
    user_id: uuid.UUID = Depends(get_current_user_id),
    service: ConnectionService = Depends(get_connection_service),
) -> AuthStartResponse:
    """Start the Google OAuth flow for the calling user."""
    state = _generate_state(user_id)
    logger.info(f"Generated OAuth URL for user {user_id}")
    return AuthStartResponse(
        authorization_url=service.oauth_flow.get_authorization_url(state),
        state=state,
    )


@router.get("/callback", response_model=AuthCallbackResponse)
def oauth_callback(
    code: Optional[str] = Query(None, description="Authorization code from Google"),
    state: Optional[str] = Query(None, description="State token for CSRF protection"),
    error: Optional[str] = Query(None, description="Error from Google OAuth"),
    service: ConnectionService = Depends(get_connection_service),
) -> AuthCallbackResponse:
    """
    Handle the redirect back from Google.

    The user is identified by the state token issued by /start.
    """
    if error:
        logger.warning(f"OAuth error: {error}")
        raise HTTPException(status_code=400, detail=f"OAuth authorization failed: {error}")

    if not code or not state:
        raise HTTPException(status_code=400, detail="Missing code or state")

    user_id = _validate_state(state)
    if user_id is None:
        logger.warning("Invalid OAuth state token")
        raise HTTPException(
            status_code=400,
            detail="Invalid or expired state token. Please restart the OAuth flow.",
        )

    try:
        account = service.complete_connection(user_id, code)
    except OAuthError as e:
        logger.error(f"OAuth callback failed for user {user_id}: {e.message}")
        raise HTTPException(status_code=400, detail=f"Failed to complete OAuth flow: {e.message}")

    return AuthCallbackResponse(
        success=True,
        email=account.provider_account_email,
        message="Successfully connected Google Calendar",
    )


@router.get("/calendars", response_model=OverviewResponse)
def get_calendars(
    user_id: uuid.UUID = Depends(get_current_user_id),
    service: ConnectionService = Depends(get_connection_service),
) -> OverviewResponse:
    """Connected account, its calendars and the last sync outcome."""
    overview = service.get_overview(user_id)
    sync_state = overview.sync_state

    return OverviewResponse(
        account=AccountResponse(
            id=str(overview.account.id),
            email=overview.account.provider_account_email,
            is_revoked=overview.account.is_revoked,
        ),
        calendars=[_calendar_response(cal) for cal in overview.calendars],
        sync_state=SyncStateResponse(
            last_synced_at=sync_state.last_synced_at,
            last_sync_error=sync_state.last_sync_error,
        ) if sync_state else None,
    )


@router.post("/calendars/toggle", response_model=ToggleCalendarResponse)
def toggle_calendar(
    request: ToggleCalendarRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    service: ConnectionService = Depends(get_connection_service),
) -> ToggleCalendarResponse:
    """Opt a calendar in or out of availability and re-sync."""
    calendar = service.set_calendar_selected(user_id, request.calendar_id, request.selected)
    return ToggleCalendarResponse(success=True, calendar=_calendar_response(calendar))


@router.post("/sync", response_model=SyncAvailabilityResponse)
def sync_availability(
    user_id: uuid.UUID = Depends(get_current_user_id),
    service: ConnectionService = Depends(get_connection_service),
) -> SyncAvailabilityResponse:
    """Manually sync availability from the selected calendars."""
    result = service.sync_availability(user_id)
    return SyncAvailabilityResponse(
        success=True,
        blocks_count=result.blocks_count,
        synced_at=result.synced_at,
    )


@router.delete("/disconnect", response_model=DisconnectResponse)
def disconnect(
    user_id: uuid.UUID = Depends(get_current_user_id),
    service: ConnectionService = Depends(get_connection_service),
) -> DisconnectResponse:
    """Revoke the Google connection; the account row is kept for audit."""
    if not service.disconnect(user_id):
        raise HTTPException(status_code=404, detail="Google Calendar not connected")
    return DisconnectResponse(success=True, message="Google Calendar disconnected successfully")
