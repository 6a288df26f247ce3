"""
Pydantic request and response models for the Google integration API.

Field names are snake_case in Python and camelCase on the wire.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# =============================================================================
# Request Models
# =============================================================================


class ToggleCalendarRequest(CamelModel):
    """Opt a calendar in or out of availability."""

    calendar_id: str = Field(
        ...,
        alias="calendarId",
        min_length=1,
        description="Provider calendar ID",
    )
    selected: bool


# =============================================================================
# Response Models
# =============================================================================


class AuthStartResponse(CamelModel):
    """OAuth authorization URL to redirect the user to."""

    authorization_url: str = Field(..., alias="authorizationUrl")
    state: str


class AuthCallbackResponse(CamelModel):
    success: bool
    email: str
    message: str


class AccountResponse(CamelModel):
    id: str
    email: str
    is_revoked: bool = Field(..., alias="isRevoked")


class CalendarResponse(CamelModel):
    id: str
    calendar_id: str = Field(..., alias="calendarId")
    summary: str
    primary: bool
    selected: bool
    background_color: Optional[str] = Field(None, alias="backgroundColor")
    foreground_color: Optional[str] = Field(None, alias="foregroundColor")


class SyncStateResponse(CamelModel):
    last_synced_at: Optional[datetime] = Field(None, alias="lastSyncedAt")
    last_sync_error: Optional[str] = Field(None, alias="lastSyncError")


class OverviewResponse(CamelModel):
    """Connected account, its calendars and the last availability sync."""

    account: AccountResponse
    calendars: list[CalendarResponse]
    sync_state: Optional[SyncStateResponse] = Field(None, alias="syncState")


class ToggleCalendarResponse(CamelModel):
    success: bool
    calendar: CalendarResponse


class SyncAvailabilityResponse(CamelModel):
    success: bool
    blocks_count: int = Field(..., alias="blocksCount")
    synced_at: datetime = Field(..., alias="syncedAt")


class DisconnectResponse(CamelModel):
    success: bool
    message: str


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    database_connected: bool
