"""
Google Calendar integration for Plansync.

Provides the Calendar API client, OAuth token calls and payload mapping
used by the sync components.
"""

from plansync.integrations.google_calendar.adapter import GoogleCalendarAdapter
from plansync.integrations.google_calendar.client import GoogleCalendarClient
from plansync.integrations.google_calendar.oauth import (
    GoogleOAuthFlow,
    GoogleUserInfo,
    OAuthError,
    OAuthTokens,
)

__all__ = [
    "GoogleCalendarAdapter",
    "GoogleCalendarClient",
    "GoogleOAuthFlow",
    "GoogleUserInfo",
    "OAuthError",
    "OAuthTokens",
]
