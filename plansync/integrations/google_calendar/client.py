"""
Google Calendar API client wrapper with error classification.

Provides a clean interface over the Google Calendar API v3. Every failure
leaves this module as a typed CalendarSyncError, so nothing above it needs
to look at HttpError payloads or socket errors.
"""

import errno
import logging
import socket
from typing import Optional

import httplib2
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build, Resource
from googleapiclient.errors import HttpError

from plansync.exceptions import (
    PermanentProviderError,
    RemoteNotFoundError,
    TransientProviderError,
)

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})

NOT_FOUND_STATUS_CODES = frozenset({404, 410})

RATE_LIMIT_REASONS = (
    "ratelimitexceeded",
    "userratelimitexceeded",
    "quotaexceeded",
    "rate limit",
)

RETRYABLE_ERRNOS = frozenset({
    errno.ETIMEDOUT,
    errno.ECONNRESET,
    errno.ECONNREFUSED,
    errno.ECONNABORTED,
    errno.EHOSTUNREACH,
    errno.ENETUNREACH,
    errno.EPIPE,
})

def _is_rate_limited(error: HttpError) -> bool:
    content = error.content or b""
    if isinstance(content, bytes):
        content = content.decode("utf-8", errors="replace")
    text = f"{content} {error}".lower()
    return any(reason in text for reason in RATE_LIMIT_REASONS)


def _handle_http_error(error: HttpError) -> None:
    """Convert HttpError to the matching CalendarSyncError."""
    status = error.resp.status

    if status in NOT_FOUND_STATUS_CODES:
        raise RemoteNotFoundError(
            "Event or calendar not found",
            original_error=error,
            status=status,
        )
    if status in RETRYABLE_STATUS_CODES:
        raise TransientProviderError(
            f"Google Calendar temporarily unavailable ({status})",
            original_error=error,
            status=status,
        )
    if status == 403 and _is_rate_limited(error):
        raise TransientProviderError(
            "API quota or rate limit exceeded",
            original_error=error,
            status=status,
        )
    if status == 401:
        raise PermanentProviderError(
            "Authentication failed - credentials may be invalid or expired",
            original_error=error,
            status=status,
        )
    if status == 403:
        raise PermanentProviderError(
            "Access denied - check calendar permissions and granted scopes",
            original_error=error,
            status=status,
        )
    raise PermanentProviderError(
        f"Google Calendar API error ({status}): {error}",
        original_error=error,
        status=status,
    )


def _is_transient_transport_error(error: BaseException) -> bool:
    """Timeouts, dropped connections and DNS failures are worth retrying."""
    if isinstance(error, (socket.timeout, TimeoutError, ConnectionError)):
        return True
    if isinstance(error, (httplib2.ServerNotFoundError, socket.gaierror)):
        return True
    if isinstance(error, OSError):
        return error.errno in RETRYABLE_ERRNOS
    return False


def _handle_transport_error(error: BaseException) -> None:
    """Convert a network-level failure to the matching CalendarSyncError."""
    if _is_transient_transport_error(error):
        raise TransientProviderError(
            f"Network error talking to Google Calendar: {error!r}",
            original_error=error,
        )
    raise PermanentProviderError(
        f"Unexpected transport error talking to Google Calendar: {error!r}",
        original_error=error,
    )


class GoogleCalendarClient:
    """
    Wrapper around Google Calendar API v3.

    Provides:
    - Consistent typed errors (see plansync.exceptions)
    - Pagination handling for the calendar list

    Retries are left to the caller (plansync.sync.retry).
    """

    def __init__(self, credentials: Credentials):
        """
        Initialize the client.

        Args:
            credentials: Google OAuth2 credentials
        """
        self._service: Resource = build(
            "calendar",
            "v3",
            credentials=credentials,
            cache_discovery=False,
        )

    @classmethod
    def from_access_token(cls, access_token: str) -> "GoogleCalendarClient":
        """Build a client authenticated with a bearer access token."""
        return cls(Credentials(token=access_token))

    @property
    def service(self) -> Resource:
        """Get the underlying Google API service."""
        return self._service

    def _execute(self, request):
        try:
            return request.execute()
        except HttpError as e:
            _handle_http_error(e)
        except (OSError, httplib2.HttpLib2Error) as e:
            _handle_transport_error(e)

    def list_calendars(self) -> list[dict]:
        """
        List every calendar on the account's calendar list.

        Returns:
            calendarList entries across all pages
        """
        calendars = []
        page_token: Optional[str] = None

        while True:
            response = self._execute(
                self._service.calendarList().list(pageToken=page_token)
            )
            calendars.extend(response.get("items", []))

            page_token = response.get("nextPageToken")
            if not page_token:
                break

        logger.debug(f"Listed {len(calendars)} calendars")
        return calendars

    def insert_event(self, calendar_id: str, body: dict, send_updates: str = "all") -> dict:
        """
        Create a new event.

        Args:
            calendar_id: Calendar to create event in
            body: Event data in Google Calendar format
            send_updates: Who receives invite e-mails

        Returns:
            Created event with ID and etag
        """
        result = self._execute(
            self._service.events().insert(
                calendarId=calendar_id,
                body=body,
                sendUpdates=send_updates,
            )
        )
        logger.info(f"Created event {result.get('id')} in {calendar_id}")
        return result

    def update_event(
        self,
        calendar_id: str,
        event_id: str,
        body: dict,
        send_updates: str = "all",
    ) -> dict:
        """
        Replace an existing event.

        Raises:
            RemoteNotFoundError: If the event no longer exists
        """
        result = self._execute(
            self._service.events().update(
                calendarId=calendar_id,
                eventId=event_id,
                body=body,
                sendUpdates=send_updates,
            )
        )
        logger.info(f"Updated event {event_id} in {calendar_id}")
        return result

    def delete_event(self, calendar_id: str, event_id: str, send_updates: str = "all") -> None:
        """
        Delete an event.

        Raises:
            RemoteNotFoundError: If the event is already gone
        """
        self._execute(
            self._service.events().delete(
                calendarId=calendar_id,
                eventId=event_id,
                sendUpdates=send_updates,
            )
        )
        logger.info(f"Deleted event {event_id} from {calendar_id}")

    def freebusy_query(
        self,
        calendar_ids: list[str],
        time_min: str,
        time_max: str,
    ) -> dict:
        """
        Query free/busy information.

        Args:
            calendar_ids: Calendars to query
            time_min: Lower bound (RFC 3339)
            time_max: Upper bound (RFC 3339)

        Returns:
            Free/busy data for each calendar
        """
        body = {
            "timeMin": time_min,
            "timeMax": time_max,
            "items": [{"id": cal_id} for cal_id in calendar_ids],
        }
        return self._execute(self._service.freebusy().query(body=body))
