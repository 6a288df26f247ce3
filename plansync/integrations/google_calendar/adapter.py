"""
Mapping between plan data and Google Calendar API format.

Handles:
- Timed vs all-day events (RFC 3339 dateTime vs exclusive-end date)
- Location composed from place name and address
- Attendee mapping
- Calendar list and free/busy response parsing
"""

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from dateutil.parser import parse as parse_datetime

from plansync.exceptions import PermanentProviderError
from plansync.integrations.base import Attendee, BusyInterval, PlanSnapshot, RemoteCalendar

logger = logging.getLogger(__name__)

DEFAULT_EVENT_DURATION = timedelta(hours=2)


class GoogleCalendarAdapter:
    """Maps between plan data and Google Calendar API format."""

    @staticmethod
    def to_google_event(plan: PlanSnapshot, attendees: Optional[list[Attendee]] = None) -> dict:
        """
        Build the event body for insert/update.

        Timed plans become dateTime events ending at `ends_at`, or two hours
        after the start when no end is set. Date-only plans become all-day
        events from the start date to the day after the end date (Google's
        end date is exclusive).
        """
        google_event: dict = {
            "summary": plan.title,
        }

        if plan.description:
            google_event["description"] = plan.description

        location = format_location(plan.place_name, plan.place_address)
        if location:
            google_event["location"] = location

        if attendees:
            google_event["attendees"] = [
                _attendee_body(attendee) for attendee in attendees
            ]

        if plan.time_is_set:
            end_time = plan.ends_at or plan.starts_at + DEFAULT_EVENT_DURATION
            google_event["start"] = {
                "dateTime": format_datetime(plan.starts_at),
                "timeZone": "UTC",
            }
            google_event["end"] = {
                "dateTime": format_datetime(end_time),
                "timeZone": "UTC",
            }
        else:
            google_event["start"] = {"date": _utc_date(plan.starts_at).isoformat()}
            google_event["end"] = {"date": exclusive_end_date(plan).isoformat()}

        return google_event

    @staticmethod
    def from_calendar_list_entry(entry: dict) -> RemoteCalendar:
        """Convert a calendarList item to a RemoteCalendar."""
        return RemoteCalendar(
            calendar_id=entry["id"],
            summary=entry.get("summaryOverride") or entry.get("summary") or "Unnamed Calendar",
            primary=bool(entry.get("primary", False)),
            background_color=entry.get("backgroundColor"),
            foreground_color=entry.get("foregroundColor"),
        )

    @staticmethod
    def parse_freebusy_response(response: dict) -> list[BusyInterval]:
        """
        Parse a freebusy.query response.

        Calendars reported with `errors` (e.g. notFound, internalError) are
        skipped and logged. An unparseable busy interval fails the whole
        response with PermanentProviderError.
        """
        intervals: list[BusyInterval] = []

        calendars = response.get("calendars", {})
        for calendar_id, calendar_data in calendars.items():
            errors = calendar_data.get("errors")
            if errors:
                reasons = ", ".join(e.get("reason", "unknown") for e in errors)
                logger.warning(f"Free/busy unavailable for calendar {calendar_id}: {reasons}")
                continue

            for busy in calendar_data.get("busy", []):
                if not busy.get("start") or not busy.get("end"):
                    continue
                try:
                    start = _parse_datetime(busy["start"])
                    end = _parse_datetime(busy["end"])
                except (ValueError, OverflowError, TypeError) as e:
                    raise PermanentProviderError(
                        f"Malformed free/busy interval for calendar {calendar_id}: {busy}",
                        original_error=e,
                    ) from e
                intervals.append(BusyInterval(calendar_id=calendar_id, start=start, end=end))

        return intervals


def format_location(place_name: Optional[str], place_address: Optional[str]) -> Optional[str]:
    """'Name, Address' when both are known, the name alone, or None without a name."""
    if not place_name:
        return None
    if place_address:
        return f"{place_name}, {place_address}"
    return place_name


def exclusive_end_date(plan: PlanSnapshot) -> date:
    """
    End date for an all-day event: one day after `ends_at` (or the start).

    TODO: confirm with product whether a multi-day plan's `ends_at` is meant
    inclusive; this adds one day either way.
    """
    last_day = _utc_date(plan.ends_at or plan.starts_at)
    return last_day + timedelta(days=1)


def _attendee_body(attendee: Attendee) -> dict:
    body = {"email": attendee.email}
    if attendee.display_name:
        body["displayName"] = attendee.display_name
    return body


def _utc_date(dt: datetime) -> date:
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    return dt.date()


def format_datetime(dt: datetime) -> str:
    """
    Format datetime to RFC 3339 format for Google API.

    Naive datetimes are treated as UTC.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    elif dt.tzinfo != timezone.utc:
        dt = dt.astimezone(timezone.utc)

    return dt.isoformat()


def _parse_datetime(dt_str: str) -> datetime:
    """Parse an RFC 3339 string from the Google API into an aware UTC datetime."""
    dt = parse_datetime(dt_str)
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
