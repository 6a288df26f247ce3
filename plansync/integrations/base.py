"""
Provider-neutral types exchanged between the sync components and adapters.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from plansync.models.planning import Plan


@dataclass
class PlanSnapshot:
    """
    The plan fields mirrored to a remote event.

    Callers pass a snapshot rather than an ORM object so that update and
    create work from the values the web layer just saved.
    """

    id: uuid.UUID
    title: str
    starts_at: datetime
    ends_at: Optional[datetime] = None
    time_is_set: bool = False
    description: Optional[str] = None
    place_name: Optional[str] = None
    place_address: Optional[str] = None

    @classmethod
    def from_plan(cls, plan: "Plan") -> "PlanSnapshot":
        return cls(
            id=plan.id,
            title=plan.title,
            starts_at=plan.starts_at,
            ends_at=plan.ends_at,
            time_is_set=plan.time_is_set,
            description=plan.description,
            place_name=plan.place_name,
            place_address=plan.place_address,
        )


@dataclass
class Attendee:
    """An invitee on a remote event."""

    email: str
    display_name: Optional[str] = None


@dataclass
class RemoteCalendar:
    """One entry of the provider's calendar list."""

    calendar_id: str
    summary: str
    primary: bool = False
    background_color: Optional[str] = None
    foreground_color: Optional[str] = None


@dataclass
class BusyInterval:
    """A busy period reported by a free/busy query."""

    calendar_id: str
    start: datetime
    end: datetime
