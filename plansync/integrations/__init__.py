"""
External calendar provider integrations.
"""

from plansync.integrations.base import Attendee, BusyInterval, PlanSnapshot, RemoteCalendar

__all__ = [
    "Attendee",
    "BusyInterval",
    "PlanSnapshot",
    "RemoteCalendar",
]
