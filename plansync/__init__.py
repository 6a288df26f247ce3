"""
Plansync - Google Calendar sync for a shared planner.

Mirrors plans to events on a user's Google Calendar, keeps encrypted OAuth
credentials, and caches busy time from the user's selected calendars.
"""

__version__ = "0.1.0"
