"""
Calendar sync components.

TokenSession hands out access tokens; CalendarCatalogSync, PlanEventSync
and AvailabilitySync are the operations the web layer calls.
"""

from plansync.sync.availability import AvailabilitySync, AvailabilitySyncResult
from plansync.sync.catalog import CalendarCatalogSync
from plansync.sync.plan_events import DeleteContext, PlanEventSync, SyncResult, SyncStatus
from plansync.sync.retry import RetryPolicy, call_with_retry
from plansync.sync.token_session import TokenSession, get_connected_account

__all__ = [
    "AvailabilitySync",
    "AvailabilitySyncResult",
    "CalendarCatalogSync",
    "DeleteContext",
    "PlanEventSync",
    "RetryPolicy",
    "SyncResult",
    "SyncStatus",
    "TokenSession",
    "call_with_retry",
    "get_connected_account",
]
