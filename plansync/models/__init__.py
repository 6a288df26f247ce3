"""
SQLAlchemy models for Plansync.

This module exports all database models for easy importing and
ensures Alembic can discover them for migrations.
"""

from plansync.models.base import Base, BaseModel, GUID, as_utc, utcnow

from plansync.models.planning import User, SharedSpace, SpaceMembership, Plan
from plansync.models.accounts import (
    GOOGLE_PROVIDER,
    AccountSyncState,
    ConnectedAccount,
    RemoteCalendarRef,
)
from plansync.models.links import PlanEventLink
from plansync.models.availability import AvailabilityBlock

__all__ = [
    # Base classes
    "Base",
    "BaseModel",
    "GUID",
    "as_utc",
    "utcnow",
    # Planning models (read-only collaborators)
    "User",
    "SharedSpace",
    "SpaceMembership",
    "Plan",
    # Sync models
    "GOOGLE_PROVIDER",
    "ConnectedAccount",
    "RemoteCalendarRef",
    "AccountSyncState",
    "PlanEventLink",
    "AvailabilityBlock",
]
