"""
Connected calendar account models.

Entities:
- ConnectedAccount: One external-provider identity belonging to a user
- RemoteCalendarRef: A remote calendar visible to a connected account
- AccountSyncState: Outcome of the last availability sync for an account

Credentials are stored encrypted (see plansync.security.vault); these
models never see plaintext tokens.
"""

import uuid
from datetime import datetime, timedelta
from typing import Optional, TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from plansync.models.base import BaseModel, as_utc, utcnow

if TYPE_CHECKING:
    from plansync.models.availability import AvailabilityBlock
    from plansync.models.links import PlanEventLink


GOOGLE_PROVIDER = "google"


class ConnectedAccount(BaseModel):
    """
    An external calendar identity connected by a local user.

    At most one row exists per (user, provider). A revoked account is kept
    for audit but is never used for remote calls until the user reconnects,
    which clears `revoked_at` on the same row.

    Attributes:
        user_id: Owning local user
        provider: OAuth provider (currently only 'google')
        provider_account_email: E-mail of the provider identity
        access_credential: Encrypted short-lived access token
        refresh_credential: Encrypted long-lived refresh token
        access_expires_at: When the access token expires
        scope: Granted scopes (space-separated)
        revoked_at: Set when refresh failed or the user disconnected
    """

    __tablename__ = "connected_accounts"

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    provider: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default=GOOGLE_PROVIDER,
        doc="OAuth provider (google)"
    )

    provider_account_email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        doc="Account e-mail reported by the provider"
    )

    access_credential: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        doc="Encrypted OAuth access token"
    )

    refresh_credential: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        doc="Encrypted OAuth refresh token"
    )

    access_expires_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        doc="When the access token expires"
    )

    scope: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        doc="OAuth scopes granted (space-separated)"
    )

    revoked_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        doc="When access was revoked (NULL while usable)"
    )

    calendars: Mapped[list["RemoteCalendarRef"]] = relationship(
        "RemoteCalendarRef",
        back_populates="account",
        cascade="all, delete-orphan",
    )

    sync_state: Mapped[Optional["AccountSyncState"]] = relationship(
        "AccountSyncState",
        back_populates="account",
        cascade="all, delete-orphan",
        uselist=False,
    )

    event_links: Mapped[list["PlanEventLink"]] = relationship(
        "PlanEventLink",
        back_populates="account",
        cascade="all, delete-orphan",
    )

    availability_blocks: Mapped[list["AvailabilityBlock"]] = relationship(
        "AvailabilityBlock",
        back_populates="account",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("ix_connected_accounts_user_provider", "user_id", "provider", unique=True),
    )

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at is not None

    def needs_refresh(self, margin: timedelta, now: Optional[datetime] = None) -> bool:
        """Check if the access token is missing an expiry or expires within `margin`."""
        if self.access_expires_at is None:
            return True
        now = now or utcnow()
        return as_utc(self.access_expires_at) <= now + margin

    def has_scope(self, fragment: str) -> bool:
        """Check if any granted scope contains `fragment`."""
        return bool(self.scope) and fragment in self.scope

    def __repr__(self) -> str:
        return (
            f"<ConnectedAccount(user_id={self.user_id}, provider={self.provider}, "
            f"email={self.provider_account_email}, revoked={self.is_revoked})>"
        )


class RemoteCalendarRef(BaseModel):
    """
    A calendar visible to a connected account.

    The provider's calendar list is authoritative for existence and metadata;
    `selected` is owned locally and survives catalog reconciliation.
    """

    __tablename__ = "remote_calendars"

    account_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("connected_accounts.id", ondelete="CASCADE"),
        nullable=False,
    )

    remote_calendar_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        doc="Provider-assigned calendar ID"
    )

    summary: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        doc="Calendar display name"
    )

    primary: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        doc="Whether this is the account's primary calendar"
    )

    selected: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        doc="User opted in to contribute busy time from this calendar"
    )

    background_color: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    foreground_color: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    account: Mapped["ConnectedAccount"] = relationship(
        "ConnectedAccount",
        back_populates="calendars",
    )

    __table_args__ = (
        Index("ix_remote_calendars_account_calendar", "account_id", "remote_calendar_id", unique=True),
    )

    def __repr__(self) -> str:
        return (
            f"<RemoteCalendarRef(calendar={self.remote_calendar_id}, "
            f"primary={self.primary}, selected={self.selected})>"
        )


class AccountSyncState(BaseModel):
    """Last availability sync outcome for an account."""

    __tablename__ = "account_sync_states"

    account_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("connected_accounts.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )

    last_synced_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        doc="When availability was last synced successfully"
    )

    last_sync_error: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        doc="Error message of the last failed sync (cleared on success)"
    )

    account: Mapped["ConnectedAccount"] = relationship(
        "ConnectedAccount",
        back_populates="sync_state",
    )
