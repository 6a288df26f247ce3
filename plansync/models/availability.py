"""
External availability blocks.

Busy intervals pulled from a connected account's selected calendars. The
set stored for a sync window is replaced wholesale on every successful
sync and never patched row by row.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from plansync.models.accounts import ConnectedAccount, GOOGLE_PROVIDER
from plansync.models.base import BaseModel


class AvailabilityBlock(BaseModel):
    """One busy interval from a remote calendar."""

    __tablename__ = "availability_blocks"

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    account_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("connected_accounts.id", ondelete="CASCADE"),
        nullable=False,
    )

    remote_calendar_id: Mapped[str] = mapped_column(String(255), nullable=False)

    start_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    end_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    source: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default=GOOGLE_PROVIDER,
        doc="Provider the interval came from"
    )

    account: Mapped["ConnectedAccount"] = relationship(
        "ConnectedAccount",
        back_populates="availability_blocks",
    )

    __table_args__ = (
        Index("ix_availability_blocks_account_window", "account_id", "start_at", "end_at"),
        Index("ix_availability_blocks_user_window", "user_id", "start_at", "end_at"),
    )

    def __repr__(self) -> str:
        return f"<AvailabilityBlock(calendar={self.remote_calendar_id}, {self.start_at} - {self.end_at})>"
