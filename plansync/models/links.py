"""
Plan to remote event link model.

A PlanEventLink row existing means the plan is synced and its remote event
is believed to exist; no row means the plan is unsynced.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from plansync.models.accounts import ConnectedAccount
from plansync.models.base import BaseModel


class PlanEventLink(BaseModel):
    """
    Binds one local plan to one remote calendar event.

    Attributes:
        plan_id: The local plan (unique, one link per plan)
        account_id: Account the remote event was created with
        remote_calendar_id: Calendar holding the remote event
        remote_event_id: Provider-assigned event ID
        etag: Provider change tag from the last write
        last_synced_at: When the remote event was last written
    """

    __tablename__ = "plan_event_links"

    plan_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("plans.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )

    account_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("connected_accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    remote_calendar_id: Mapped[str] = mapped_column(String(255), nullable=False)

    remote_event_id: Mapped[str] = mapped_column(String(1024), nullable=False)

    etag: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    last_synced_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    account: Mapped["ConnectedAccount"] = relationship(
        "ConnectedAccount",
        back_populates="event_links",
    )

    def __repr__(self) -> str:
        return f"<PlanEventLink(plan_id={self.plan_id}, remote_event_id={self.remote_event_id})>"
