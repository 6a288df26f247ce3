"""
Planning models owned by the web application.

Entities:
- User: A person who signs in to the planner
- SharedSpace: The space two people plan in together
- SpaceMembership: Links users to a shared space
- Plan: A scheduled item on the shared calendar

The calendar sync subsystem only reads these tables (plan data and the
member e-mails used as invite attendees). They are modelled here so the
sync tables can reference them.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from plansync.models.base import BaseModel


class User(BaseModel):
    """A person with a login to the planner."""

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
        doc="Login e-mail, also used as invite address"
    )

    name: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
        doc="Display name"
    )

    memberships: Mapped[list["SpaceMembership"]] = relationship(
        "SpaceMembership",
        back_populates="user",
    )

    def __repr__(self) -> str:
        return f"<User(email='{self.email}')>"


class SharedSpace(BaseModel):
    """A shared planning space."""

    __tablename__ = "shared_spaces"

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        doc="Space display name"
    )

    memberships: Mapped[list["SpaceMembership"]] = relationship(
        "SpaceMembership",
        back_populates="space",
        cascade="all, delete-orphan",
    )

    plans: Mapped[list["Plan"]] = relationship(
        "Plan",
        back_populates="space",
        cascade="all, delete-orphan",
    )


class SpaceMembership(BaseModel):
    """Membership of a user in a shared space."""

    __tablename__ = "space_memberships"

    space_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("shared_spaces.id", ondelete="CASCADE"),
        nullable=False,
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    space: Mapped["SharedSpace"] = relationship("SharedSpace", back_populates="memberships")
    user: Mapped["User"] = relationship("User", back_populates="memberships")

    __table_args__ = (
        Index("ix_space_memberships_space_user", "space_id", "user_id", unique=True),
    )


class Plan(BaseModel):
    """
    A plan on the shared calendar.

    `time_is_set` distinguishes a plan at a specific clock time from a
    date-only ("anytime") plan.
    """

    __tablename__ = "plans"

    space_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("shared_spaces.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    created_by_user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    title: Mapped[str] = mapped_column(String(200), nullable=False)

    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    starts_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        doc="Start instant (UTC); only the date matters when time_is_set is False"
    )

    ends_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        doc="End instant (UTC), optional"
    )

    time_is_set: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        doc="True when the plan has an explicit clock time"
    )

    place_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    place_address: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    space: Mapped["SharedSpace"] = relationship("SharedSpace", back_populates="plans")

    def __repr__(self) -> str:
        return f"<Plan(title='{self.title}', starts_at={self.starts_at})>"
