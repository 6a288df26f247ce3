"""
Plan to remote event synchronization.

A plan is either unsynced (no PlanEventLink) or synced (a link naming the
remote event). Each operation moves between those two states in one step:

- create: Unsynced -> Synced
- update: Synced -> Synced, recreating the remote event if it has vanished
- cancel: Synced -> Unsynced, after the local plan has been deleted

Operations never raise CalendarSyncError; they return a SyncResult the web
layer turns into a message. Local plan data is never rolled back because a
remote call failed.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from plansync.config import Settings, get_settings
from plansync.exceptions import (
    AccountRevoked,
    AlreadySynced,
    CalendarSyncError,
    NoPrimaryCalendar,
    NotConnected,
    NotSynced,
    RemoteNotFoundError,
    SyncErrorCode,
)
from plansync.integrations.base import Attendee, PlanSnapshot
from plansync.integrations.google_calendar.adapter import GoogleCalendarAdapter
from plansync.models.accounts import ConnectedAccount, RemoteCalendarRef
from plansync.models.base import utcnow
from plansync.models.links import PlanEventLink
from plansync.models.planning import Plan, SpaceMembership
from plansync.sync.retry import RetryPolicy, call_with_retry
from plansync.sync.token_session import TokenSession, get_connected_account

logger = logging.getLogger(__name__)

EVENTS_SCOPE = "calendar.events"

PlanLike = Union[Plan, PlanSnapshot]


class SyncResult(BaseModel):
    """Outcome of a plan sync operation, serialized with camelCase keys."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    code: Optional[SyncErrorCode] = None
    error: Optional[str] = None
    external_event_id: Optional[str] = Field(default=None, alias="externalEventId")
    recovered: bool = False
    skipped: bool = False

    @classmethod
    def failed(cls, error: CalendarSyncError) -> "SyncResult":
        return cls(success=False, code=error.code, error=error.message)


@dataclass(frozen=True)
class DeleteContext:
    """Link details captured before a plan is deleted."""

    plan_id: uuid.UUID
    account_id: uuid.UUID
    calendar_id: str
    remote_event_id: str
    account_revoked: bool


@dataclass
class SyncStatus:
    synced: bool
    last_synced_at: Optional[datetime] = None
    calendar_id: Optional[str] = None


class PlanEventSync:
    """
    Creates, updates and cancels the remote event mirrored from a plan.

    Every remote call goes through call_with_retry; only transient provider
    errors are retried.
    """

    def __init__(
        self,
        session: Session,
        tokens: TokenSession,
        retry_policy: Optional[RetryPolicy] = None,
        settings: Optional[Settings] = None,
    ):
        settings = settings or get_settings()
        self._session = session
        self._tokens = tokens
        self._retry_policy = retry_policy or RetryPolicy.from_settings(settings)
        self._send_updates = settings.sync_send_updates

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def create(self, plan: PlanLike, user_id: uuid.UUID) -> SyncResult:
        """
        Create the remote event for a plan on the user's primary calendar.

        Fails with NotConnected, AlreadySynced or NoPrimaryCalendar before
        any remote call is made.
        """
        snapshot = _snapshot(plan)
        try:
            account = self._active_account(user_id)
            if self._get_link(snapshot.id) is not None:
                raise AlreadySynced("Plan is already synced to Google Calendar")
            event_id = self._create_on_account(snapshot, account)
        except CalendarSyncError as e:
            return self._failed("create", snapshot.id, e)

        return SyncResult(success=True, external_event_id=event_id)

    def update(self, plan_id: uuid.UUID, plan: PlanLike) -> SyncResult:
        """
        Push the plan's current fields to its remote event.

        If the provider reports the event missing, the stale link is dropped
        and the event is recreated on the same account; the result then has
        `recovered` set.
        """
        snapshot = _snapshot(plan)
        try:
            link = self._get_link(plan_id)
            if link is None:
                raise NotSynced("Plan is not synced to Google Calendar")

            account = link.account
            if account.is_revoked:
                raise AccountRevoked("Google account access revoked. Please reconnect your account.")

            client = call_with_retry(self._tokens.client_for, account.id, policy=self._retry_policy)
            body = GoogleCalendarAdapter.to_google_event(
                snapshot, self._attendees(plan_id, account.user_id)
            )

            try:
                event = call_with_retry(
                    client.update_event,
                    link.remote_calendar_id,
                    link.remote_event_id,
                    body,
                    send_updates=self._send_updates,
                    policy=self._retry_policy,
                )
            except RemoteNotFoundError:
                return self._recreate(link, snapshot, account)

            link.etag = event.get("etag")
            link.last_synced_at = utcnow()
            self._session.commit()
        except CalendarSyncError as e:
            return self._failed("update", plan_id, e)

        logger.info(f"Updated remote event {link.remote_event_id} for plan {plan_id}")
        return SyncResult(success=True, external_event_id=link.remote_event_id)

    def cancel(self, context: Optional[DeleteContext]) -> SyncResult:
        """
        Delete the remote event of a plan that has already been deleted locally.

        - No context: the plan was never synced, nothing to do (skipped).
        - Account revoked when the context was captured: the remote side is
          out of reach, the remote call is skipped (recovered).
        - Remote event already gone: success.
        - Any other failure is returned as a warning; the local deletion
          stands.
        """
        if context is None:
            return SyncResult(success=True, skipped=True)

        self._drop_link(context.plan_id)

        if context.account_revoked:
            logger.warning(
                f"Skipping remote delete of {context.remote_event_id}: "
                f"account {context.account_id} was revoked"
            )
            return SyncResult(success=True, recovered=True)

        try:
            client = call_with_retry(
                self._tokens.client_for, context.account_id, policy=self._retry_policy
            )
            call_with_retry(
                client.delete_event,
                context.calendar_id,
                context.remote_event_id,
                send_updates=self._send_updates,
                policy=self._retry_policy,
            )
        except RemoteNotFoundError:
            logger.info(f"Remote event {context.remote_event_id} already deleted")
            return SyncResult(success=True, external_event_id=context.remote_event_id)
        except CalendarSyncError as e:
            return self._failed("cancel", context.plan_id, e)

        logger.info(f"Deleted remote event {context.remote_event_id} for plan {context.plan_id}")
        return SyncResult(success=True, external_event_id=context.remote_event_id)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def capture_delete_context(self, plan_id: uuid.UUID) -> Optional[DeleteContext]:
        """
        Read what cancel() needs, before the plan (and its link) is deleted.

        Returns:
            DeleteContext, or None if the plan is not synced
        """
        link = self._get_link(plan_id)
        if link is None:
            return None
        return DeleteContext(
            plan_id=plan_id,
            account_id=link.account_id,
            calendar_id=link.remote_calendar_id,
            remote_event_id=link.remote_event_id,
            account_revoked=link.account.is_revoked,
        )

    def get_sync_status(self, plan_id: uuid.UUID) -> SyncStatus:
        link = self._get_link(plan_id)
        if link is None:
            return SyncStatus(synced=False)
        return SyncStatus(
            synced=True,
            last_synced_at=link.last_synced_at,
            calendar_id=link.remote_calendar_id,
        )

    def has_events_scope(self, user_id: uuid.UUID) -> bool:
        """Check if the user's active account may write calendar events."""
        account = get_connected_account(self._session, user_id)
        return account is not None and account.has_scope(EVENTS_SCOPE)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _active_account(self, user_id: uuid.UUID) -> ConnectedAccount:
        account = get_connected_account(self._session, user_id, include_revoked=True)
        if account is None:
            raise NotConnected("No Google account connected")
        if account.is_revoked:
            raise AccountRevoked("Google account access revoked. Please reconnect your account.")
        return account

    def _primary_calendar(self, account_id: uuid.UUID) -> RemoteCalendarRef:
        stmt = select(RemoteCalendarRef).where(
            RemoteCalendarRef.account_id == account_id,
            RemoteCalendarRef.primary.is_(True),
        )
        calendar = self._session.execute(stmt).scalars().first()
        if calendar is None:
            raise NoPrimaryCalendar("No primary calendar found")
        return calendar

    def _get_link(self, plan_id: uuid.UUID) -> Optional[PlanEventLink]:
        stmt = select(PlanEventLink).where(PlanEventLink.plan_id == plan_id)
        return self._session.execute(stmt).scalar_one_or_none()

    def _drop_link(self, plan_id: uuid.UUID) -> None:
        link = self._get_link(plan_id)
        if link is not None:
            self._session.delete(link)
            self._session.commit()

    def _attendees(self, plan_id: uuid.UUID, organizer_id: uuid.UUID) -> list[Attendee]:
        """Other members of the plan's space, deduplicated by lowercase e-mail."""
        plan = self._session.get(Plan, plan_id)
        if plan is None:
            return []

        stmt = select(SpaceMembership).where(SpaceMembership.space_id == plan.space_id)
        attendees: list[Attendee] = []
        seen: set[str] = set()
        for membership in self._session.execute(stmt).scalars().all():
            if membership.user_id == organizer_id:
                continue
            email = (membership.user.email or "").strip().lower()
            if not email or email in seen:
                continue
            seen.add(email)
            attendees.append(Attendee(email=email, display_name=membership.user.name))
        return attendees

    def _create_on_account(self, plan: PlanSnapshot, account: ConnectedAccount) -> str:
        """Insert the remote event and persist its link. Returns the remote event ID."""
        calendar = self._primary_calendar(account.id)
        client = call_with_retry(self._tokens.client_for, account.id, policy=self._retry_policy)
        body = GoogleCalendarAdapter.to_google_event(
            plan, self._attendees(plan.id, account.user_id)
        )

        event = call_with_retry(
            client.insert_event,
            calendar.remote_calendar_id,
            body,
            send_updates=self._send_updates,
            policy=self._retry_policy,
        )
        event_id = event["id"]

        self._session.add(PlanEventLink(
            plan_id=plan.id,
            account_id=account.id,
            remote_calendar_id=calendar.remote_calendar_id,
            remote_event_id=event_id,
            etag=event.get("etag"),
            last_synced_at=utcnow(),
        ))
        try:
            self._session.commit()
        except IntegrityError:
            self._session.rollback()
            logger.warning(
                f"Plan {plan.id} was linked concurrently; removing duplicate remote event {event_id}"
            )
            try:
                client.delete_event(calendar.remote_calendar_id, event_id, send_updates="none")
            except CalendarSyncError as e:
                logger.warning(f"Could not remove duplicate remote event {event_id}: {e.message}")
            raise AlreadySynced("Plan is already synced to Google Calendar")

        logger.info(f"Created remote event {event_id} for plan {plan.id}")
        return event_id

    def _recreate(
        self,
        link: PlanEventLink,
        plan: PlanSnapshot,
        account: ConnectedAccount,
    ) -> SyncResult:
        stale_event_id = link.remote_event_id
        logger.warning(
            f"Remote event {stale_event_id} for plan {plan.id} no longer exists; recreating"
        )
        self._session.delete(link)
        self._session.commit()

        event_id = self._create_on_account(plan, account)
        return SyncResult(success=True, external_event_id=event_id, recovered=True)

    def _failed(self, action: str, plan_id: uuid.UUID, error: CalendarSyncError) -> SyncResult:
        logger.warning(f"Could not {action} remote event for plan {plan_id}: [{error.code.value}] {error.message}")
        return SyncResult.failed(error)


def _snapshot(plan: PlanLike) -> PlanSnapshot:
    if isinstance(plan, PlanSnapshot):
        return plan
    return PlanSnapshot.from_plan(plan)
