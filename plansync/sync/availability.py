"""
External availability sync.

Pulls busy intervals for an account's selected calendars and replaces the
stored AvailabilityBlock set for the window in one transaction. A failed
fetch leaves the stored blocks untouched and only records the error.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from plansync.config import Settings, get_settings
from plansync.exceptions import AccountRevoked, CalendarSyncError
from plansync.integrations.base import BusyInterval
from plansync.integrations.google_calendar.adapter import GoogleCalendarAdapter, format_datetime
from plansync.models.accounts import AccountSyncState, ConnectedAccount, RemoteCalendarRef
from plansync.models.availability import AvailabilityBlock
from plansync.models.base import as_utc, utcnow
from plansync.sync.token_session import TokenSession

logger = logging.getLogger(__name__)


@dataclass
class AvailabilitySyncResult:
    blocks_count: int
    synced_at: datetime


class AvailabilitySync:
    """Mirrors free/busy data of selected calendars into AvailabilityBlock rows."""

    def __init__(
        self,
        session: Session,
        tokens: TokenSession,
        settings: Optional[Settings] = None,
    ):
        settings = settings or get_settings()
        self._session = session
        self._tokens = tokens
        self.window = timedelta(days=settings.availability_window_days)

    def sync(
        self,
        account_id: uuid.UUID,
        window_start: Optional[datetime] = None,
        window_end: Optional[datetime] = None,
    ) -> AvailabilitySyncResult:
        """
        Replace the account's busy blocks inside [window_start, window_end).

        The window defaults to now through the configured number of days.
        With no selected calendar the provider is not called and the window
        is cleared.

        Raises:
            CalendarSyncError: If the token or the free/busy fetch fails; the
                message is stored on the account's sync state first
        """
        window_start = as_utc(window_start) if window_start else utcnow()
        window_end = as_utc(window_end) if window_end else window_start + self.window

        try:
            account = self._tokens.get_account(account_id)
            if account.is_revoked:
                raise AccountRevoked("Account access has been revoked. Please reconnect your account.")
            intervals = self._fetch(account_id, window_start, window_end)
        except CalendarSyncError as e:
            self._record_failure(account_id, e.message)
            logger.error(f"Availability sync failed for account {account_id}: {e.message}")
            raise

        try:
            self._session.execute(
                delete(AvailabilityBlock).where(
                    AvailabilityBlock.account_id == account_id,
                    AvailabilityBlock.start_at >= window_start,
                    AvailabilityBlock.end_at <= window_end,
                ).execution_options(synchronize_session="fetch")
            )
            self._session.add_all([
                AvailabilityBlock(
                    user_id=account.user_id,
                    account_id=account_id,
                    remote_calendar_id=interval.calendar_id,
                    start_at=interval.start,
                    end_at=interval.end,
                )
                for interval in intervals
            ])

            synced_at = utcnow()
            state = self._sync_state(account_id)
            state.last_synced_at = synced_at
            state.last_sync_error = None
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            f"Replaced availability for account {account_id}: "
            f"{len(intervals)} blocks between {window_start} and {window_end}"
        )
        return AvailabilitySyncResult(blocks_count=len(intervals), synced_at=synced_at)

    def get_user_blocks(
        self,
        user_id: uuid.UUID,
        start: datetime,
        end: datetime,
    ) -> list[AvailabilityBlock]:
        """Stored external busy blocks of a user overlapping [start, end)."""
        stmt = (
            select(AvailabilityBlock)
            .where(
                AvailabilityBlock.user_id == user_id,
                AvailabilityBlock.start_at < as_utc(end),
                AvailabilityBlock.end_at > as_utc(start),
            )
            .order_by(AvailabilityBlock.start_at)
        )
        return list(self._session.execute(stmt).scalars().all())

    def _fetch(
        self,
        account_id: uuid.UUID,
        window_start: datetime,
        window_end: datetime,
    ) -> list[BusyInterval]:
        stmt = select(RemoteCalendarRef.remote_calendar_id).where(
            RemoteCalendarRef.account_id == account_id,
            RemoteCalendarRef.selected.is_(True),
        )
        calendar_ids = list(self._session.execute(stmt).scalars().all())
        if not calendar_ids:
            logger.info(f"No selected calendars for account {account_id}; skipping free/busy query")
            return []

        client = self._tokens.client_for(account_id)
        response = client.freebusy_query(
            calendar_ids,
            format_datetime(window_start),
            format_datetime(window_end),
        )
        return GoogleCalendarAdapter.parse_freebusy_response(response)

    def _sync_state(self, account_id: uuid.UUID) -> AccountSyncState:
        stmt = select(AccountSyncState).where(AccountSyncState.account_id == account_id)
        state = self._session.execute(stmt).scalar_one_or_none()
        if state is None:
            state = AccountSyncState(account_id=account_id)
            self._session.add(state)
        return state

    def _record_failure(self, account_id: uuid.UUID, message: str) -> None:
        if self._session.get(ConnectedAccount, account_id) is None:
            return
        state = self._sync_state(account_id)
        state.last_sync_error = message
        self._session.commit()
