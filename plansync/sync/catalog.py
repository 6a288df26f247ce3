"""
Remote calendar catalog reconciliation.

The provider's calendar list decides which calendars exist and what they
are called; the `selected` flag on each local row belongs to the user and
is never overwritten by a reconcile.
"""

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from plansync.integrations.google_calendar.adapter import GoogleCalendarAdapter
from plansync.models.accounts import RemoteCalendarRef
from plansync.sync.token_session import TokenSession

logger = logging.getLogger(__name__)


class CalendarCatalogSync:
    """Keeps an account's RemoteCalendarRef rows in line with the provider."""

    def __init__(self, session: Session, tokens: TokenSession):
        self._session = session
        self._tokens = tokens

    def reconcile(self, account_id: uuid.UUID) -> list[RemoteCalendarRef]:
        """
        Full reconcile pass of the account's calendar list.

        Existing rows get their metadata updated in place. New rows start
        selected only when they are the primary calendar. Rows missing from
        the remote list are deleted. Failures propagate unretried.

        Returns:
            The account's calendars after reconciliation, primary first
        """
        client = self._tokens.client_for(account_id)
        remote_calendars = [
            GoogleCalendarAdapter.from_calendar_list_entry(entry)
            for entry in client.list_calendars()
        ]

        stmt = select(RemoteCalendarRef).where(RemoteCalendarRef.account_id == account_id)
        existing = {
            ref.remote_calendar_id: ref
            for ref in self._session.execute(stmt).scalars().all()
        }

        seen: set[str] = set()
        created = 0
        for remote in remote_calendars:
            seen.add(remote.calendar_id)
            ref = existing.get(remote.calendar_id)
            if ref is None:
                ref = RemoteCalendarRef(
                    account_id=account_id,
                    remote_calendar_id=remote.calendar_id,
                    selected=remote.primary,
                )
                self._session.add(ref)
                existing[remote.calendar_id] = ref
                created += 1

            ref.summary = remote.summary
            ref.primary = remote.primary
            ref.background_color = remote.background_color
            ref.foreground_color = remote.foreground_color

        removed = 0
        for calendar_id, ref in list(existing.items()):
            if calendar_id not in seen:
                self._session.delete(ref)
                del existing[calendar_id]
                removed += 1

        self._session.commit()

        logger.info(
            f"Reconciled calendars for account {account_id}: "
            f"{len(existing)} total, {created} new, {removed} removed"
        )
        return sorted(
            existing.values(),
            key=lambda ref: (not ref.primary, ref.summary.lower()),
        )
