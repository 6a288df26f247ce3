"""
Connected account lifecycle.

Completes the OAuth connection (token exchange, account upsert, first
catalog and availability sync), disconnects accounts, and manages which
calendars contribute busy time.
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from plansync.config import Settings, get_settings
from plansync.exceptions import CalendarNotFound, CalendarSyncError, NotConnected
from plansync.integrations.google_calendar.oauth import GoogleOAuthFlow
from plansync.models.accounts import (
    GOOGLE_PROVIDER,
    AccountSyncState,
    ConnectedAccount,
    RemoteCalendarRef,
)
from plansync.models.availability import AvailabilityBlock
from plansync.models.base import utcnow
from plansync.security.vault import CredentialVault
from plansync.sync.availability import AvailabilitySync, AvailabilitySyncResult
from plansync.sync.catalog import CalendarCatalogSync
from plansync.sync.token_session import ClientFactory, TokenSession, get_connected_account

logger = logging.getLogger(__name__)


@dataclass
class ConnectionOverview:
    """What the settings page shows about a user's Google connection."""

    account: ConnectedAccount
    calendars: list[RemoteCalendarRef] = field(default_factory=list)
    sync_state: Optional[AccountSyncState] = None


class ConnectionService:
    """
    Entry point for connecting and managing a user's Google account.

    Usage:
        service = ConnectionService(session, CredentialVault.from_settings())
        account = service.complete_connection(user_id, code)
        service.set_calendar_selected(user_id, "work@example.com", True)
        service.disconnect(user_id)
    """

    def __init__(
        self,
        session: Session,
        vault: CredentialVault,
        oauth_flow: Optional[GoogleOAuthFlow] = None,
        client_factory: Optional[ClientFactory] = None,
        settings: Optional[Settings] = None,
    ):
        settings = settings or get_settings()
        self._session = session
        self._vault = vault
        self.oauth_flow = oauth_flow or GoogleOAuthFlow(settings)
        self.tokens = TokenSession(
            session,
            vault,
            oauth_flow=self.oauth_flow,
            client_factory=client_factory,
            settings=settings,
        )
        self.catalog = CalendarCatalogSync(session, self.tokens)
        self.availability = AvailabilitySync(session, self.tokens, settings=settings)

    def complete_connection(self, user_id: uuid.UUID, code: str) -> ConnectedAccount:
        """
        Finish the OAuth flow for a user.

        Stores both credentials encrypted, clears any previous revocation,
        then reconciles the calendar list and runs a first availability sync.
        A failed availability sync is recorded on the account but does not
        undo the connection.

        Raises:
            OAuthError: If the code exchange or account lookup fails
            CalendarSyncError: If the calendar list cannot be fetched
        """
        tokens = self.oauth_flow.exchange_code(code)
        user_info = self.oauth_flow.get_user_info(tokens.access_token)

        account = get_connected_account(self._session, user_id, include_revoked=True)
        if account is None:
            account = ConnectedAccount(user_id=user_id, provider=GOOGLE_PROVIDER)
            self._session.add(account)

        account.provider_account_email = user_info.email
        account.access_credential = self._vault.seal(tokens.access_token)
        if tokens.refresh_token:
            account.refresh_credential = self._vault.seal(tokens.refresh_token)
        account.access_expires_at = tokens.expiry
        account.scope = tokens.scope or None
        account.revoked_at = None
        self._session.commit()

        logger.info(f"Connected Google account {user_info.email} for user {user_id}")

        self.catalog.reconcile(account.id)
        try:
            self.availability.sync(account.id)
        except CalendarSyncError as e:
            logger.warning(f"Initial availability sync failed for account {account.id}: {e.message}")

        return account

    def disconnect(self, user_id: uuid.UUID) -> bool:
        """
        Revoke the user's account and drop its cached busy blocks.

        The account row is kept for audit.

        Returns:
            True if an active account was disconnected, False if none
        """
        account = get_connected_account(self._session, user_id)
        if account is None:
            return False

        account.revoked_at = utcnow()
        self._session.execute(
            delete(AvailabilityBlock).where(AvailabilityBlock.account_id == account.id)
        )
        self._session.commit()

        logger.info(f"Disconnected Google account {account.provider_account_email} for user {user_id}")
        return True

    def set_calendar_selected(
        self,
        user_id: uuid.UUID,
        remote_calendar_id: str,
        selected: bool,
    ) -> RemoteCalendarRef:
        """
        Opt a calendar in or out of availability, then re-sync availability.

        Raises:
            NotConnected: If the user has no active account
            CalendarNotFound: If the calendar is not in the account's catalog
        """
        account = self._require_account(user_id)

        stmt = select(RemoteCalendarRef).where(
            RemoteCalendarRef.account_id == account.id,
            RemoteCalendarRef.remote_calendar_id == remote_calendar_id,
        )
        calendar = self._session.execute(stmt).scalar_one_or_none()
        if calendar is None:
            raise CalendarNotFound(f"Calendar {remote_calendar_id} not found")

        calendar.selected = selected
        self._session.commit()
        logger.info(f"Calendar {remote_calendar_id} selected={selected} for account {account.id}")

        self.availability.sync(account.id)
        return calendar

    def sync_availability(self, user_id: uuid.UUID) -> AvailabilitySyncResult:
        """
        Run an availability sync for the user's account.

        Raises:
            NotConnected: If the user never connected an account
            AccountRevoked: If the account has been revoked
        """
        account = get_connected_account(self._session, user_id, include_revoked=True)
        if account is None:
            raise NotConnected("Google Calendar not connected")
        return self.availability.sync(account.id)

    def get_overview(self, user_id: uuid.UUID) -> ConnectionOverview:
        """
        Account, calendars and last sync outcome, revoked accounts included.

        Raises:
            NotConnected: If the user never connected an account
        """
        account = get_connected_account(self._session, user_id, include_revoked=True)
        if account is None:
            raise NotConnected("Google Calendar not connected")

        calendars = self._session.execute(
            select(RemoteCalendarRef).where(RemoteCalendarRef.account_id == account.id)
        ).scalars().all()
        sync_state = self._session.execute(
            select(AccountSyncState).where(AccountSyncState.account_id == account.id)
        ).scalar_one_or_none()

        return ConnectionOverview(
            account=account,
            calendars=sorted(calendars, key=lambda ref: (not ref.primary, ref.summary.lower())),
            sync_state=sync_state,
        )

    def _require_account(self, user_id: uuid.UUID) -> ConnectedAccount:
        account = get_connected_account(self._session, user_id)
        if account is None:
            raise NotConnected("Google Calendar not connected")
        return account
