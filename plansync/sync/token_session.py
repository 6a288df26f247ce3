"""
Access tokens for connected accounts.

Hands out a currently-valid access token for an account, refreshing it
through the provider's token endpoint when it is missing an expiry or
expires within the safety margin. A refresh the provider rejects revokes
the account.
"""

import logging
import uuid
from datetime import timedelta
from typing import Callable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from plansync.config import Settings, get_settings
from plansync.exceptions import (
    AccountRevoked,
    NotConnected,
    RefreshFailed,
    TransientProviderError,
)
from plansync.integrations.google_calendar.client import GoogleCalendarClient
from plansync.integrations.google_calendar.oauth import GoogleOAuthFlow, OAuthError
from plansync.models.accounts import ConnectedAccount, GOOGLE_PROVIDER
from plansync.models.base import utcnow
from plansync.security.vault import CredentialVault

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str], GoogleCalendarClient]


def get_connected_account(
    session: Session,
    user_id: uuid.UUID,
    provider: str = GOOGLE_PROVIDER,
    include_revoked: bool = False,
) -> Optional[ConnectedAccount]:
    """
    Get a user's connected account for a provider.

    Args:
        session: Database session
        user_id: The local user's ID
        provider: OAuth provider (default: google)
        include_revoked: Also return a revoked account

    Returns:
        ConnectedAccount if found, None otherwise
    """
    stmt = select(ConnectedAccount).where(
        ConnectedAccount.user_id == user_id,
        ConnectedAccount.provider == provider,
    )
    if not include_revoked:
        stmt = stmt.where(ConnectedAccount.revoked_at.is_(None))
    return session.execute(stmt).scalar_one_or_none()


class TokenSession:
    """
    Produces valid access tokens for connected accounts.

    Concurrent refreshes of one account may both succeed and both persist
    a valid token; the last write wins.
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
        self._oauth_flow = oauth_flow
        self._settings = settings
        self._client_factory = client_factory or GoogleCalendarClient.from_access_token
        self.refresh_margin = timedelta(minutes=settings.token_refresh_margin_minutes)

    @property
    def oauth_flow(self) -> GoogleOAuthFlow:
        if self._oauth_flow is None:
            self._oauth_flow = GoogleOAuthFlow(self._settings)
        return self._oauth_flow

    def get_account(self, account_id: uuid.UUID) -> ConnectedAccount:
        """
        Load an account by ID.

        Raises:
            NotConnected: If the account does not exist
        """
        account = self._session.get(ConnectedAccount, account_id)
        if account is None:
            raise NotConnected(f"Connected account {account_id} not found")
        return account

    def get_valid_access_credential(self, account_id: uuid.UUID) -> str:
        """
        Return a plaintext access token that is valid for at least the refresh margin.

        Raises:
            NotConnected: If the account does not exist
            AccountRevoked: If the account has been revoked
            RefreshFailed: If the provider rejected the refresh (account is now revoked)
            TransientProviderError: If the token endpoint was unreachable
        """
        account = self.get_account(account_id)

        if account.is_revoked:
            raise AccountRevoked("Account access has been revoked. Please reconnect your account.")

        if account.needs_refresh(self.refresh_margin) and account.refresh_credential:
            return self._refresh(account)

        return self._vault.open(account.access_credential)

    def client_for(self, account_id: uuid.UUID) -> GoogleCalendarClient:
        """Build a Calendar API client authenticated as the account."""
        return self._client_factory(self.get_valid_access_credential(account_id))

    def _refresh(self, account: ConnectedAccount) -> str:
        refresh_token = self._vault.open(account.refresh_credential)

        try:
            tokens = self.oauth_flow.refresh_token(refresh_token)
        except OAuthError as e:
            if not e.is_rejection:
                logger.warning(f"Token endpoint unavailable for account {account.id}: {e.message}")
                raise TransientProviderError(
                    f"Token refresh failed: {e.message}",
                    original_error=e,
                    status=e.status,
                )

            account.revoked_at = utcnow()
            self._session.commit()
            logger.error(
                f"Refresh rejected for account {account.id} ({e.error or e.status}); account revoked"
            )
            raise RefreshFailed(
                "Failed to refresh access token. Please reconnect your account.",
                original_error=e,
            )

        account.access_credential = self._vault.seal(tokens.access_token)
        account.access_expires_at = tokens.expiry
        if tokens.refresh_token and tokens.refresh_token != refresh_token:
            account.refresh_credential = self._vault.seal(tokens.refresh_token)
        if tokens.scope:
            account.scope = tokens.scope
        self._session.commit()

        logger.info(f"Refreshed access token for account {account.id}")
        return tokens.access_token
