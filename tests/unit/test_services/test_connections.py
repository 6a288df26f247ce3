"""
Unit tests for the connected account lifecycle.

Tests:
- Completing the OAuth connection (new account and reconnect)
- Disconnecting an account
- Toggling calendar selection
- Manual availability sync and the settings overview
"""

from datetime import datetime, timezone

import pytest
from sqlalchemy import select

from plansync.exceptions import (
    AccountRevoked,
    CalendarNotFound,
    NotConnected,
    TransientProviderError,
)
from plansync.integrations.google_calendar.oauth import GoogleUserInfo, OAuthTokens
from plansync.models.accounts import ConnectedAccount
from plansync.models.availability import AvailabilityBlock
from plansync.services.connections import ConnectionService

SCOPE = (
    "https://www.googleapis.com/auth/calendar.readonly "
    "https://www.googleapis.com/auth/calendar.events"
)


@pytest.fixture
def service(db_session, vault, oauth_flow, client_factory, settings) -> ConnectionService:
    return ConnectionService(
        db_session,
        vault,
        oauth_flow=oauth_flow,
        client_factory=client_factory,
        settings=settings,
    )


@pytest.fixture
def google_login(oauth_flow, fake_client):
    """Make the OAuth mock answer a successful code exchange."""
    oauth_flow.exchange_code.return_value = OAuthTokens(
        access_token="ya29.connected",
        refresh_token="1//connected",
        expires_in=3600,
        token_type="Bearer",
        scope=SCOPE,
    )
    oauth_flow.get_user_info.return_value = GoogleUserInfo(email="alex@example.com", name="Alex")
    fake_client.calendars = [
        {"id": "alex@example.com", "summary": "Alex", "primary": True},
        {"id": "work-calendar-id", "summary": "Work"},
    ]
    return oauth_flow


def accounts_of(db_session, user_id) -> list[ConnectedAccount]:
    stmt = select(ConnectedAccount).where(ConnectedAccount.user_id == user_id)
    return list(db_session.execute(stmt).scalars().all())


def add_block(db_session, account) -> None:
    db_session.add(AvailabilityBlock(
        user_id=account.user_id,
        account_id=account.id,
        remote_calendar_id="alex@example.com",
        start_at=datetime(2025, 6, 2, 9, 0, tzinfo=timezone.utc),
        end_at=datetime(2025, 6, 2, 10, 0, tzinfo=timezone.utc),
    ))
    db_session.commit()


class TestCompleteConnection:
    """Test finishing the OAuth flow."""

    def test_new_connection(self, service, db_session, vault, google_login, fake_client, sample_user):
        """Credentials are sealed, calendars reconciled, availability synced."""
        account = service.complete_connection(sample_user.id, "auth-code")

        google_login.exchange_code.assert_called_once_with("auth-code")
        google_login.get_user_info.assert_called_once_with("ya29.connected")
        assert account.provider_account_email == "alex@example.com"
        assert account.access_credential != "ya29.connected"
        assert vault.open(account.access_credential) == "ya29.connected"
        assert vault.open(account.refresh_credential) == "1//connected"
        assert account.scope == SCOPE
        assert account.is_revoked is False

        overview = service.get_overview(sample_user.id)
        assert [c.remote_calendar_id for c in overview.calendars] == ["alex@example.com", "work-calendar-id"]
        assert overview.sync_state.last_synced_at is not None
        assert fake_client.call_count("freebusy_query") == 1

    def test_reconnect_reuses_revoked_account(self, service, db_session, vault, google_login, account_factory, sample_user):
        """Reconnecting clears the revocation on the same row."""
        previous = account_factory(sample_user, revoked=True)

        account = service.complete_connection(sample_user.id, "auth-code")

        assert account.id == previous.id
        assert account.is_revoked is False
        assert len(accounts_of(db_session, sample_user.id)) == 1

    def test_reconnect_without_new_refresh_token_keeps_old_one(self, service, vault, google_login, account_factory, sample_user):
        account_factory(sample_user, expires_in=None)
        google_login.exchange_code.return_value.refresh_token = None

        account = service.complete_connection(sample_user.id, "auth-code")

        assert vault.open(account.refresh_credential) == "1//test-refresh-token"

    def test_availability_failure_does_not_undo_connection(self, service, db_session, google_login, fake_client, sample_user):
        """A failed first availability sync is recorded, not raised."""
        fake_client.fail("freebusy_query", TransientProviderError("Backend Error", status=503))

        account = service.complete_connection(sample_user.id, "auth-code")

        assert account.is_revoked is False
        overview = service.get_overview(sample_user.id)
        assert overview.sync_state.last_sync_error == "Backend Error"
        assert overview.sync_state.last_synced_at is None

    def test_calendar_list_failure_propagates(self, service, google_login, fake_client, sample_user):
        fake_client.fail("list_calendars", TransientProviderError("Backend Error", status=503))

        with pytest.raises(TransientProviderError):
            service.complete_connection(sample_user.id, "auth-code")


class TestDisconnect:
    """Test disconnecting an account."""

    def test_disconnect_revokes_and_clears_blocks(self, service, db_session, sample_user, sample_account):
        add_block(db_session, sample_account)

        assert service.disconnect(sample_user.id) is True

        assert sample_account.is_revoked is True
        assert db_session.execute(select(AvailabilityBlock)).first() is None
        assert len(accounts_of(db_session, sample_user.id)) == 1

    def test_disconnect_without_account(self, service, sample_user):
        assert service.disconnect(sample_user.id) is False

    def test_disconnect_twice(self, service, sample_user, sample_account):
        assert service.disconnect(sample_user.id) is True
        assert service.disconnect(sample_user.id) is False


class TestCalendarSelection:
    """Test opting calendars in and out of availability."""

    def test_select_calendar_resyncs_with_it(self, service, fake_client, sample_user, sample_calendars):
        calendar = service.set_calendar_selected(sample_user.id, "work-calendar-id", True)

        assert calendar.selected is True
        _, calendar_ids, _, _ = fake_client.calls[-1]
        assert sorted(calendar_ids) == ["alex@example.com", "work-calendar-id"]

    def test_deselect_calendar(self, service, fake_client, sample_user, sample_calendars):
        service.set_calendar_selected(sample_user.id, "alex@example.com", False)

        assert sample_calendars[0].selected is False
        assert fake_client.call_count("freebusy_query") == 0

    def test_unknown_calendar(self, service, sample_user, sample_calendars):
        with pytest.raises(CalendarNotFound):
            service.set_calendar_selected(sample_user.id, "someone-else", True)

    def test_not_connected(self, service, sample_user):
        with pytest.raises(NotConnected):
            service.set_calendar_selected(sample_user.id, "alex@example.com", True)


class TestSyncAvailability:
    def test_sync(self, service, fake_client, sample_user, sample_calendars):
        fake_client.freebusy_response = {"calendars": {"alex@example.com": {"busy": [
            {"start": "2099-01-01T09:00:00Z", "end": "2099-01-01T10:00:00Z"},
        ]}}}

        result = service.sync_availability(sample_user.id)

        assert result.blocks_count == 1

    def test_not_connected(self, service, sample_user):
        with pytest.raises(NotConnected):
            service.sync_availability(sample_user.id)

    def test_revoked(self, service, account_factory, sample_user):
        account_factory(sample_user, revoked=True)

        with pytest.raises(AccountRevoked):
            service.sync_availability(sample_user.id)


class TestOverview:
    def test_overview_includes_revoked_account(self, service, account_factory, sample_user):
        account_factory(sample_user, revoked=True)

        overview = service.get_overview(sample_user.id)

        assert overview.account.is_revoked is True
        assert overview.calendars == []
        assert overview.sync_state is None

    def test_primary_calendar_listed_first(self, service, db_session, sample_user, sample_calendars):
        sample_calendars[1].summary = "Anniversaries"
        db_session.commit()

        overview = service.get_overview(sample_user.id)

        assert [c.remote_calendar_id for c in overview.calendars] == ["alex@example.com", "work-calendar-id"]

    def test_not_connected(self, service, sample_user):
        with pytest.raises(NotConnected):
            service.get_overview(sample_user.id)
