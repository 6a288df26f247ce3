"""
Pytest configuration and fixtures for Plansync tests.

Provides an in-memory database session, a vault with a fixed key, sample
planning data with a connected Google account, and a fake Calendar API
client that sync components receive through their client factory.
"""

import base64
from datetime import datetime, timedelta, timezone
from typing import Generator, Optional
from unittest.mock import MagicMock

import pytest
import sqlalchemy as sa
from sqlalchemy.orm import Session, sessionmaker

from plansync.config import Settings
from plansync.database import create_db_engine
from plansync.exceptions import RemoteNotFoundError
from plansync.integrations.google_calendar.oauth import GoogleOAuthFlow
from plansync.models.accounts import ConnectedAccount, RemoteCalendarRef
from plansync.models.base import Base, utcnow
from plansync.models.planning import Plan, SharedSpace, SpaceMembership, User
from plansync.security.vault import CredentialVault
from plansync.sync.retry import RetryPolicy
from plansync.sync.token_session import TokenSession

TEST_KEY = base64.b64encode(bytes(range(32))).decode("ascii")

ACCESS_TOKEN = "ya29.test-access-token"
REFRESH_TOKEN = "1//test-refresh-token"


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """
    Create a clean database session for each test.

    Uses an in-memory SQLite database shared across threads (so API tests
    running routes in a threadpool see the same data) and torn down after
    each test.
    """
    engine = create_db_engine("sqlite:///:memory:")
    Base.metadata.create_all(bind=engine)

    TestingSessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=engine,
    )
    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.rollback()
        session.close()
        with engine.begin() as connection:
            connection.execute(sa.text("PRAGMA foreign_keys=OFF"))
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


# =============================================================================
# Configuration & credentials
# =============================================================================


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from the environment, with no backoff delay."""
    return Settings(
        _env_file=None,
        token_encryption_key=TEST_KEY,
        google_oauth_client_id="test-client-id",
        google_oauth_client_secret="test-client-secret",
        sync_retry_base_delay=0,
        sync_retry_max_delay=0,
    )


@pytest.fixture
def vault() -> CredentialVault:
    return CredentialVault(TEST_KEY)


@pytest.fixture
def retry_policy() -> RetryPolicy:
    return RetryPolicy(attempts=3, base_delay=0, max_delay=0)


# =============================================================================
# Fake Google Calendar client
# =============================================================================


class FakeCalendarClient:
    """
    In-memory stand-in for GoogleCalendarClient.

    Events live in `events` keyed by (calendar_id, event_id). Errors queued
    with `fail()` are raised by the named method, one per call, before it
    does anything else.
    """

    def __init__(self):
        self.calendars: list[dict] = []
        self.events: dict[tuple[str, str], dict] = {}
        self.freebusy_response: dict = {"calendars": {}}
        self.calls: list[tuple] = []
        self.tokens_used: list[str] = []
        self._errors: dict[str, list[BaseException]] = {}
        self._counter = 0

    def fail(self, method: str, error: BaseException, times: int = 1) -> None:
        self._errors.setdefault(method, []).extend([error] * times)

    def call_count(self, method: str) -> int:
        return sum(1 for call in self.calls if call[0] == method)

    def _record(self, method: str, *args) -> None:
        self.calls.append((method, *args))
        queue = self._errors.get(method)
        if queue:
            raise queue.pop(0)

    def list_calendars(self) -> list[dict]:
        self._record("list_calendars")
        return list(self.calendars)

    def insert_event(self, calendar_id: str, body: dict, send_updates: str = "all") -> dict:
        self._record("insert_event", calendar_id, body, send_updates)
        self._counter += 1
        event_id = f"evt-{self._counter}"
        event = {"id": event_id, "etag": f'"etag-{self._counter}"', **body}
        self.events[(calendar_id, event_id)] = event
        return event

    def update_event(self, calendar_id: str, event_id: str, body: dict, send_updates: str = "all") -> dict:
        self._record("update_event", calendar_id, event_id, body, send_updates)
        if (calendar_id, event_id) not in self.events:
            raise RemoteNotFoundError("Event or calendar not found", status=404)
        self._counter += 1
        event = {"id": event_id, "etag": f'"etag-{self._counter}"', **body}
        self.events[(calendar_id, event_id)] = event
        return event

    def delete_event(self, calendar_id: str, event_id: str, send_updates: str = "all") -> None:
        self._record("delete_event", calendar_id, event_id, send_updates)
        if self.events.pop((calendar_id, event_id), None) is None:
            raise RemoteNotFoundError("Event or calendar not found", status=404)

    def freebusy_query(self, calendar_ids: list[str], time_min: str, time_max: str) -> dict:
        self._record("freebusy_query", list(calendar_ids), time_min, time_max)
        return self.freebusy_response


@pytest.fixture
def fake_client() -> FakeCalendarClient:
    return FakeCalendarClient()


@pytest.fixture
def oauth_flow() -> MagicMock:
    return MagicMock(spec=GoogleOAuthFlow)


@pytest.fixture
def client_factory(fake_client: FakeCalendarClient):
    def factory(access_token: str) -> FakeCalendarClient:
        fake_client.tokens_used.append(access_token)
        return fake_client

    return factory


@pytest.fixture
def token_session(db_session, vault, oauth_flow, client_factory, settings) -> TokenSession:
    return TokenSession(
        db_session,
        vault,
        oauth_flow=oauth_flow,
        client_factory=client_factory,
        settings=settings,
    )


# =============================================================================
# Sample data
# =============================================================================


@pytest.fixture
def sample_user(db_session: Session) -> User:
    """The organizer: owns the connected Google account."""
    user = User(email="alex@example.com", name="Alex")
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def sample_partner(db_session: Session) -> User:
    user = User(email="Sam@Example.com", name="Sam")
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def sample_space(db_session: Session, sample_user: User, sample_partner: User) -> SharedSpace:
    space = SharedSpace(name="Alex & Sam")
    db_session.add(space)
    db_session.flush()
    db_session.add_all([
        SpaceMembership(space_id=space.id, user_id=sample_user.id),
        SpaceMembership(space_id=space.id, user_id=sample_partner.id),
    ])
    db_session.commit()
    return space


def make_plan(
    db_session: Session,
    space: SharedSpace,
    creator: Optional[User] = None,
    **overrides,
) -> Plan:
    values = {
        "title": "Dinner at Luigi's",
        "description": "Anniversary dinner",
        "starts_at": datetime(2025, 6, 1, 18, 0, tzinfo=timezone.utc),
        "ends_at": None,
        "time_is_set": True,
        "place_name": "Luigi's",
        "place_address": "12 Main St",
    }
    values.update(overrides)
    plan = Plan(
        space_id=space.id,
        created_by_user_id=creator.id if creator else None,
        **values,
    )
    db_session.add(plan)
    db_session.commit()
    return plan


@pytest.fixture
def sample_plan(db_session: Session, sample_space: SharedSpace, sample_user: User) -> Plan:
    return make_plan(db_session, sample_space, sample_user)


def make_account(
    db_session: Session,
    vault: CredentialVault,
    user: User,
    expires_in: Optional[timedelta] = timedelta(hours=1),
    refresh_token: Optional[str] = REFRESH_TOKEN,
    revoked: bool = False,
    scope: str = (
        "https://www.googleapis.com/auth/calendar.readonly "
        "https://www.googleapis.com/auth/calendar.events"
    ),
) -> ConnectedAccount:
    account = ConnectedAccount(
        user_id=user.id,
        provider_account_email=user.email.lower(),
        access_credential=vault.seal(ACCESS_TOKEN),
        refresh_credential=vault.seal(refresh_token) if refresh_token else None,
        access_expires_at=utcnow() + expires_in if expires_in is not None else None,
        scope=scope,
        revoked_at=utcnow() if revoked else None,
    )
    db_session.add(account)
    db_session.commit()
    return account


@pytest.fixture
def sample_account(db_session: Session, vault: CredentialVault, sample_user: User) -> ConnectedAccount:
    return make_account(db_session, vault, sample_user)


@pytest.fixture
def sample_calendars(db_session: Session, sample_account: ConnectedAccount) -> list[RemoteCalendarRef]:
    """Primary calendar (selected) and a secondary calendar (not selected)."""
    calendars = [
        RemoteCalendarRef(
            account_id=sample_account.id,
            remote_calendar_id="alex@example.com",
            summary="Alex",
            primary=True,
            selected=True,
        ),
        RemoteCalendarRef(
            account_id=sample_account.id,
            remote_calendar_id="work-calendar-id",
            summary="Work",
            primary=False,
            selected=False,
        ),
    ]
    db_session.add_all(calendars)
    db_session.commit()
    return calendars


@pytest.fixture
def plan_factory(db_session: Session, sample_space: SharedSpace, sample_user: User):
    """Create plans in the sample space: plan_factory(time_is_set=False, ...)."""
    def factory(**overrides) -> Plan:
        return make_plan(db_session, sample_space, sample_user, **overrides)

    return factory


@pytest.fixture
def account_factory(db_session: Session, vault: CredentialVault):
    """Create connected accounts: account_factory(user, expires_in=..., revoked=...)."""
    def factory(user: User, **kwargs) -> ConnectedAccount:
        return make_account(db_session, vault, user, **kwargs)

    return factory
