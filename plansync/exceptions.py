"""
Exceptions for the calendar sync subsystem.

Every failure carries a caller-facing `code` and a `retryable` flag decided
once, where the error is raised. Callers never inspect provider error
payloads themselves.
"""

from enum import Enum
from typing import Optional


class SyncErrorCode(str, Enum):
    """Caller-facing error codes returned in sync results."""

    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    CORRUPT_CREDENTIAL = "CORRUPT_CREDENTIAL"
    ACCOUNT_REVOKED = "ACCOUNT_REVOKED"
    REFRESH_FAILED = "REFRESH_FAILED"
    NOT_CONNECTED = "NOT_CONNECTED"
    NO_PRIMARY_CALENDAR = "NO_PRIMARY_CALENDAR"
    CALENDAR_NOT_FOUND = "CALENDAR_NOT_FOUND"
    ALREADY_SYNCED = "ALREADY_SYNCED"
    NOT_SYNCED = "NOT_SYNCED"
    TRANSIENT_ERROR = "TRANSIENT_ERROR"
    API_ERROR = "API_ERROR"
    REMOTE_NOT_FOUND = "REMOTE_NOT_FOUND"


class CalendarSyncError(Exception):
    """Base exception for calendar sync operations."""

    code: SyncErrorCode = SyncErrorCode.API_ERROR
    retryable: bool = False

    def __init__(self, message: str, original_error: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error


# =============================================================================
# Configuration & storage
# =============================================================================


class ConfigurationError(CalendarSyncError):
    """
    Missing or malformed configuration.

    Causes:
    - Master encryption key absent
    - Master key not base64 or not exactly 32 bytes once decoded
    """

    code = SyncErrorCode.CONFIGURATION_ERROR


class CorruptionError(CalendarSyncError):
    """A sealed credential failed authentication or has a malformed length."""

    code = SyncErrorCode.CORRUPT_CREDENTIAL


# =============================================================================
# Credentials (require the user to reconnect)
# =============================================================================


class AuthRecoverableError(CalendarSyncError):
    """The account can only be used again after the user reconnects."""


class AccountRevoked(AuthRecoverableError):
    """The connected account has been revoked."""

    code = SyncErrorCode.ACCOUNT_REVOKED


class RefreshFailed(AuthRecoverableError):
    """The provider rejected the refresh token; the account is now revoked."""

    code = SyncErrorCode.REFRESH_FAILED


# =============================================================================
# Sync state (caller logic errors)
# =============================================================================


class SyncStateError(CalendarSyncError):
    """The requested operation does not fit the current sync state."""


class NotConnected(SyncStateError):
    """No usable connected account for the user."""

    code = SyncErrorCode.NOT_CONNECTED


class NoPrimaryCalendar(SyncStateError):
    """The connected account has no primary calendar in the local catalog."""

    code = SyncErrorCode.NO_PRIMARY_CALENDAR


class CalendarNotFound(SyncStateError):
    """The calendar is not part of the account's local catalog."""

    code = SyncErrorCode.CALENDAR_NOT_FOUND


class AlreadySynced(SyncStateError):
    """The plan already has a remote event link."""

    code = SyncErrorCode.ALREADY_SYNCED


class NotSynced(SyncStateError):
    """The plan has no remote event link."""

    code = SyncErrorCode.NOT_SYNCED


# =============================================================================
# Provider failures
# =============================================================================


class ProviderError(CalendarSyncError):
    """A call to the remote calendar provider failed."""

    def __init__(
        self,
        message: str,
        original_error: Optional[BaseException] = None,
        status: Optional[int] = None,
    ):
        super().__init__(message, original_error=original_error)
        self.status = status


class TransientProviderError(ProviderError):
    """
    Rate limit, server error or network failure.

    Retried with exponential backoff; surfaced once attempts are exhausted.
    """

    code = SyncErrorCode.TRANSIENT_ERROR
    retryable = True


class PermanentProviderError(ProviderError):
    """
    Request rejected by the provider.

    Causes:
    - Malformed event payload
    - Permission denied
    - Invalid credentials
    """

    code = SyncErrorCode.API_ERROR


class RemoteNotFoundError(PermanentProviderError):
    """
    The remote event or calendar does not exist (404/410).

    Drift recovery triggers on this during update; delete treats it as done.
    """

    code = SyncErrorCode.REMOTE_NOT_FOUND
