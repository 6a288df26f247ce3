"""Tests for the Google Calendar API client and its error classification."""

import errno
import json
import socket
from unittest.mock import MagicMock, patch

import httplib2
import pytest
from googleapiclient.errors import HttpError

from plansync.exceptions import (
    PermanentProviderError,
    RemoteNotFoundError,
    TransientProviderError,
)
from plansync.integrations.google_calendar.client import (
    GoogleCalendarClient,
    _handle_http_error,
    _handle_transport_error,
)


def make_http_error(status: int, message: str = "Error", reason: str = None) -> HttpError:
    """Create an HttpError like the one googleapiclient raises."""
    resp = MagicMock()
    resp.status = status
    if reason:
        content = json.dumps({
            "error": {"code": status, "message": message, "errors": [{"reason": reason}]}
        }).encode()
    else:
        content = message.encode()
    return HttpError(resp=resp, content=content)


@pytest.fixture
def service():
    with patch("plansync.integrations.google_calendar.client.build") as mock_build:
        mock_service = MagicMock()
        mock_build.return_value = mock_service
        yield mock_service


@pytest.fixture
def client(service) -> GoogleCalendarClient:
    return GoogleCalendarClient.from_access_token("ya29.token")


class TestHandleHttpError:
    """HTTP status to exception mapping."""

    @pytest.mark.parametrize("status", [404, 410])
    def test_not_found(self, status):
        with pytest.raises(RemoteNotFoundError) as exc_info:
            _handle_http_error(make_http_error(status))
        assert exc_info.value.status == status
        assert exc_info.value.retryable is False

    @pytest.mark.parametrize("status", [429, 500, 502, 503, 504])
    def test_retryable_statuses(self, status):
        with pytest.raises(TransientProviderError) as exc_info:
            _handle_http_error(make_http_error(status))
        assert exc_info.value.retryable is True
        assert exc_info.value.status == status

    @pytest.mark.parametrize("reason", ["rateLimitExceeded", "userRateLimitExceeded"])
    def test_403_rate_limit_is_transient(self, reason):
        with pytest.raises(TransientProviderError):
            _handle_http_error(make_http_error(403, "Rate Limit Exceeded", reason=reason))

    def test_403_permission_denied_is_permanent(self):
        with pytest.raises(PermanentProviderError) as exc_info:
            _handle_http_error(make_http_error(403, "Forbidden", reason="forbidden"))
        assert "Access denied" in str(exc_info.value)
        assert exc_info.value.retryable is False

    def test_401_is_permanent(self):
        with pytest.raises(PermanentProviderError) as exc_info:
            _handle_http_error(make_http_error(401))
        assert "credentials may be invalid or expired" in str(exc_info.value)

    def test_400_is_permanent(self):
        with pytest.raises(PermanentProviderError) as exc_info:
            _handle_http_error(make_http_error(400, "Bad Request"))
        assert not isinstance(exc_info.value, RemoteNotFoundError)
        assert exc_info.value.status == 400


class TestHandleTransportError:
    """Network-level failures."""

    @pytest.mark.parametrize("error", [
        socket.timeout("timed out"),
        TimeoutError("timed out"),
        ConnectionResetError(errno.ECONNRESET, "reset by peer"),
        ConnectionRefusedError(errno.ECONNREFUSED, "refused"),
        BrokenPipeError(errno.EPIPE, "broken pipe"),
        OSError(errno.ENETUNREACH, "network unreachable"),
        OSError(errno.EHOSTUNREACH, "host unreachable"),
        socket.gaierror(socket.EAI_AGAIN, "temporary failure in name resolution"),
        socket.gaierror(socket.EAI_NONAME, "Name or service not known"),
        socket.gaierror(socket.EAI_FAIL, "non-recoverable failure in name resolution"),
        httplib2.ServerNotFoundError("Unable to find the server"),
    ])
    def test_transient(self, error):
        with pytest.raises(TransientProviderError) as exc_info:
            _handle_transport_error(error)
        assert exc_info.value.original_error is error

    def test_other_os_error_is_permanent(self):
        with pytest.raises(PermanentProviderError):
            _handle_transport_error(OSError(errno.EACCES, "permission denied"))


class TestGoogleCalendarClient:
    def test_list_calendars_follows_pages(self, client, service):
        list_call = service.calendarList.return_value.list
        list_call.return_value.execute.side_effect = [
            {"items": [{"id": "a"}, {"id": "b"}], "nextPageToken": "page-2"},
            {"items": [{"id": "c"}]},
        ]

        calendars = client.list_calendars()

        assert [c["id"] for c in calendars] == ["a", "b", "c"]
        assert list_call.call_args_list[0].kwargs == {"pageToken": None}
        assert list_call.call_args_list[1].kwargs == {"pageToken": "page-2"}

    def test_insert_event_sends_updates(self, client, service):
        insert = service.events.return_value.insert
        insert.return_value.execute.return_value = {"id": "evt-1", "etag": '"1"'}

        result = client.insert_event("primary", {"summary": "Dinner"}, send_updates="all")

        assert result["id"] == "evt-1"
        insert.assert_called_once_with(
            calendarId="primary",
            body={"summary": "Dinner"},
            sendUpdates="all",
        )

    def test_update_event_missing_raises_not_found(self, client, service):
        update = service.events.return_value.update
        update.return_value.execute.side_effect = make_http_error(404, "Not Found")

        with pytest.raises(RemoteNotFoundError):
            client.update_event("primary", "evt-1", {"summary": "Dinner"})

    def test_delete_event_gone_raises_not_found(self, client, service):
        delete = service.events.return_value.delete
        delete.return_value.execute.side_effect = make_http_error(410, "Gone")

        with pytest.raises(RemoteNotFoundError):
            client.delete_event("primary", "evt-1")

    def test_server_error_is_transient(self, client, service):
        insert = service.events.return_value.insert
        insert.return_value.execute.side_effect = make_http_error(503, "Backend Error")

        with pytest.raises(TransientProviderError):
            client.insert_event("primary", {"summary": "Dinner"})

    def test_timeout_is_transient(self, client, service):
        delete = service.events.return_value.delete
        delete.return_value.execute.side_effect = socket.timeout("timed out")

        with pytest.raises(TransientProviderError):
            client.delete_event("primary", "evt-1")

    def test_freebusy_query_body(self, client, service):
        query = service.freebusy.return_value.query
        query.return_value.execute.return_value = {"calendars": {}}

        client.freebusy_query(["a", "b"], "2025-06-01T00:00:00+00:00", "2025-06-02T00:00:00+00:00")

        query.assert_called_once_with(body={
            "timeMin": "2025-06-01T00:00:00+00:00",
            "timeMax": "2025-06-02T00:00:00+00:00",
            "items": [{"id": "a"}, {"id": "b"}],
        })
