"""Tests for vendor error parsing and HTTP error mapping."""

from unittest.mock import MagicMock

import pytest
import requests

from calendar_core.exceptions import ApiError, AuthenticationError
from calendar_core.utils.http import extract_error, raise_for_response, send
from conftest import make_response


class TestExtractError:
    def test_google_error(self):
        body = {"error": {"code": 404, "message": "Not Found", "status": "NOT_FOUND"}}
        assert extract_error(body) == ("Not Found", "404")

    def test_graph_error(self):
        body = {"error": {"code": "ErrorItemNotFound", "message": "The specified object was not found."}}
        assert extract_error(body) == ("The specified object was not found.", "ErrorItemNotFound")

    def test_oauth_error(self):
        body = {"error": "invalid_grant", "error_description": "Token has been expired or revoked."}
        assert extract_error(body) == ("Token has been expired or revoked.", "invalid_grant")

    def test_oauth_error_without_description(self):
        assert extract_error({"error": "invalid_client"}) == ("invalid_client", "invalid_client")

    def test_not_json(self):
        assert extract_error(None) == (None, None)
        assert extract_error(["oops"]) == (None, None)


class TestRaiseForResponse:
    def test_success(self):
        raise_for_response(make_response({}), "get event")

    @pytest.mark.parametrize("status", [401, 403])
    def test_auth_statuses(self, status):
        with pytest.raises(AuthenticationError):
            raise_for_response(make_response({"error": {"message": "denied"}}, status), "get event")

    def test_other_statuses(self):
        with pytest.raises(ApiError) as exc_info:
            raise_for_response(make_response({"error": {"code": 404, "message": "Not Found"}}, 404), "get event")

        assert exc_info.value.status_code == 404
        assert exc_info.value.error_code == "404"
        assert exc_info.value.transient is False

    def test_empty_error_body(self):
        with pytest.raises(ApiError) as exc_info:
            raise_for_response(make_response(None, 502), "list events")
        assert "HTTP 502" in str(exc_info.value)


class TestSend:
    def test_timeout_is_transient(self):
        session = MagicMock()
        session.request.side_effect = requests.Timeout("slow")

        with pytest.raises(ApiError) as exc_info:
            send(session, "GET", "https://example.com", "list events", 3.0)

        assert exc_info.value.transient is True
        assert exc_info.value.status_code is None

    def test_connection_error_is_transient(self):
        session = MagicMock()
        session.request.side_effect = requests.ConnectionError("refused")

        with pytest.raises(ApiError) as exc_info:
            send(session, "GET", "https://example.com", "list events", 3.0)
        assert exc_info.value.transient is True

    def test_passes_timeout(self):
        session = MagicMock()
        send(session, "POST", "https://example.com", "create event", 4.5, json={"a": 1})
        session.request.assert_called_once_with("POST", "https://example.com", timeout=4.5, json={"a": 1})
