"""Tests for the vendor token endpoint client."""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import patch

import pytest
import requests

from calendar_core.config.settings import Settings
from calendar_core.exceptions import ApiError, AuthenticationError, ConfigurationError
from calendar_core.schemas import CalendarProvider
from calendar_core.services.auth.token_exchange_service import TokenExchangeService, oauth_client_config
from conftest import NOW, make_response


@pytest.fixture
def exchange(clock):
    return TokenExchangeService(clock=clock)


class TestExchangeCode:
    def test_google_code_exchange(self, exchange):
        body = {"access_token": "at", "refresh_token": "rt", "expires_in": 3599, "token_type": "Bearer"}

        with patch.object(exchange._session, "request", return_value=make_response(body)) as mock_req:
            tokens = exchange.exchange_code("auth-code", CalendarProvider.GOOGLE)

        assert tokens.access_token == "at"
        assert tokens.refresh_token == "rt"
        assert tokens.expires_at == NOW + timedelta(seconds=3599)

        method, url = mock_req.call_args.args
        form = mock_req.call_args.kwargs["data"]
        assert method == "POST"
        assert url == "https://oauth2.googleapis.com/token"
        assert form["grant_type"] == "authorization_code"
        assert form["code"] == "auth-code"
        assert form["redirect_uri"] == "https://app.example.com/oauth2/callback"
        assert "scope" not in form
        assert mock_req.call_args.kwargs["timeout"] == exchange.settings.HTTP_TIMEOUT_SECONDS

    def test_outlook_code_exchange_sends_scope(self, exchange):
        body = {"access_token": "at", "refresh_token": "rt", "expires_in": 3600}

        with patch.object(exchange._session, "request", return_value=make_response(body)) as mock_req:
            exchange.exchange_code("auth-code", CalendarProvider.OUTLOOK)

        url = mock_req.call_args.args[1]
        form = mock_req.call_args.kwargs["data"]
        assert url == "https://login.microsoftonline.com/common/oauth2/v2.0/token"
        assert form["scope"] == "Calendars.ReadWrite offline_access User.Read"

    def test_missing_access_token_fails(self, exchange):
        with patch.object(exchange._session, "request", return_value=make_response({"token_type": "Bearer"})):
            with pytest.raises(AuthenticationError):
                exchange.exchange_code("auth-code", CalendarProvider.GOOGLE)

    def test_missing_expiry_is_left_unknown(self, exchange):
        with patch.object(exchange._session, "request", return_value=make_response({"access_token": "at"})):
            tokens = exchange.exchange_code("auth-code", CalendarProvider.GOOGLE)

        assert tokens.expires_at is None

    def test_rejected_code_is_authentication_error(self, exchange):
        body = {"error": "invalid_grant", "error_description": "Bad Request"}

        with patch.object(exchange._session, "request", return_value=make_response(body, 400)):
            with pytest.raises(AuthenticationError, match="Bad Request"):
                exchange.exchange_code("auth-code", CalendarProvider.GOOGLE)


class TestRefreshTokens:
    def test_keeps_refresh_token_when_not_rotated(self, exchange):
        body = {"access_token": "new-at", "expires_in": 3600}

        with patch.object(exchange._session, "request", return_value=make_response(body)) as mock_req:
            tokens = exchange.refresh_tokens("old-rt", CalendarProvider.GOOGLE)

        assert tokens.access_token == "new-at"
        assert tokens.refresh_token == "old-rt"
        form = mock_req.call_args.kwargs["data"]
        assert form["grant_type"] == "refresh_token"
        assert form["refresh_token"] == "old-rt"

    def test_adopts_rotated_refresh_token(self, exchange):
        body = {"access_token": "new-at", "refresh_token": "new-rt", "expires_in": 3600}

        with patch.object(exchange._session, "request", return_value=make_response(body)):
            tokens = exchange.refresh_tokens("old-rt", CalendarProvider.OUTLOOK)

        assert tokens.refresh_token == "new-rt"

    def test_timeout_is_transient_api_error(self, exchange):
        with patch.object(exchange._session, "request", side_effect=requests.Timeout("slow")):
            with pytest.raises(ApiError) as exc_info:
                exchange.refresh_tokens("old-rt", CalendarProvider.GOOGLE)

        assert exc_info.value.transient is True

    def test_server_error_is_api_error(self, exchange):
        with patch.object(exchange._session, "request", return_value=make_response({"error": "server"}, 503)):
            with pytest.raises(ApiError) as exc_info:
                exchange.refresh_tokens("old-rt", CalendarProvider.GOOGLE)

        assert exc_info.value.status_code == 503


class TestClientConfig:
    def test_missing_credentials_is_configuration_error(self):
        settings = Settings(GOOGLE_CLIENT_ID="", GOOGLE_CLIENT_SECRET="")

        with pytest.raises(ConfigurationError):
            oauth_client_config(CalendarProvider.GOOGLE, settings)

    def test_outlook_uses_configured_tenant(self):
        settings = Settings(MICROSOFT_CLIENT_ID="id", MICROSOFT_CLIENT_SECRET="secret", MICROSOFT_TENANT_ID="contoso")

        config = oauth_client_config(CalendarProvider.OUTLOOK, settings)

        assert config.authorization_url == "https://login.microsoftonline.com/contoso/oauth2/v2.0/authorize"
        assert config.token_url == "https://login.microsoftonline.com/contoso/oauth2/v2.0/token"
