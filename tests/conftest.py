"""Shared test fixtures for the calendar core test suite."""

from __future__ import annotations

import os
import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional
from unittest.mock import MagicMock

import pytest

# 32 bytes of "a", urlsafe-base64 encoded: a valid Fernet key
TEST_FERNET_KEY = "YWFh" * 10 + "YWE="

# Monday
NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


def pytest_configure(config):
    """Set test environment variables BEFORE collection starts.

    Settings are cached on first use, so they must be in place before any
    calendar_core module is imported.
    """
    os.environ.setdefault("CALENDAR_ENCRYPTION_KEY", TEST_FERNET_KEY)
    os.environ.setdefault("GOOGLE_CLIENT_ID", "google-client-id")
    os.environ.setdefault("GOOGLE_CLIENT_SECRET", "google-client-secret")
    os.environ.setdefault("GOOGLE_REDIRECT_URI", "https://app.example.com/oauth2/callback")
    os.environ.setdefault("MICROSOFT_CLIENT_ID", "ms-client-id")
    os.environ.setdefault("MICROSOFT_CLIENT_SECRET", "ms-client-secret")
    os.environ.setdefault("MICROSOFT_REDIRECT_URI", "https://app.example.com/oauth2/callback")
    os.environ.setdefault("DATABASE_URL", "sqlite://")


def make_response(data=None, status_code: int = 200) -> MagicMock:
    mock = MagicMock()
    mock.status_code = status_code
    if data is None:
        mock.json.side_effect = ValueError("no body")
        mock.content = b""
        mock.text = ""
    else:
        mock.json.return_value = data
        mock.content = str(data).encode()
        mock.text = str(data)
    return mock


class FixedClock:
    """Injectable clock that only moves when told to"""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeAccountRepository:
    """In-memory AccountRepository keeping the single-active invariant"""

    def __init__(self):
        self.accounts: Dict[uuid.UUID, object] = {}
        self.save_calls = 0

    def find_by_id(self, account_id):
        return self.accounts.get(account_id)

    def find_active_by_tenant_and_provider(self, tenant_id, provider):
        for account in self.accounts.values():
            if account.tenant_id == tenant_id and account.provider == provider and account.is_active:
                return account
        return None

    def find_by_tenant(self, tenant_id, active_only=False) -> List:
        return [
            a for a in self.accounts.values()
            if a.tenant_id == tenant_id and (a.is_active or not active_only)
        ]

    def save(self, account):
        from calendar_core.exceptions import ConfigurationError

        if account.is_active:
            other = self.find_active_by_tenant_and_provider(account.tenant_id, account.provider)
            if other is not None and other.id != account.id:
                raise ConfigurationError("duplicate active account")
        self.save_calls += 1
        self.accounts[account.id] = account
        return account


@pytest.fixture
def mock_response():
    """Factory fixture for mock requests.Response objects."""
    return make_response


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def account_repository():
    return FakeAccountRepository()


@pytest.fixture
def make_account():
    """Factory fixture for ProviderAccount instances."""
    from calendar_core.schemas import CalendarProvider, ProviderAccount

    def _make(
            provider: CalendarProvider = CalendarProvider.GOOGLE,
            tenant_id: str = "tenant-1",
            expires_in: Optional[timedelta] = timedelta(hours=1),
            refresh_token: Optional[str] = "refresh-1",
            config: Optional[dict] = None,
            **overrides
    ):
        fields = dict(
            tenant_id=tenant_id,
            provider=provider,
            account_email="owner@example.com",
            access_token="access-1",
            refresh_token=refresh_token,
            token_expires_at=NOW + expires_in if expires_in is not None else None,
            config=config if config is not None else {"timezone": "America/Guayaquil"},
            created_at=NOW,
            updated_at=NOW,
        )
        fields.update(overrides)
        return ProviderAccount(**fields)

    return _make
