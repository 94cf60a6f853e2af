# calendar_core/schemas/provider_account.py
from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field

from calendar_core.exceptions import ConfigurationError
from calendar_core.schemas.calendar_events import CalendarProvider

DEFAULT_TIMEZONE = "America/Guayaquil"
PRIMARY_CALENDAR_ID = "primary"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProviderAccount(BaseModel):
    """One tenant's OAuth2 credential set and configuration for one vendor"""
    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    tenant_id: str = Field(..., description="Business/tenant that owns the account")
    provider: CalendarProvider
    account_email: str = Field(..., min_length=1)
    access_token: str = Field(..., min_length=1)
    refresh_token: Optional[str] = None
    token_expires_at: Optional[datetime] = Field(None, description="None means unknown, trusted as valid")
    config: Dict[str, Any] = Field(default_factory=dict)
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def timezone(self) -> str:
        tz = self.config.get("timezone") if self.config else None
        return str(tz) if tz else DEFAULT_TIMEZONE

    @property
    def zone(self) -> ZoneInfo:
        """The account timezone resolved to a ZoneInfo"""
        try:
            return ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ConfigurationError(
                f"Account {self.id} has an unknown timezone {self.timezone!r}", cause=exc
            )

    @property
    def calendar_id(self) -> str:
        calendar_id = self.config.get("calendar_id") if self.config else None
        return str(calendar_id) if calendar_id else PRIMARY_CALENDAR_ID

    def is_token_expired(self, now: datetime, skew: timedelta = timedelta(0)) -> bool:
        """True when the token is past (or within ``skew`` of) its expiry"""
        if self.token_expires_at is None:
            return False
        return now >= self.token_expires_at - skew

    def with_tokens(
            self,
            access_token: str,
            refresh_token: Optional[str],
            expires_at: Optional[datetime],
            now: Optional[datetime] = None
    ) -> "ProviderAccount":
        return self.model_copy(update={
            "access_token": access_token,
            "refresh_token": refresh_token,
            "token_expires_at": expires_at,
            "updated_at": now or utcnow(),
        })

    def with_config(self, config: Dict[str, Any], now: Optional[datetime] = None) -> "ProviderAccount":
        return self.model_copy(update={"config": dict(config or {}), "updated_at": now or utcnow()})

    def with_active(self, active: bool, now: Optional[datetime] = None) -> "ProviderAccount":
        return self.model_copy(update={"is_active": active, "updated_at": now or utcnow()})

    def __repr__(self) -> str:
        # tokens stay out of logs and tracebacks
        return (
            f"ProviderAccount(id={self.id}, tenant_id={self.tenant_id!r}, "
            f"provider={self.provider.value}, is_active={self.is_active})"
        )

    __str__ = __repr__


class OAuth2Tokens(BaseModel):
    """Tokens returned by a vendor token endpoint"""
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None


class OAuth2AuthState(BaseModel):
    """What a state token binds an authorization request to"""
    tenant_id: str
    provider: CalendarProvider


class AuthorizationUrl(BaseModel):
    url: str
    state: str


class ProviderAccountSummary(BaseModel):
    """Account as shown to dashboards: everything except the tokens"""
    id: uuid.UUID
    tenant_id: str
    provider: CalendarProvider
    account_email: str
    token_expires_at: Optional[datetime] = None
    config: Dict[str, Any] = Field(default_factory=dict)
    is_active: bool
    created_at: datetime
    updated_at: datetime
    is_token_expired: bool

    @classmethod
    def from_account(cls, account: ProviderAccount, now: Optional[datetime] = None) -> "ProviderAccountSummary":
        return cls(
            id=account.id,
            tenant_id=account.tenant_id,
            provider=account.provider,
            account_email=account.account_email,
            token_expires_at=account.token_expires_at,
            config=dict(account.config or {}),
            is_active=account.is_active,
            created_at=account.created_at,
            updated_at=account.updated_at,
            is_token_expired=account.is_token_expired(now or utcnow()),
        )
