# ============================================================================
# calendar_core/repositories/account_repository.py
# ============================================================================
"""Durable storage for ProviderAccount"""
import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Callable, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from calendar_core.exceptions import ConfigurationError
from calendar_core.models import CalendarProviderAccountRecord
from calendar_core.schemas import CalendarProvider, ProviderAccount
from calendar_core.utils.encryption import TokenCipher

logger = logging.getLogger(__name__)


class AccountRepository(ABC):
    """Account store contract consumed by the calendar core"""

    @abstractmethod
    def find_by_id(self, account_id: uuid.UUID) -> Optional[ProviderAccount]:
        ...

    @abstractmethod
    def find_active_by_tenant_and_provider(
            self,
            tenant_id: str,
            provider: CalendarProvider
    ) -> Optional[ProviderAccount]:
        ...

    @abstractmethod
    def find_by_tenant(self, tenant_id: str, active_only: bool = False) -> List[ProviderAccount]:
        ...

    @abstractmethod
    def save(self, account: ProviderAccount) -> ProviderAccount:
        """Insert or update; raises ConfigurationError on a second active account"""
        ...


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes even for timezone=True columns
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class SqlAlchemyAccountRepository(AccountRepository):
    """ProviderAccount storage backed by the calendar_provider_accounts table"""

    def __init__(
            self,
            session_factory: sessionmaker,
            cipher: Optional[TokenCipher] = None,
            clock: Optional[Callable[[], datetime]] = None
    ):
        self._session_factory = session_factory
        self._cipher = cipher or TokenCipher()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def find_by_id(self, account_id: uuid.UUID) -> Optional[ProviderAccount]:
        with self._session_factory() as db:
            record = db.get(CalendarProviderAccountRecord, account_id)
            return self._to_domain(record) if record else None

    def find_active_by_tenant_and_provider(
            self,
            tenant_id: str,
            provider: CalendarProvider
    ) -> Optional[ProviderAccount]:
        with self._session_factory() as db:
            record = db.execute(
                select(CalendarProviderAccountRecord).filter_by(
                    tenant_id=tenant_id,
                    provider=provider.value,
                    is_active=True
                )
            ).scalars().first()
            return self._to_domain(record) if record else None

    def find_by_tenant(self, tenant_id: str, active_only: bool = False) -> List[ProviderAccount]:
        with self._session_factory() as db:
            query = select(CalendarProviderAccountRecord).filter_by(tenant_id=tenant_id)
            if active_only:
                query = query.filter_by(is_active=True)
            query = query.order_by(CalendarProviderAccountRecord.created_at)
            return [self._to_domain(record) for record in db.execute(query).scalars()]

    def save(self, account: ProviderAccount) -> ProviderAccount:
        with self._session_factory() as db:
            if account.is_active:
                self._check_single_active(db, account)

            record = db.get(CalendarProviderAccountRecord, account.id)
            if record is None:
                record = CalendarProviderAccountRecord(
                    id=account.id,
                    created_at=account.created_at,
                )
                db.add(record)

            record.tenant_id = account.tenant_id
            record.provider = account.provider.value
            record.account_email = account.account_email
            record.is_active = account.is_active
            record.access_token_encrypted = self._cipher.encrypt(account.access_token)
            record.refresh_token_encrypted = self._cipher.encrypt(account.refresh_token)
            record.token_expires_at = account.token_expires_at
            record.provider_config = dict(account.config or {})
            record.updated_at = account.updated_at or self._clock()

            try:
                db.commit()
            except IntegrityError as exc:
                db.rollback()
                raise ConfigurationError(
                    f"An active {account.provider.value} account already exists for tenant {account.tenant_id}",
                    cause=exc
                )
            db.refresh(record)
            logger.debug(f"Saved calendar account {record.id} ({record.provider})")
            return self._to_domain(record)

    @staticmethod
    def _check_single_active(db: Session, account: ProviderAccount) -> None:
        other = db.execute(
            select(CalendarProviderAccountRecord.id).filter(
                CalendarProviderAccountRecord.tenant_id == account.tenant_id,
                CalendarProviderAccountRecord.provider == account.provider.value,
                CalendarProviderAccountRecord.is_active.is_(True),
                CalendarProviderAccountRecord.id != account.id
            )
        ).scalars().first()
        if other is not None:
            raise ConfigurationError(
                f"An active {account.provider.value} account already exists for tenant {account.tenant_id}"
            )

    def _to_domain(self, record: CalendarProviderAccountRecord) -> ProviderAccount:
        return ProviderAccount(
            id=record.id,
            tenant_id=record.tenant_id,
            provider=CalendarProvider(record.provider),
            account_email=record.account_email,
            access_token=self._cipher.decrypt(record.access_token_encrypted),
            refresh_token=self._cipher.decrypt(record.refresh_token_encrypted),
            token_expires_at=_as_utc(record.token_expires_at),
            config=dict(record.provider_config or {}),
            is_active=bool(record.is_active),
            created_at=_as_utc(record.created_at) or self._clock(),
            updated_at=_as_utc(record.updated_at) or self._clock(),
        )
