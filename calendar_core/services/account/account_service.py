# calendar_core/services/account/account_service.py
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from calendar_core.exceptions import ConfigurationError
from calendar_core.repositories import AccountRepository
from calendar_core.schemas import CalendarProvider, ProviderAccount, ProviderAccountSummary
from calendar_core.services.auth.oauth_service import OAuth2Service
from calendar_core.services.auth.user_info_service import UserInfoService

logger = logging.getLogger(__name__)


class AccountService:
    """Lifecycle of tenants' calendar accounts"""

    def __init__(
            self,
            account_repository: AccountRepository,
            oauth_service: Optional[OAuth2Service] = None,
            user_info_service: Optional[UserInfoService] = None,
            clock: Optional[Callable[[], datetime]] = None
    ):
        self.account_repository = account_repository
        self.oauth_service = oauth_service
        self.user_info_service = user_info_service
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def create_account(
            self,
            tenant_id: str,
            provider: CalendarProvider,
            account_email: str,
            access_token: str,
            refresh_token: Optional[str] = None,
            token_expires_at: Optional[datetime] = None,
            config: Optional[Dict[str, Any]] = None,
            is_active: bool = True
    ) -> ProviderAccount:
        logger.info(f"Creating {provider.value} calendar account for tenant {tenant_id}")

        if is_active and self.account_repository.find_active_by_tenant_and_provider(tenant_id, provider):
            raise ConfigurationError(f"An active {provider.value} account already exists for tenant {tenant_id}")

        now = self._clock()
        account = ProviderAccount(
            tenant_id=tenant_id,
            provider=provider,
            account_email=account_email,
            access_token=access_token,
            refresh_token=refresh_token,
            token_expires_at=token_expires_at,
            config=dict(config or {}),
            is_active=is_active,
            created_at=now,
            updated_at=now,
        )
        saved = self.account_repository.save(account)
        logger.info(f"Created calendar account {saved.id}")
        return saved

    def update_account(
            self,
            account_id: uuid.UUID,
            access_token: Optional[str] = None,
            refresh_token: Optional[str] = None,
            token_expires_at: Optional[datetime] = None,
            config: Optional[Dict[str, Any]] = None,
            is_active: Optional[bool] = None
    ) -> ProviderAccount:
        """Partial update; arguments left as None keep their stored value"""
        account = self.get_account(account_id)
        now = self._clock()

        if access_token is not None or refresh_token is not None or token_expires_at is not None:
            account = account.with_tokens(
                access_token=access_token or account.access_token,
                refresh_token=refresh_token if refresh_token is not None else account.refresh_token,
                expires_at=token_expires_at if token_expires_at is not None else account.token_expires_at,
                now=now,
            )
        if config is not None:
            account = account.with_config(config, now=now)
        if is_active is not None:
            account = account.with_active(is_active, now=now)

        saved = self.account_repository.save(account)
        logger.info(f"Updated calendar account {account_id}")
        return saved

    def deactivate_account(self, account_id: uuid.UUID) -> ProviderAccount:
        """Soft delete; the row and its tokens are kept"""
        account = self.get_account(account_id)
        if not account.is_active:
            return account
        saved = self.account_repository.save(account.with_active(False, now=self._clock()))
        logger.info(f"Deactivated calendar account {account_id}")
        return saved

    def get_account(self, account_id: uuid.UUID) -> ProviderAccount:
        account = self.account_repository.find_by_id(account_id)
        if account is None:
            raise ConfigurationError(f"Calendar account {account_id} not found")
        return account

    def list_accounts(self, tenant_id: str, active_only: bool = False) -> List[ProviderAccount]:
        return self.account_repository.find_by_tenant(tenant_id, active_only=active_only)

    def list_account_summaries(self, tenant_id: str, active_only: bool = False) -> List[ProviderAccountSummary]:
        now = self._clock()
        return [
            ProviderAccountSummary.from_account(account, now)
            for account in self.list_accounts(tenant_id, active_only=active_only)
        ]

    def connect_account(self, code: str, state: str) -> ProviderAccount:
        """
        Finish an OAuth2 callback: consume the state, exchange the code, look
        up the account email, then store the account.

        A tenant reconnecting the same vendor gets its active account's tokens
        replaced instead of a second active account.
        """
        if self.oauth_service is None or self.user_info_service is None:
            raise ConfigurationError("AccountService needs an OAuth2Service and a UserInfoService to connect accounts")

        auth_state = self.oauth_service.complete_authorization(state)
        tenant_id, provider = auth_state.tenant_id, auth_state.provider

        tokens = self.oauth_service.exchange_code(code, provider)
        email = self.user_info_service.get_user_email(tokens.access_token, provider)

        existing = self.account_repository.find_active_by_tenant_and_provider(tenant_id, provider)
        if existing is not None:
            now = self._clock()
            updated = existing.with_tokens(
                access_token=tokens.access_token,
                refresh_token=tokens.refresh_token or existing.refresh_token,
                expires_at=tokens.expires_at,
                now=now,
            ).model_copy(update={"account_email": email})
            saved = self.account_repository.save(updated)
            logger.info(f"Reconnected {provider.value} account {saved.id} for tenant {tenant_id}")
            return saved

        return self.create_account(
            tenant_id=tenant_id,
            provider=provider,
            account_email=email,
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            token_expires_at=tokens.expires_at,
        )
