# calendar_core/services/auth/token_service.py
import logging
import threading
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional

from calendar_core.config.settings import get_settings
from calendar_core.exceptions import AuthenticationError, CalendarError
from calendar_core.repositories import AccountRepository
from calendar_core.schemas import ProviderAccount
from calendar_core.services.auth.token_exchange_service import TokenExchangeService
from calendar_core.services.monitoring.calendar_metrics import metrics

logger = logging.getLogger(__name__)


class TokenRefreshService:
    """
    Keeps provider accounts supplied with a usable access token.

    Refreshes for the same account are serialized: a caller that waited on
    the lock re-reads the stored account and reuses a token another caller
    already renewed instead of refreshing twice.
    """

    def __init__(
            self,
            account_repository: AccountRepository,
            token_exchange: TokenExchangeService,
            clock: Optional[Callable[[], datetime]] = None,
            skew_minutes: Optional[int] = None
    ):
        self.account_repository = account_repository
        self.token_exchange = token_exchange
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        if skew_minutes is None:
            skew_minutes = get_settings().TOKEN_REFRESH_SKEW_MINUTES
        self.skew = timedelta(minutes=skew_minutes)
        self._locks: Dict[uuid.UUID, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def is_stale(self, account: ProviderAccount) -> bool:
        return account.is_token_expired(self._clock(), self.skew)

    def ensure_valid(self, account: ProviderAccount) -> ProviderAccount:
        """Return the account unchanged, or refreshed and persisted when its token is near expiry"""
        if not self.is_stale(account):
            return account
        logger.info(f"Access token for account {account.id} expires at {account.token_expires_at}, refreshing")
        return self._refresh(account, force=False)

    def force_refresh(self, account: ProviderAccount) -> ProviderAccount:
        """Refresh regardless of expiry, used after the vendor rejected the token"""
        logger.info(f"Forcing token refresh for account {account.id}")
        return self._refresh(account, force=True)

    def _lock_for(self, account_id: uuid.UUID) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(account_id)
            if lock is None:
                lock = self._locks[account_id] = threading.Lock()
            return lock

    def _refresh(self, account: ProviderAccount, force: bool) -> ProviderAccount:
        provider = account.provider.value

        with self._lock_for(account.id):
            stored = self.account_repository.find_by_id(account.id) or account
            if stored.access_token != account.access_token and not self.is_stale(stored):
                logger.info(f"Account {account.id} was refreshed concurrently, reusing stored token")
                return stored
            if not force and not self.is_stale(stored):
                return stored

            if not stored.refresh_token:
                metrics.record_token_refresh(provider, succeeded=False)
                raise AuthenticationError(
                    f"Account {stored.id} has no refresh token; the {provider} calendar must be reconnected"
                )

            try:
                tokens = self.token_exchange.refresh_tokens(stored.refresh_token, stored.provider)
            except AuthenticationError:
                metrics.record_token_refresh(provider, succeeded=False)
                raise
            except CalendarError as exc:
                metrics.record_token_refresh(provider, succeeded=False)
                transient = getattr(exc, "transient", False)
                logger.error(f"Token refresh for account {stored.id} failed (transient={transient}): {exc}")
                raise AuthenticationError(
                    f"Could not refresh the {provider} access token for account {stored.id}: {exc}",
                    cause=exc,
                )

            # config may have changed while the token endpoint was answering
            latest = self.account_repository.find_by_id(stored.id) or stored
            refreshed = latest.with_tokens(
                access_token=tokens.access_token,
                refresh_token=tokens.refresh_token or latest.refresh_token,
                expires_at=tokens.expires_at,
                now=self._clock(),
            )
            saved = self.account_repository.save(refreshed)
            metrics.record_token_refresh(provider, succeeded=True)
            logger.info(f"Refreshed access token for account {saved.id}, new expiry {saved.token_expires_at}")
            return saved
