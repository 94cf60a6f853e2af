# calendar_core/services/availability/availability_config_service.py
import logging
import uuid
from datetime import datetime, timezone
from typing import Callable, Optional

from pydantic import ValidationError

from calendar_core.exceptions import ConfigurationError
from calendar_core.repositories import AccountRepository
from calendar_core.schemas import AvailabilityConfig, ProviderAccount

logger = logging.getLogger(__name__)

AVAILABILITY_KEY = "availability"


class AvailabilityConfigService:
    """Reads and writes the availability rules kept in an account's config map"""

    def __init__(
            self,
            account_repository: AccountRepository,
            clock: Optional[Callable[[], datetime]] = None
    ):
        self.account_repository = account_repository
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def get_availability_config(self, account: ProviderAccount) -> AvailabilityConfig:
        """Parsed rules for ``account``; Mon-Fri 08:00-18:00 when none are stored"""
        blob = (account.config or {}).get(AVAILABILITY_KEY)
        if not blob:
            return AvailabilityConfig.default()
        try:
            return AvailabilityConfig.model_validate(blob)
        except ValidationError as exc:
            logger.error(f"Invalid availability config on account {account.id}: {exc}")
            raise ConfigurationError(f"Invalid availability configuration for account {account.id}", cause=exc)

    def get_availability_config_by_id(self, account_id: uuid.UUID) -> AvailabilityConfig:
        return self.get_availability_config(self._load(account_id))

    def update_availability_config(self, account_id: uuid.UUID, config: AvailabilityConfig) -> ProviderAccount:
        account = self._load(account_id)
        merged = dict(account.config or {})
        merged[AVAILABILITY_KEY] = config.to_config_blob()
        saved = self.account_repository.save(account.with_config(merged, now=self._clock()))
        logger.info(f"Updated availability config for account {account_id}")
        return saved

    def _load(self, account_id: uuid.UUID) -> ProviderAccount:
        account = self.account_repository.find_by_id(account_id)
        if account is None:
            raise ConfigurationError(f"Calendar account {account_id} not found")
        return account
