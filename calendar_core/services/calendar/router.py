# calendar_core/services/calendar/router.py
import logging
from typing import Dict, Optional

import requests

from calendar_core.exceptions import ConfigurationError
from calendar_core.schemas import CalendarProvider, ProviderAccount
from calendar_core.services.auth.token_service import TokenRefreshService
from calendar_core.services.calendar.base import CalendarService
from calendar_core.services.calendar.google_calendar_service import GoogleCalendarService
from calendar_core.services.calendar.outlook_service import OutlookCalendarService

logger = logging.getLogger(__name__)


class CalendarServiceRouter:
    """Picks the vendor client for an account's provider tag"""

    def __init__(
            self,
            token_service: TokenRefreshService,
            session: Optional[requests.Session] = None,
            services: Optional[Dict[CalendarProvider, CalendarService]] = None
    ):
        if services is None:
            session = session or requests.Session()
            services = {
                CalendarProvider.GOOGLE: GoogleCalendarService(token_service, session=session),
                CalendarProvider.OUTLOOK: OutlookCalendarService(token_service, session=session),
            }
        self._services = dict(services)

    def get_calendar_service(self, provider) -> CalendarService:
        if not isinstance(provider, CalendarProvider):
            try:
                provider = CalendarProvider.parse(str(provider))
            except ValueError as exc:
                raise ConfigurationError(str(exc), cause=exc)

        service = self._services.get(provider)
        if service is None:
            raise ConfigurationError(f"No calendar client registered for provider {provider.value}")
        return service

    def for_account(self, account: ProviderAccount) -> CalendarService:
        return self.get_calendar_service(account.provider)
