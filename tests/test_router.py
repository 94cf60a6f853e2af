"""Tests for vendor client selection."""

from unittest.mock import MagicMock

import pytest

from calendar_core.exceptions import ConfigurationError
from calendar_core.schemas import CalendarProvider
from calendar_core.services.auth.token_service import TokenRefreshService
from calendar_core.services.calendar.google_calendar_service import GoogleCalendarService
from calendar_core.services.calendar.outlook_service import OutlookCalendarService
from calendar_core.services.calendar.router import CalendarServiceRouter


@pytest.fixture
def router():
    return CalendarServiceRouter(MagicMock(spec=TokenRefreshService))


class TestCalendarServiceRouter:
    def test_enum_lookup(self, router):
        assert isinstance(router.get_calendar_service(CalendarProvider.GOOGLE), GoogleCalendarService)
        assert isinstance(router.get_calendar_service(CalendarProvider.OUTLOOK), OutlookCalendarService)

    @pytest.mark.parametrize("tag", ["google", "GOOGLE", " Google "])
    def test_string_lookup_is_case_insensitive(self, router, tag):
        assert isinstance(router.get_calendar_service(tag), GoogleCalendarService)

    def test_unknown_provider(self, router):
        with pytest.raises(ConfigurationError):
            router.get_calendar_service("icloud")

    def test_for_account(self, router, make_account):
        service = router.for_account(make_account(provider=CalendarProvider.OUTLOOK))
        assert service.provider == CalendarProvider.OUTLOOK

    def test_clients_share_one_session(self, router):
        google = router.get_calendar_service(CalendarProvider.GOOGLE)
        outlook = router.get_calendar_service(CalendarProvider.OUTLOOK)
        assert google._session is outlook._session

    def test_missing_registration(self):
        router = CalendarServiceRouter(MagicMock(), services={})
        with pytest.raises(ConfigurationError):
            router.get_calendar_service(CalendarProvider.GOOGLE)
