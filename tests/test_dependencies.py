"""Tests for the service graph wiring."""

from datetime import timedelta

from calendar_core.config.settings import Settings
from calendar_core.dependencies import build_calendar_core
from calendar_core.schemas import CalendarProvider
from calendar_core.services.auth.state_store import InMemoryStateStore


def test_build_with_in_memory_backends(account_repository, clock):
    core = build_calendar_core(
        settings=Settings(AVAILABILITY_FAIL_OPEN=False, DEFAULT_APPOINTMENT_MINUTES=45),
        account_repository=account_repository,
        state_store=InMemoryStateStore(clock=clock),
        clock=clock,
    )

    assert core.account_repository is account_repository
    assert core.token_service.account_repository is account_repository
    assert core.availability_service.fail_open is False
    assert core.appointment_service.duration == timedelta(minutes=45)
    assert core.router.get_calendar_service(CalendarProvider.GOOGLE).token_service is core.token_service
    assert core.account_service.oauth_service is core.oauth_service


def test_authorization_round_trip(account_repository, clock):
    core = build_calendar_core(
        account_repository=account_repository,
        state_store=InMemoryStateStore(clock=clock),
        clock=clock,
    )

    url = core.oauth_service.begin_authorization("tenant-9", CalendarProvider.OUTLOOK)

    assert url.url.startswith("https://login.microsoftonline.com/common/oauth2/v2.0/authorize?")
    assert core.oauth_service.complete_authorization(url.state).tenant_id == "tenant-9"


def test_default_repository_uses_configured_database(clock):
    from calendar_core.config.database import SessionLocal, engine

    core = build_calendar_core(state_store=InMemoryStateStore(clock=clock), clock=clock)

    assert core.account_repository._session_factory is SessionLocal
    assert str(engine.url) == "sqlite://"
