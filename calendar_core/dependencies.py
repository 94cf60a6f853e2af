# ============================================================================
# FILE: calendar_core/dependencies.py
# Wiring of the calendar core services
# ============================================================================
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

import requests
from sqlalchemy.orm import sessionmaker

from calendar_core.config.settings import Settings, get_settings
from calendar_core.repositories import AccountRepository, SqlAlchemyAccountRepository
from calendar_core.services.account.account_service import AccountService
from calendar_core.services.appointment.appointment_service import AppointmentService
from calendar_core.services.auth.oauth_service import OAuth2Service
from calendar_core.services.auth.state_store import RedisStateStore, StateStore
from calendar_core.services.auth.token_exchange_service import TokenExchangeService
from calendar_core.services.auth.token_service import TokenRefreshService
from calendar_core.services.auth.user_info_service import UserInfoService
from calendar_core.services.availability.availability_config_service import AvailabilityConfigService
from calendar_core.services.availability.availability_service import AppointmentAvailabilityService
from calendar_core.services.calendar.router import CalendarServiceRouter


@dataclass
class CalendarCore:
    """Every service of the calendar core, sharing one repository and HTTP session"""
    account_repository: AccountRepository
    token_exchange: TokenExchangeService
    token_service: TokenRefreshService
    oauth_service: OAuth2Service
    user_info_service: UserInfoService
    router: CalendarServiceRouter
    availability_config_service: AvailabilityConfigService
    availability_service: AppointmentAvailabilityService
    appointment_service: AppointmentService
    account_service: AccountService


def build_calendar_core(
        settings: Optional[Settings] = None,
        account_repository: Optional[AccountRepository] = None,
        session_factory: Optional[sessionmaker] = None,
        state_store: Optional[StateStore] = None,
        http_session: Optional[requests.Session] = None,
        clock: Optional[Callable[[], datetime]] = None
) -> CalendarCore:
    """
    Build the service graph.

    Defaults: PostgreSQL via ``SessionLocal`` for accounts and Redis for the
    OAuth state. Tests pass an in-memory repository / state store instead.
    """
    settings = settings or get_settings()
    http_session = http_session or requests.Session()

    if account_repository is None:
        if session_factory is None:
            from calendar_core.config.database import SessionLocal
            session_factory = SessionLocal
        account_repository = SqlAlchemyAccountRepository(session_factory, clock=clock)

    state_store = state_store or RedisStateStore()

    token_exchange = TokenExchangeService(settings=settings, session=http_session, clock=clock)
    token_service = TokenRefreshService(account_repository, token_exchange, clock=clock)
    oauth_service = OAuth2Service(state_store, token_exchange, settings=settings)
    user_info_service = UserInfoService(settings=settings, session=http_session)
    router = CalendarServiceRouter(token_service, session=http_session)
    availability_config_service = AvailabilityConfigService(account_repository, clock=clock)
    availability_service = AppointmentAvailabilityService(
        availability_config_service,
        router,
        fail_open=settings.AVAILABILITY_FAIL_OPEN,
    )

    return CalendarCore(
        account_repository=account_repository,
        token_exchange=token_exchange,
        token_service=token_service,
        oauth_service=oauth_service,
        user_info_service=user_info_service,
        router=router,
        availability_config_service=availability_config_service,
        availability_service=availability_service,
        appointment_service=AppointmentService(
            account_repository,
            availability_service,
            router,
            duration_minutes=settings.DEFAULT_APPOINTMENT_MINUTES,
        ),
        account_service=AccountService(
            account_repository,
            oauth_service=oauth_service,
            user_info_service=user_info_service,
            clock=clock,
        ),
    )
