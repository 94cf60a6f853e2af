from .calendar_events import (
    CalendarProvider,
    TimeSlot,
    CalendarEvent,
    CalendarEventResponse,
    FreeBusyQuery,
    FreeBusyResponse,
)
from .provider_account import (
    DEFAULT_TIMEZONE,
    PRIMARY_CALENDAR_ID,
    ProviderAccount,
    ProviderAccountSummary,
    OAuth2Tokens,
    OAuth2AuthState,
    AuthorizationUrl,
)
from .appointment import AppointmentConfirmation
from .availability import AvailabilityConfig, DaySchedule, Break, Holiday, BlockedSlot, WEEKDAYS

__all__ = [
    "CalendarProvider",
    "TimeSlot",
    "CalendarEvent",
    "CalendarEventResponse",
    "FreeBusyQuery",
    "FreeBusyResponse",
    "DEFAULT_TIMEZONE",
    "PRIMARY_CALENDAR_ID",
    "ProviderAccount",
    "ProviderAccountSummary",
    "OAuth2Tokens",
    "OAuth2AuthState",
    "AuthorizationUrl",
    "AppointmentConfirmation",
    "AvailabilityConfig",
    "DaySchedule",
    "Break",
    "Holiday",
    "BlockedSlot",
    "WEEKDAYS",
]
