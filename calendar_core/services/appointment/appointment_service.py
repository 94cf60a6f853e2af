# calendar_core/services/appointment/appointment_service.py
import logging
from datetime import datetime, timedelta
from typing import Optional

from calendar_core.config.settings import get_settings
from calendar_core.exceptions import ConfigurationError, SlotUnavailableError
from calendar_core.repositories import AccountRepository
from calendar_core.schemas import (
    AppointmentConfirmation,
    CalendarEvent,
    CalendarProvider,
    ProviderAccount,
)
from calendar_core.services.availability.availability_service import AppointmentAvailabilityService
from calendar_core.services.calendar.router import CalendarServiceRouter

logger = logging.getLogger(__name__)

DEFAULT_SUMMARY = "Appointment booked from chat"

# Google wins when a tenant has both calendars connected
PROVIDER_PREFERENCE = (CalendarProvider.GOOGLE, CalendarProvider.OUTLOOK)


class AppointmentService:
    """Books a conversation's requested time into the tenant's connected calendar"""

    def __init__(
            self,
            account_repository: AccountRepository,
            availability_service: AppointmentAvailabilityService,
            router: CalendarServiceRouter,
            duration_minutes: Optional[int] = None
    ):
        self.account_repository = account_repository
        self.availability_service = availability_service
        self.router = router
        self.duration = timedelta(
            minutes=duration_minutes or get_settings().DEFAULT_APPOINTMENT_MINUTES
        )

    def resolve_account(self, tenant_id: str) -> ProviderAccount:
        for provider in PROVIDER_PREFERENCE:
            account = self.account_repository.find_active_by_tenant_and_provider(tenant_id, provider)
            if account is not None:
                return account
        raise ConfigurationError(f"No calendar account configured for tenant {tenant_id}")

    def book_appointment(
            self,
            tenant_id: str,
            contact_id: str,
            date_time: datetime,
            description: Optional[str] = None
    ) -> AppointmentConfirmation:
        """
        Create the calendar event for ``date_time`` (naive, account-local).

        Raises ConfigurationError when the tenant has no active calendar and
        SlotUnavailableError when the time is not one of the day's free slots.
        Provider failures while creating the event propagate unchanged.
        """
        account = self.resolve_account(tenant_id)
        if date_time.tzinfo is not None:
            date_time = date_time.astimezone(account.zone).replace(tzinfo=None)

        if not self.availability_service.is_slot_available(account, date_time):
            logger.info(f"Rejected booking for tenant {tenant_id} at {date_time}: slot not available")
            raise SlotUnavailableError(f"{date_time.isoformat()} is not an available slot for tenant {tenant_id}")

        tz_name = account.timezone
        start = date_time.replace(tzinfo=account.zone)
        event = CalendarEvent(
            summary=description or DEFAULT_SUMMARY,
            description=description,
            start_time=start,
            end_time=start + self.duration,
            time_zone=tz_name,
        )

        service = self.router.for_account(account)
        created = service.create_event(account, event)
        logger.info(
            f"Booked appointment {created.event_id} for tenant {tenant_id}, "
            f"contact {contact_id} at {date_time} ({account.provider.value})"
        )

        return AppointmentConfirmation(
            event_id=created.event_id,
            date_time=date_time,
            calendar_link=created.html_link or None,
            summary=created.summary or event.summary,
            confirmation_text=self._confirmation_text(date_time, created.html_link),
        )

    @staticmethod
    def _confirmation_text(date_time: datetime, link: Optional[str]) -> str:
        hour = date_time.hour % 12 or 12
        suffix = "AM" if date_time.hour < 12 else "PM"
        text = (
            f"✅ Your appointment is confirmed for {date_time:%A, %B} {date_time.day} "
            f"at {hour}:{date_time.minute:02d} {suffix}."
        )
        if link:
            text += f"\n{link}"
        return text
