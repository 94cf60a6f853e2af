# ===== calendar_core/services/availability/availability_service.py =====
from typing import List, Optional
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo
import logging

from calendar_core.config.settings import get_settings
from calendar_core.schemas import (
    BlockedSlot,
    DaySchedule,
    FreeBusyQuery,
    ProviderAccount,
    TimeSlot,
)
from calendar_core.services.availability.availability_config_service import AvailabilityConfigService
from calendar_core.services.calendar.router import CalendarServiceRouter
from calendar_core.services.monitoring.calendar_metrics import metrics

logger = logging.getLogger(__name__)


class AppointmentAvailabilityService:
    """Bookable slots for one account and day: working-hour rules minus live calendar conflicts"""

    def __init__(
            self,
            config_service: AvailabilityConfigService,
            router: CalendarServiceRouter,
            fail_open: Optional[bool] = None
    ):
        self.config_service = config_service
        self.router = router
        self.fail_open = get_settings().AVAILABILITY_FAIL_OPEN if fail_open is None else fail_open

    def get_available_slots(self, account: ProviderAccount, day: date) -> List[TimeSlot]:
        """
        Slots for ``day`` as naive local datetimes in the account's timezone.

        1. Disabled config, disabled weekday or holiday -> no slots
        2. Theoretical slots from the day schedule, minus breaks
        3. Minus busy intervals reported by the calendar provider
        4. Minus manually blocked intervals on that date
        """
        config = self.config_service.get_availability_config(account)
        if not config.enabled:
            logger.warning(f"Availability disabled for account {account.id}")
            return []

        schedule = config.schedule_for(day)
        if schedule is None or not schedule.is_bookable:
            return []

        if config.is_holiday(day):
            logger.info(f"{day} is a holiday for account {account.id}")
            return []

        theoretical = self._generate_theoretical_slots(day, schedule, config.slot_duration_minutes)
        busy_slots = self._get_busy_slots(account, day)
        blocked = config.blocked_on(day)

        available = [
            slot for slot in theoretical
            if not any(self._conflicts_with_busy(slot, busy) for busy in busy_slots)
            and not any(self._is_blocked(slot, block) for block in blocked)
        ]
        logger.info(f"Found {len(available)} available slots on {day} for account {account.id}")
        return available

    def is_slot_available(self, account: ProviderAccount, moment: datetime) -> bool:
        """True only when ``moment`` is exactly the start of an available slot"""
        if moment.tzinfo is not None:
            moment = moment.astimezone(account.zone).replace(tzinfo=None)
        return any(slot.start_time == moment for slot in self.get_available_slots(account, moment.date()))

    @staticmethod
    def format_slots_message(slots: List[TimeSlot]) -> str:
        """Chat-ready list of slot start times"""
        if not slots:
            return "❌ No times are available on this date. Please choose another day."

        lines = ["✅ Available times:", ""]
        for start in sorted({slot.start_time.time() for slot in slots}):
            hour = start.hour % 12 or 12
            suffix = "AM" if start.hour < 12 else "PM"
            lines.append(f"• {hour}:{start.minute:02d} {suffix}")
        lines.append("")
        lines.append("Reply with the time you prefer.")
        return "\n".join(lines)

    @staticmethod
    def _generate_theoretical_slots(day: date, schedule: DaySchedule, duration_minutes: int) -> List[TimeSlot]:
        step = timedelta(minutes=duration_minutes)
        current = datetime.combine(day, schedule.start_time)
        end = datetime.combine(day, schedule.end_time)

        slots = []
        while current < end:
            slot_end = current + step
            if not any(b.contains(current.time()) for b in schedule.breaks):
                slots.append(TimeSlot(start_time=current, end_time=slot_end))
            current = slot_end
        return slots

    def _get_busy_slots(self, account: ProviderAccount, day: date) -> List[TimeSlot]:
        """Busy intervals for the whole local day, converted to naive local time"""
        tz_name = account.timezone
        tz = account.zone
        start = datetime.combine(day, datetime.min.time(), tzinfo=tz)
        end = datetime.combine(day + timedelta(days=1), datetime.min.time(), tzinfo=tz)

        try:
            service = self.router.for_account(account)
            response = service.get_free_busy(
                account,
                FreeBusyQuery(start_time=start, end_time=end, time_zone=tz_name)
            )
        except Exception as e:
            if not self.fail_open:
                raise
            metrics.record_degraded(account.provider.value, "get_free_busy")
            logger.error(
                f"Free/busy lookup failed for account {account.id} on {day}, "
                f"assuming no conflicts: {e}"
            )
            return []

        return [
            TimeSlot(start_time=_to_local(busy.start_time, tz), end_time=_to_local(busy.end_time, tz))
            for busy in response.busy_slots
        ]

    @staticmethod
    def _conflicts_with_busy(slot: TimeSlot, busy: TimeSlot) -> bool:
        # busy blocks only: a slot starting the moment one ends counts as taken,
        # a slot ending the moment one starts stays free; blocked slots use plain overlap
        return slot.overlaps(busy) or slot.start_time == busy.end_time

    @staticmethod
    def _is_blocked(slot: TimeSlot, block: BlockedSlot) -> bool:
        block_start = datetime.combine(block.date, block.start_time)
        block_end = datetime.combine(block.date, block.end_time)
        return slot.start_time < block_end and slot.end_time > block_start


def _to_local(moment: datetime, tz: ZoneInfo) -> datetime:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(tz).replace(tzinfo=None)
