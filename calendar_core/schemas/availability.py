# calendar_core/schemas/availability.py
"""
Availability rules stored under ``ProviderAccount.config["availability"]``.

The blob keeps the camelCase keys the dashboard writes (``slotDurationMinutes``,
``workingHours``, ``startTime`` ...); times are ``HH:MM`` and dates ISO
``YYYY-MM-DD``.
"""
from __future__ import annotations

import datetime as dt
from datetime import date, time
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, model_validator

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class Break(_CamelModel):
    start_time: time = Field(..., alias="startTime")
    end_time: time = Field(..., alias="endTime")
    description: str = ""

    @field_serializer("start_time", "end_time")
    def _hhmm(self, value: time) -> str:
        return value.strftime("%H:%M")

    def contains(self, moment: time) -> bool:
        """Break start is inclusive, break end exclusive"""
        return self.start_time <= moment < self.end_time


class DaySchedule(_CamelModel):
    enabled: bool = False
    start_time: Optional[time] = Field(None, alias="startTime")
    end_time: Optional[time] = Field(None, alias="endTime")
    breaks: List[Break] = Field(default_factory=list)

    @field_serializer("start_time", "end_time")
    def _hhmm(self, value: Optional[time]) -> Optional[str]:
        return value.strftime("%H:%M") if value is not None else None

    @model_validator(mode="after")
    def _check_order(self) -> "DaySchedule":
        if self.start_time and self.end_time and self.end_time <= self.start_time:
            raise ValueError("endTime must be after startTime")
        return self

    @property
    def is_bookable(self) -> bool:
        return self.enabled and self.start_time is not None and self.end_time is not None


class Holiday(_CamelModel):
    date: dt.date
    description: str = ""


class BlockedSlot(_CamelModel):
    date: dt.date
    start_time: time = Field(..., alias="startTime")
    end_time: time = Field(..., alias="endTime")
    description: str = ""

    @field_serializer("start_time", "end_time")
    def _hhmm(self, value: time) -> str:
        return value.strftime("%H:%M")


class AvailabilityConfig(_CamelModel):
    enabled: bool = True
    slot_duration_minutes: int = Field(30, alias="slotDurationMinutes", gt=0, le=24 * 60)
    advance_booking_days: int = Field(30, alias="advanceBookingDays", ge=0)
    working_hours: Dict[str, DaySchedule] = Field(default_factory=dict, alias="workingHours")
    holidays: List[Holiday] = Field(default_factory=list)
    blocked_slots: List[BlockedSlot] = Field(default_factory=list, alias="blockedSlots")

    @classmethod
    def default(cls) -> "AvailabilityConfig":
        """Monday to Friday 08:00-18:00, 30 minute slots"""
        office = DaySchedule(enabled=True, start_time=time(8, 0), end_time=time(18, 0))
        working_hours = {day: office.model_copy() for day in WEEKDAYS[:5]}
        working_hours.update({day: DaySchedule(enabled=False) for day in WEEKDAYS[5:]})
        return cls(
            enabled=True,
            slot_duration_minutes=30,
            advance_booking_days=30,
            working_hours=working_hours,
        )

    def schedule_for(self, day: date) -> Optional[DaySchedule]:
        return self.working_hours.get(WEEKDAYS[day.weekday()])

    def is_holiday(self, day: date) -> bool:
        return any(holiday.date == day for holiday in self.holidays)

    def blocked_on(self, day: date) -> List[BlockedSlot]:
        return [blocked for blocked in self.blocked_slots if blocked.date == day]

    def to_config_blob(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")
