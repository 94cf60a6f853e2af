# calendar_core/schemas/calendar_events.py
from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List
from datetime import datetime
from enum import Enum


class CalendarProvider(str, Enum):
    GOOGLE = "google"
    OUTLOOK = "outlook"

    @classmethod
    def parse(cls, value: str) -> "CalendarProvider":
        """Accept 'google', 'GOOGLE', 'Outlook'..."""
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ValueError(f"Unsupported calendar provider: {value}")


class TimeSlot(BaseModel):
    """Half-open [start_time, end_time) interval"""
    model_config = ConfigDict(frozen=True)

    start_time: datetime = Field(..., description="Slot start time (inclusive)")
    end_time: datetime = Field(..., description="Slot end time (exclusive)")

    @field_validator("end_time")
    @classmethod
    def end_not_before_start(cls, v: datetime, info) -> datetime:
        start_time = info.data.get("start_time")
        if start_time and v < start_time:
            raise ValueError("End time must not be before start time")
        return v

    def overlaps(self, other: "TimeSlot") -> bool:
        return self.start_time < other.end_time and self.end_time > other.start_time


class CalendarEvent(BaseModel):
    """Vendor-neutral event to create or update"""
    summary: str = Field(..., description="Event title")
    description: Optional[str] = Field(None, description="Event body")
    start_time: datetime = Field(..., description="Start instant (timezone aware)")
    end_time: datetime = Field(..., description="End instant (timezone aware)")
    time_zone: str = Field("UTC", description="IANA timezone the event is expressed in")
    location: Optional[str] = Field(None)
    attendee_emails: List[str] = Field(default_factory=list)
    is_online_meeting: bool = Field(False)
    online_meeting_provider: Optional[str] = Field(None, description="Outlook only, e.g. teamsForBusiness")

    @field_validator("start_time", "end_time")
    @classmethod
    def must_be_aware(cls, v: datetime) -> datetime:
        if v.tzinfo is None or v.utcoffset() is None:
            raise ValueError("Event times must be timezone aware")
        return v

    @field_validator("end_time")
    @classmethod
    def end_after_start(cls, v: datetime, info) -> datetime:
        start_time = info.data.get("start_time")
        if start_time and v <= start_time:
            raise ValueError("End time must be after start time")
        return v


class CalendarEventResponse(BaseModel):
    """Event as stored by the provider"""
    event_id: str
    summary: Optional[str] = None
    description: str = ""
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    time_zone: Optional[str] = None
    location: str = ""
    attendee_emails: List[str] = Field(default_factory=list)
    organizer_email: str = ""
    status: Optional[str] = None
    html_link: str = ""
    is_online_meeting: bool = False
    online_meeting_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class FreeBusyQuery(BaseModel):
    """Time window for a free/busy lookup"""
    start_time: datetime = Field(..., description="Window start (timezone aware)")
    end_time: datetime = Field(..., description="Window end (timezone aware)")
    time_zone: str = Field("UTC", description="Timezone the caller reasons in")


class FreeBusyResponse(BaseModel):
    """Busy intervals reported by the provider and their complement inside the window"""
    calendar_id: Optional[str] = None
    start_time: datetime
    end_time: datetime
    busy_slots: List[TimeSlot] = Field(default_factory=list)
    free_slots: List[TimeSlot] = Field(default_factory=list)
