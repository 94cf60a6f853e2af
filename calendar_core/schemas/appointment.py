# calendar_core/schemas/appointment.py
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class AppointmentConfirmation(BaseModel):
    """Result of booking an appointment from a conversation"""
    event_id: str = Field(..., description="Provider event id")
    date_time: datetime = Field(..., description="Booked local date-time in the account timezone")
    calendar_link: Optional[str] = Field(None, description="Link to the event in the provider UI")
    summary: Optional[str] = None
    confirmation_text: str = Field(..., description="Message shown to the contact")
