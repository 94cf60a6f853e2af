from .base import Base
from .calendar_provider_account import CalendarProviderAccountRecord

__all__ = [
    "Base",
    "CalendarProviderAccountRecord",
]
