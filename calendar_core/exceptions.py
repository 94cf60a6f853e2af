"""
Error taxonomy for the calendar integration core.

Every error carries a ``user_message`` that the chat surface can show as-is,
while ``str(exc)`` keeps the operator-facing detail.
"""
from typing import Optional


class CalendarError(Exception):
    """Base class for all calendar integration errors"""

    user_message = "Something went wrong with the calendar."

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        if cause is not None:
            self.__cause__ = cause


class AuthenticationError(CalendarError):
    """Expired, invalid or missing credentials; the account needs re-authorization"""

    user_message = "Your calendar connection needs to be re-authorized. Please reconnect your calendar."


class ApiError(CalendarError):
    """Any non-authentication failure talking to a calendar vendor"""

    user_message = "The calendar provider returned an error. Please try again later."

    def __init__(
            self,
            message: str,
            status_code: Optional[int] = None,
            error_code: Optional[str] = None,
            transient: bool = False,
            cause: Optional[BaseException] = None
    ):
        super().__init__(message, cause)
        self.status_code = status_code
        self.error_code = error_code
        self.transient = transient

    def __str__(self) -> str:
        parts = [self.message]
        if self.status_code is not None:
            parts.append(f"status={self.status_code}")
        if self.error_code:
            parts.append(f"code={self.error_code}")
        return " ".join(parts)


class InvalidStateError(CalendarError):
    """OAuth2 callback with an unknown, expired or already used state token"""

    user_message = "The authorization expired. Please restart the calendar connection flow."


class ConfigurationError(CalendarError):
    """Missing account, unsupported vendor or invalid local configuration"""

    user_message = "No calendar is configured for this business."


class SlotUnavailableError(CalendarError):
    """The requested time is not one of the bookable slots"""

    user_message = (
        "The selected time is not available or is outside the configured working hours."
    )
