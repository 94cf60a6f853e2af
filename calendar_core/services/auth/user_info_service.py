# calendar_core/services/auth/user_info_service.py
import logging
from typing import Optional

import requests

from calendar_core.config.settings import Settings, get_settings
from calendar_core.exceptions import ApiError, ConfigurationError
from calendar_core.schemas import CalendarProvider
from calendar_core.utils.http import raise_for_response, send

logger = logging.getLogger(__name__)

GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"
GRAPH_ME_URL = "https://graph.microsoft.com/v1.0/me"


class UserInfoService:
    """Looks up the email address behind a freshly issued access token"""

    def __init__(self, settings: Optional[Settings] = None, session: Optional[requests.Session] = None):
        self.settings = settings or get_settings()
        self._session = session or requests.Session()

    def get_user_email(self, access_token: str, provider: CalendarProvider) -> str:
        if provider == CalendarProvider.GOOGLE:
            url, fields = GOOGLE_USERINFO_URL, ("email",)
        elif provider == CalendarProvider.OUTLOOK:
            # mail is empty for some personal accounts
            url, fields = GRAPH_ME_URL, ("mail", "userPrincipalName")
        else:
            raise ConfigurationError(f"Unsupported calendar provider: {provider}")

        operation = f"fetch {provider.value} user profile"
        response = send(
            self._session,
            "GET",
            url,
            operation,
            self.settings.HTTP_TIMEOUT_SECONDS,
            headers={"Authorization": f"Bearer {access_token}", "Accept": "application/json"},
        )
        raise_for_response(response, operation)

        try:
            body = response.json()
        except ValueError as exc:
            raise ApiError(f"Malformed response while trying to {operation}", cause=exc)

        for field in fields:
            email = body.get(field) if isinstance(body, dict) else None
            if email:
                logger.info(f"Resolved {provider.value} account email from '{field}'")
                return email
        raise ApiError(f"{provider.value} user profile did not include an email address")
