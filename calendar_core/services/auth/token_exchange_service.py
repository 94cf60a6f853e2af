# calendar_core/services/auth/token_exchange_service.py
"""Vendor OAuth2 token endpoints: authorization_code and refresh_token grants"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional, Tuple

import requests

from calendar_core.config.settings import Settings, get_settings
from calendar_core.exceptions import ApiError, AuthenticationError, ConfigurationError
from calendar_core.schemas import CalendarProvider, OAuth2Tokens
from calendar_core.utils.http import extract_error, send

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OAuthClientConfig:
    """Registered OAuth2 application for one vendor"""
    client_id: str
    client_secret: str
    redirect_uri: str
    authorization_url: str
    token_url: str
    scopes: Tuple[str, ...]
    # Microsoft wants the scope on every token request, Google does not
    send_scope_on_token_request: bool = False


GOOGLE_SCOPES = (
    "https://www.googleapis.com/auth/calendar",
    "https://www.googleapis.com/auth/calendar.events",
    "https://www.googleapis.com/auth/userinfo.email",
)
OUTLOOK_SCOPES = ("Calendars.ReadWrite", "offline_access", "User.Read")


def oauth_client_config(provider: CalendarProvider, settings: Optional[Settings] = None) -> OAuthClientConfig:
    settings = settings or get_settings()

    if provider == CalendarProvider.GOOGLE:
        config = OAuthClientConfig(
            client_id=settings.GOOGLE_CLIENT_ID,
            client_secret=settings.GOOGLE_CLIENT_SECRET,
            redirect_uri=settings.GOOGLE_REDIRECT_URI,
            authorization_url=settings.GOOGLE_AUTH_URI,
            token_url=settings.GOOGLE_TOKEN_URI,
            scopes=GOOGLE_SCOPES,
        )
    elif provider == CalendarProvider.OUTLOOK:
        authority = f"{settings.MICROSOFT_AUTHORITY_BASE}/{settings.MICROSOFT_TENANT_ID}"
        config = OAuthClientConfig(
            client_id=settings.MICROSOFT_CLIENT_ID,
            client_secret=settings.MICROSOFT_CLIENT_SECRET,
            redirect_uri=settings.MICROSOFT_REDIRECT_URI,
            authorization_url=f"{authority}/oauth2/v2.0/authorize",
            token_url=f"{authority}/oauth2/v2.0/token",
            scopes=OUTLOOK_SCOPES,
            send_scope_on_token_request=True,
        )
    else:
        raise ConfigurationError(f"Unsupported calendar provider: {provider}")

    if not config.client_id or not config.client_secret:
        raise ConfigurationError(f"OAuth client credentials for {provider.value} are not configured")
    return config


class TokenExchangeService:
    """Talks to the vendor token endpoint"""

    def __init__(
            self,
            settings: Optional[Settings] = None,
            session: Optional[requests.Session] = None,
            clock: Optional[Callable[[], datetime]] = None
    ):
        self.settings = settings or get_settings()
        self._session = session or requests.Session()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def exchange_code(self, code: str, provider: CalendarProvider) -> OAuth2Tokens:
        """Exchange an authorization code for tokens"""
        logger.info(f"Exchanging authorization code for tokens (provider={provider.value})")
        client = oauth_client_config(provider, self.settings)

        form = {
            "code": code,
            "client_id": client.client_id,
            "client_secret": client.client_secret,
            "redirect_uri": client.redirect_uri,
            "grant_type": "authorization_code",
        }
        if client.send_scope_on_token_request:
            form["scope"] = " ".join(client.scopes)

        tokens = self._post_token(client, form, "exchange authorization code", provider)
        logger.info(f"Obtained {provider.value} tokens, expires at {tokens.expires_at}")
        return tokens

    def refresh_tokens(self, refresh_token: str, provider: CalendarProvider) -> OAuth2Tokens:
        """Renew an access token. Vendors do not always rotate the refresh token;
        when the response omits one the previous refresh token is kept."""
        logger.info(f"Refreshing tokens (provider={provider.value})")
        client = oauth_client_config(provider, self.settings)

        form = {
            "refresh_token": refresh_token,
            "client_id": client.client_id,
            "client_secret": client.client_secret,
            "grant_type": "refresh_token",
        }
        if client.send_scope_on_token_request:
            form["scope"] = " ".join(client.scopes)

        tokens = self._post_token(client, form, "refresh access token", provider)
        if not tokens.refresh_token:
            tokens = tokens.model_copy(update={"refresh_token": refresh_token})
        return tokens

    def _post_token(
            self,
            client: OAuthClientConfig,
            form: Dict[str, str],
            operation: str,
            provider: CalendarProvider
    ) -> OAuth2Tokens:
        response = send(
            self._session,
            "POST",
            client.token_url,
            operation,
            self.settings.HTTP_TIMEOUT_SECONDS,
            data=form,
            headers={"Accept": "application/json"},
        )

        try:
            body = response.json()
        except ValueError:
            body = None

        if not 200 <= response.status_code < 300:
            message, code = extract_error(body)
            detail = message or f"HTTP {response.status_code}"
            logger.error(f"{provider.value} token endpoint rejected request ({operation}): {detail}")
            if 400 <= response.status_code < 500:
                # invalid_grant, revoked consent, bad client...: the connection needs re-authorization
                raise AuthenticationError(f"Could not {operation} with {provider.value}: {detail}")
            raise ApiError(
                f"Could not {operation} with {provider.value}: {detail}",
                status_code=response.status_code,
                error_code=code,
            )

        if not isinstance(body, dict) or not body.get("access_token"):
            raise AuthenticationError(f"{provider.value} token response did not include an access token")

        expires_in = body.get("expires_in")
        expires_at = None
        if expires_in is not None:
            try:
                expires_at = self._clock() + timedelta(seconds=int(expires_in))
            except (TypeError, ValueError):
                logger.warning(f"Ignoring non-numeric expires_in from {provider.value}: {expires_in!r}")

        return OAuth2Tokens(
            access_token=body["access_token"],
            refresh_token=body.get("refresh_token"),
            expires_at=expires_at,
        )
