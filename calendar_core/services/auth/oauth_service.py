# calendar_core/services/auth/oauth_service.py
import logging
import secrets
from typing import Optional

import requests

from calendar_core.config.settings import Settings, get_settings
from calendar_core.exceptions import ConfigurationError, InvalidStateError
from calendar_core.schemas import AuthorizationUrl, CalendarProvider, OAuth2AuthState, OAuth2Tokens
from calendar_core.services.auth.state_store import StateStore
from calendar_core.services.auth.token_exchange_service import TokenExchangeService, oauth_client_config

logger = logging.getLogger(__name__)


class OAuth2Service:
    """Authorization-code flow: authorization URL, single-use state and code exchange"""

    def __init__(
            self,
            state_store: StateStore,
            token_exchange: TokenExchangeService,
            settings: Optional[Settings] = None
    ):
        self.state_store = state_store
        self.token_exchange = token_exchange
        self.settings = settings or get_settings()

    def begin_authorization(self, tenant_id: str, provider: CalendarProvider) -> AuthorizationUrl:
        """Step 1: consent URL bound to a fresh state token"""
        if not tenant_id:
            raise ConfigurationError("tenant_id is required to start calendar authorization")
        client = oauth_client_config(provider, self.settings)

        params = {
            "client_id": client.client_id,
            "redirect_uri": client.redirect_uri,
            "response_type": "code",
            "scope": " ".join(client.scopes),
        }
        if provider == CalendarProvider.GOOGLE:
            # offline + consent so Google hands out a refresh token every time
            params["access_type"] = "offline"
            params["prompt"] = "consent"
        else:
            params["response_mode"] = "query"

        state = secrets.token_urlsafe(32)
        params["state"] = state

        self.state_store.put(
            state,
            OAuth2AuthState(tenant_id=tenant_id, provider=provider).model_dump(mode="json"),
            self.settings.OAUTH_STATE_TTL_SECONDS,
        )

        url = requests.Request("GET", client.authorization_url, params=params).prepare().url
        logger.info(f"Generated {provider.value} authorization URL for tenant {tenant_id}")
        return AuthorizationUrl(url=url, state=state)

    def complete_authorization(self, state: str) -> OAuth2AuthState:
        """Consume a state token; it can be used exactly once"""
        value = self.state_store.pop(state) if state else None
        if value is None:
            logger.warning("OAuth callback with unknown, expired or reused state")
            raise InvalidStateError("Invalid or expired OAuth state")
        return OAuth2AuthState.model_validate(value)

    def exchange_code(self, code: str, provider: CalendarProvider) -> OAuth2Tokens:
        return self.token_exchange.exchange_code(code, provider)
