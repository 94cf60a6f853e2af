# calendar_core/services/calendar/base.py
"""
Shared shape of every vendor calendar client.

Concrete clients only describe the vendor: endpoints, payload mapping and
how to read busy intervals. Token validation, the re-auth retry loop, HTTP
timeouts and error mapping live here once.
"""
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, TypeVar

import requests

from calendar_core.config.settings import get_settings
from calendar_core.exceptions import ApiError, AuthenticationError
from calendar_core.schemas import (
    CalendarEvent,
    CalendarEventResponse,
    CalendarProvider,
    FreeBusyQuery,
    FreeBusyResponse,
    ProviderAccount,
    TimeSlot,
)
from calendar_core.services.auth.token_service import TokenRefreshService
from calendar_core.services.monitoring.calendar_metrics import metrics
from calendar_core.utils.http import raise_for_response, send

logger = logging.getLogger(__name__)

T = TypeVar("T")


def calculate_free_slots(start: datetime, end: datetime, busy_slots: List[TimeSlot]) -> List[TimeSlot]:
    """Complement of the busy intervals inside [start, end).

    Busy intervals are clipped to the window and merged, so overlapping or
    touching intervals never produce empty or inverted free slots.
    """
    clipped = sorted(
        (
            (max(busy.start_time, start), min(busy.end_time, end))
            for busy in busy_slots
            if busy.start_time < end and busy.end_time > start
        ),
        key=lambda interval: interval[0],
    )

    free_slots: List[TimeSlot] = []
    cursor = start
    for busy_start, busy_end in clipped:
        if busy_start > cursor:
            free_slots.append(TimeSlot(start_time=cursor, end_time=busy_start))
        cursor = max(cursor, busy_end)
    if cursor < end:
        free_slots.append(TimeSlot(start_time=cursor, end_time=end))
    return free_slots


class CalendarService(ABC):
    """Vendor calendar client contract"""

    provider: CalendarProvider
    base_url: str

    def __init__(
            self,
            token_service: TokenRefreshService,
            session: Optional[requests.Session] = None,
            timeout: Optional[float] = None,
            max_auth_retries: Optional[int] = None
    ):
        settings = get_settings()
        self.token_service = token_service
        self._session = session or requests.Session()
        self.timeout = timeout if timeout is not None else settings.HTTP_TIMEOUT_SECONDS
        self.max_auth_retries = (
            max_auth_retries if max_auth_retries is not None else settings.TOKEN_AUTH_MAX_RETRIES
        )

    # ========== CONTRACT ==========

    @abstractmethod
    def create_event(self, account: ProviderAccount, event: CalendarEvent) -> CalendarEventResponse:
        ...

    @abstractmethod
    def update_event(self, account: ProviderAccount, event_id: str, event: CalendarEvent) -> CalendarEventResponse:
        ...

    @abstractmethod
    def delete_event(self, account: ProviderAccount, event_id: str) -> None:
        ...

    @abstractmethod
    def get_event(self, account: ProviderAccount, event_id: str) -> CalendarEventResponse:
        ...

    @abstractmethod
    def list_events(self, account: ProviderAccount, start: datetime, end: datetime) -> List[CalendarEventResponse]:
        ...

    @abstractmethod
    def get_free_busy(self, account: ProviderAccount, query: FreeBusyQuery) -> FreeBusyResponse:
        ...

    # ========== SHARED PLUMBING ==========

    def execute_with_retry(
            self,
            account: ProviderAccount,
            operation_name: str,
            operation: Callable[[ProviderAccount], T]
    ) -> T:
        """Run ``operation`` with a valid token, re-authorizing on 401/403.

        States: attempt -> success | auth failure -> refresh -> attempt |
        other failure -> fail. At most ``max_auth_retries`` refreshes happen,
        so the operation runs at most ``max_auth_retries + 1`` times.
        """
        provider = self.provider.value
        current = self.token_service.ensure_valid(account)
        attempt = 0

        while True:
            attempt += 1
            try:
                result = operation(current)
            except AuthenticationError as exc:
                if attempt > self.max_auth_retries:
                    logger.error(
                        f"{provider} {operation_name}: authentication failed after {attempt} attempts: {exc}"
                    )
                    metrics.record_failure(provider, operation_name, "AuthenticationError")
                    raise
                logger.warning(
                    f"{provider} {operation_name}: authentication error "
                    f"(attempt {attempt}/{self.max_auth_retries + 1}), renewing token"
                )
                current = self.token_service.force_refresh(current)
                continue
            except ApiError as exc:
                metrics.record_failure(provider, operation_name, "ApiError")
                logger.error(f"{provider} {operation_name} failed: {exc}")
                raise
            except (KeyError, TypeError, ValueError) as exc:
                metrics.record_failure(provider, operation_name, "MalformedResponse")
                logger.error(f"{provider} {operation_name}: could not read provider response: {exc}")
                raise ApiError(
                    f"Malformed {provider} response while trying to {operation_name}",
                    status_code=500,
                    cause=exc,
                )

            metrics.record_success(provider, operation_name)
            return result

    def _call(
            self,
            account: ProviderAccount,
            method: str,
            path: str,
            operation: str,
            **kwargs
    ) -> Optional[Dict[str, Any]]:
        """Authorized JSON call against the vendor API; None for empty bodies"""
        headers = {
            "Authorization": f"Bearer {account.access_token}",
            "Accept": "application/json",
        }
        headers.update(kwargs.pop("headers", {}) or {})
        response = send(
            self._session,
            method,
            f"{self.base_url}{path}",
            operation,
            self.timeout,
            headers=headers,
            **kwargs
        )
        raise_for_response(response, operation)

        if response.status_code == 204 or not response.content:
            return None
        try:
            body = response.json()
        except ValueError as exc:
            raise ApiError(
                f"Malformed response while trying to {operation}",
                status_code=response.status_code,
                cause=exc,
            )
        if not isinstance(body, dict):
            raise ApiError(
                f"Unexpected response shape while trying to {operation}",
                status_code=response.status_code,
            )
        return body

    @staticmethod
    def _require(body: Optional[Dict[str, Any]], key: str, operation: str) -> Dict[str, Any]:
        if not body or key not in body:
            raise ApiError(f"Invalid response while trying to {operation}: missing '{key}'", status_code=500)
        return body
