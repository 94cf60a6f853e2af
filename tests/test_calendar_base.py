"""Tests for the shared calendar client plumbing: retry loop and free-slot math."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from calendar_core.exceptions import ApiError, AuthenticationError
from calendar_core.schemas import TimeSlot
from calendar_core.services.auth.token_service import TokenRefreshService
from calendar_core.services.calendar.base import calculate_free_slots
from calendar_core.services.calendar.google_calendar_service import GoogleCalendarService
from calendar_core.services.monitoring.calendar_metrics import metrics

T0 = datetime(2026, 3, 2, 8, 0, tzinfo=timezone.utc)


def _slot(start_minutes: int, end_minutes: int) -> TimeSlot:
    return TimeSlot(
        start_time=T0 + timedelta(minutes=start_minutes),
        end_time=T0 + timedelta(minutes=end_minutes),
    )


class TestCalculateFreeSlots:
    def test_no_busy_means_whole_window_free(self):
        assert calculate_free_slots(T0, T0 + timedelta(hours=1), []) == [_slot(0, 60)]

    def test_complement_of_busy_intervals(self):
        busy = [_slot(30, 60), _slot(90, 120)]

        free = calculate_free_slots(T0, T0 + timedelta(hours=3), busy)

        assert free == [_slot(0, 30), _slot(60, 90), _slot(120, 180)]

    def test_overlapping_and_unsorted_busy_are_merged(self):
        busy = [_slot(50, 80), _slot(10, 60), _slot(80, 90)]

        free = calculate_free_slots(T0, T0 + timedelta(minutes=120), busy)

        assert free == [_slot(0, 10), _slot(90, 120)]

    def test_busy_outside_window_is_clipped(self):
        busy = [_slot(-30, 15), _slot(100, 200)]

        free = calculate_free_slots(T0, T0 + timedelta(minutes=120), busy)

        assert free == [_slot(15, 100)]

    def test_fully_busy_window(self):
        assert calculate_free_slots(T0, T0 + timedelta(hours=1), [_slot(-10, 70)]) == []


@pytest.fixture
def token_service(make_account):
    service = MagicMock(spec=TokenRefreshService)
    service.ensure_valid.side_effect = lambda account: account
    service.force_refresh.side_effect = lambda account: account.with_tokens(
        account.access_token + "+", account.refresh_token, account.token_expires_at
    )
    return service


@pytest.fixture
def client(token_service):
    return GoogleCalendarService(token_service)


class TestExecuteWithRetry:
    def test_success_first_time(self, client, token_service, make_account):
        account = make_account()

        result = client.execute_with_retry(account, "op", lambda current: current.access_token)

        assert result == "access-1"
        token_service.ensure_valid.assert_called_once_with(account)
        token_service.force_refresh.assert_not_called()

    def test_auth_failure_is_retried_with_refreshed_token(self, client, token_service, make_account):
        seen = []

        def operation(current):
            seen.append(current.access_token)
            if len(seen) == 1:
                raise AuthenticationError("401")
            return "ok"

        assert client.execute_with_retry(make_account(), "op", operation) == "ok"
        assert seen == ["access-1", "access-1+"]

    def test_gives_up_after_three_attempts(self, client, token_service, make_account):
        metrics.reset()
        operation = MagicMock(side_effect=AuthenticationError("401"))

        with pytest.raises(AuthenticationError):
            client.execute_with_retry(make_account(), "create_event", operation)

        assert operation.call_count == 3
        assert token_service.force_refresh.call_count == 2
        assert metrics.count("google", "create_event", "error:AuthenticationError") == 1

    def test_api_error_is_not_retried(self, client, token_service, make_account):
        operation = MagicMock(side_effect=ApiError("boom", status_code=500))

        with pytest.raises(ApiError):
            client.execute_with_retry(make_account(), "op", operation)

        assert operation.call_count == 1
        token_service.force_refresh.assert_not_called()

    def test_failed_refresh_stops_the_loop(self, client, token_service, make_account):
        token_service.force_refresh.side_effect = AuthenticationError("no refresh token")
        operation = MagicMock(side_effect=AuthenticationError("401"))

        with pytest.raises(AuthenticationError, match="no refresh token"):
            client.execute_with_retry(make_account(), "op", operation)

        assert operation.call_count == 1

    def test_malformed_payload_becomes_api_error(self, client, make_account):
        def operation(current):
            return {}["id"]

        with pytest.raises(ApiError) as exc_info:
            client.execute_with_retry(make_account(), "op", operation)

        assert exc_info.value.status_code == 500

    def test_retry_cap_is_configurable(self, token_service, make_account):
        client = GoogleCalendarService(token_service, max_auth_retries=0)
        operation = MagicMock(side_effect=AuthenticationError("401"))

        with pytest.raises(AuthenticationError):
            client.execute_with_retry(make_account(), "op", operation)

        assert operation.call_count == 1
