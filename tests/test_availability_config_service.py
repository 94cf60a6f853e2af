"""Tests for reading and writing availability rules."""

from __future__ import annotations

import uuid
from datetime import time

import pytest

from calendar_core.exceptions import ConfigurationError
from calendar_core.schemas import AvailabilityConfig, DaySchedule
from calendar_core.services.availability.availability_config_service import AvailabilityConfigService


@pytest.fixture
def service(account_repository, clock):
    return AvailabilityConfigService(account_repository, clock=clock)


class TestGetAvailabilityConfig:
    def test_default_when_absent(self, service, make_account):
        config = service.get_availability_config(make_account(config={"timezone": "America/Guayaquil"}))

        assert config == AvailabilityConfig.default()
        assert config.working_hours["monday"].start_time == time(8, 0)
        assert config.working_hours["sunday"].enabled is False

    def test_parses_camel_case_blob(self, service, make_account):
        blob = {
            "enabled": True,
            "slotDurationMinutes": 45,
            "workingHours": {"friday": {"enabled": True, "startTime": "09:00", "endTime": "13:00"}},
            "holidays": [{"date": "2026-12-25", "description": "Christmas"}],
        }

        config = service.get_availability_config(make_account(config={"availability": blob}))

        assert config.slot_duration_minutes == 45
        assert config.advance_booking_days == 30
        assert config.working_hours["friday"].end_time == time(13, 0)
        assert config.holidays[0].description == "Christmas"

    def test_invalid_blob_is_configuration_error(self, service, make_account):
        blob = {"slotDurationMinutes": 0}

        with pytest.raises(ConfigurationError):
            service.get_availability_config(make_account(config={"availability": blob}))

    def test_end_before_start_is_rejected(self, service, make_account):
        blob = {"workingHours": {"monday": {"enabled": True, "startTime": "12:00", "endTime": "08:00"}}}

        with pytest.raises(ConfigurationError):
            service.get_availability_config(make_account(config={"availability": blob}))


class TestUpdateAvailabilityConfig:
    def test_round_trip_through_account_config(self, service, account_repository, make_account, clock):
        account = account_repository.save(make_account())
        config = AvailabilityConfig.default()
        config.working_hours["saturday"] = DaySchedule(enabled=True, start_time=time(9, 0), end_time=time(12, 0))

        saved = service.update_availability_config(account.id, config)

        blob = saved.config["availability"]
        assert blob["workingHours"]["saturday"] == {
            "enabled": True, "startTime": "09:00", "endTime": "12:00", "breaks": [],
        }
        assert blob["slotDurationMinutes"] == 30
        # other config keys survive
        assert saved.config["timezone"] == "America/Guayaquil"
        assert saved.updated_at == clock.now
        assert service.get_availability_config_by_id(account.id) == config

    def test_unknown_account(self, service):
        with pytest.raises(ConfigurationError):
            service.update_availability_config(uuid.uuid4(), AvailabilityConfig.default())
