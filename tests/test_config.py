"""Tests for configuration validation."""

import pytest

from labvisit.config import (
    AppConfig,
    CancellationConfig,
    ConversationConfig,
    DatabaseConfig,
    SchedulingConfig,
    ServiceConfig,
    _safe_bool,
    _safe_float,
    _safe_int,
    _validate_config,
)


class TestConfigValidation:
    def test_defaults_are_valid(self):
        _validate_config(AppConfig())

    def test_negative_price(self):
        config = AppConfig(service=ServiceConfig(base_price=-1))
        with pytest.raises(ValueError, match="BASE_PRICE"):
            _validate_config(config)

    def test_zero_capacity(self):
        config = AppConfig(service=ServiceConfig(slot_capacity=0))
        with pytest.raises(ValueError, match="SLOT_CAPACITY"):
            _validate_config(config)

    def test_bad_start_time_format(self):
        config = AppConfig(service=ServiceConfig(default_slot_start="5:30"))
        with pytest.raises(ValueError, match="SERVICE_START_TIME"):
            _validate_config(config)

    def test_start_after_end(self):
        config = AppConfig(
            service=ServiceConfig(default_slot_start="07:00", default_slot_end="06:30")
        )
        with pytest.raises(ValueError, match="before SERVICE_END_TIME"):
            _validate_config(config)

    def test_zero_advance_days(self):
        config = AppConfig(scheduling=SchedulingConfig(max_advance_days=0))
        with pytest.raises(ValueError, match="MAX_ADVANCE_DAYS"):
            _validate_config(config)

    def test_negative_notice(self):
        config = AppConfig(cancellation=CancellationConfig(min_notice_minutes=-5))
        with pytest.raises(ValueError, match="CANCELLATION_MIN_NOTICE_MINUTES"):
            _validate_config(config)

    def test_zero_idle_timeout(self):
        config = AppConfig(conversation=ConversationConfig(idle_timeout_seconds=0))
        with pytest.raises(ValueError, match="IDLE_TIMEOUT_SECONDS"):
            _validate_config(config)

    def test_min_address_above_max(self):
        config = AppConfig(
            conversation=ConversationConfig(min_address_length=600, max_address_length=500)
        )
        with pytest.raises(ValueError, match="MIN_ADDRESS_LENGTH"):
            _validate_config(config)

    def test_zero_db_timeout(self):
        config = AppConfig(database=DatabaseConfig(timeout_seconds=0))
        with pytest.raises(ValueError, match="DB_TIMEOUT_SECONDS"):
            _validate_config(config)


class TestSafeParsers:
    def test_safe_int_default(self, monkeypatch):
        monkeypatch.delenv("TEST_LAB_INT", raising=False)
        assert _safe_int("TEST_LAB_INT", "10") == 10

    def test_safe_int_invalid(self, monkeypatch):
        monkeypatch.setenv("TEST_LAB_INT", "diez")
        with pytest.raises(ValueError, match="TEST_LAB_INT"):
            _safe_int("TEST_LAB_INT", "10")

    def test_safe_float_invalid(self, monkeypatch):
        monkeypatch.setenv("TEST_LAB_FLOAT", "abc")
        with pytest.raises(ValueError, match="TEST_LAB_FLOAT"):
            _safe_float("TEST_LAB_FLOAT", "5.0")

    def test_safe_float_value(self, monkeypatch):
        monkeypatch.setenv("TEST_LAB_FLOAT", "2.5")
        assert _safe_float("TEST_LAB_FLOAT", "5.0") == 2.5

    @pytest.mark.parametrize("raw", ["1", "true", "YES", "on"])
    def test_safe_bool_truthy(self, monkeypatch, raw):
        monkeypatch.setenv("TEST_LAB_BOOL", raw)
        assert _safe_bool("TEST_LAB_BOOL", "false") is True

    def test_safe_bool_falsy(self, monkeypatch):
        monkeypatch.setenv("TEST_LAB_BOOL", "nope")
        assert _safe_bool("TEST_LAB_BOOL", "true") is False
