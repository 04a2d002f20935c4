"""Tests for configuration loading and validation."""

from dataclasses import replace

import pytest

from booking_engine.config import (
    AppConfig,
    GeoConfig,
    LedgerConfig,
    PricingConfig,
    SchedulingConfig,
    _safe_float,
    _safe_int,
    _validate_config,
)


class TestConfigValidation:
    def test_default_config_passes_validation(self):
        config = AppConfig()
        _validate_config(config)  # should not raise

    def test_zero_horizon(self):
        config = replace(AppConfig(), scheduling=SchedulingConfig(slot_horizon_days=0))
        with pytest.raises(ValueError, match="SLOT_HORIZON_DAYS"):
            _validate_config(config)

    def test_money_places_out_of_range(self):
        config = replace(AppConfig(), pricing=PricingConfig(money_places=6))
        with pytest.raises(ValueError, match="MONEY_DECIMAL_PLACES"):
            _validate_config(config)

    def test_blank_home_state(self):
        config = replace(AppConfig(), pricing=PricingConfig(home_state_name="  "))
        with pytest.raises(ValueError, match="HOME_STATE_NAME"):
            _validate_config(config)

    def test_non_positive_earth_radius(self):
        config = replace(AppConfig(), geo=GeoConfig(earth_radius_km=0))
        with pytest.raises(ValueError, match="EARTH_RADIUS_KM"):
            _validate_config(config)

    def test_zero_id_attempts(self):
        config = replace(AppConfig(), ledger=LedgerConfig(id_max_attempts=0))
        with pytest.raises(ValueError, match="ID_MAX_ATTEMPTS"):
            _validate_config(config)

    def test_config_is_frozen(self):
        with pytest.raises(AttributeError):
            AppConfig().log_level = "DEBUG"  # type: ignore[misc]


class TestEnvParsing:
    def test_safe_int_parsing(self):
        assert _safe_int("NONEXISTENT_VAR_12345", "42") == 42

    def test_safe_float_parsing(self):
        assert _safe_float("NONEXISTENT_VAR_12345", "3.14") == pytest.approx(3.14)

    def test_safe_int_names_the_variable(self, monkeypatch):
        monkeypatch.setenv("SLOT_HORIZON_DAYS", "thirty")
        with pytest.raises(ValueError, match="SLOT_HORIZON_DAYS"):
            _safe_int("SLOT_HORIZON_DAYS", "30")

    def test_safe_float_names_the_variable(self, monkeypatch):
        monkeypatch.setenv("EARTH_RADIUS_KM", "far")
        with pytest.raises(ValueError, match="EARTH_RADIUS_KM"):
            _safe_float("EARTH_RADIUS_KM", "6371")
