"""
Centralized configuration with environment variable overrides.

Scheduling horizons, tax jurisdiction, geo boundaries and ledger limits
are configurable here. Nothing is hardcoded in pricing or lifecycle logic.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


@dataclass(frozen=True)
class SchedulingConfig:
    """Slot generation settings."""

    slot_horizon_days: int = _safe_int("SLOT_HORIZON_DAYS", "30")


@dataclass(frozen=True)
class PricingConfig:
    """Tax jurisdiction and money rounding."""

    home_state_name: str = os.getenv("HOME_STATE_NAME", "tamil nadu")
    money_places: int = _safe_int("MONEY_DECIMAL_PLACES", "2")


@dataclass(frozen=True)
class GeoConfig:
    """Geographic matching settings."""

    serviceable_regions_file: Optional[str] = os.getenv("SERVICEABLE_REGIONS_FILE") or None
    earth_radius_km: float = _safe_float("EARTH_RADIUS_KM", "6371")


@dataclass(frozen=True)
class LedgerConfig:
    """Transaction ledger and external id generation."""

    id_max_attempts: int = _safe_int("ID_MAX_ATTEMPTS", "5")
    online_provider: str = os.getenv("ONLINE_PAYMENT_PROVIDER", "gateway")
    offline_provider: str = os.getenv("OFFLINE_PAYMENT_PROVIDER", "offline")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    scheduling: SchedulingConfig = field(default_factory=SchedulingConfig)
    pricing: PricingConfig = field(default_factory=PricingConfig)
    geo: GeoConfig = field(default_factory=GeoConfig)
    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    service_name: str = os.getenv("SERVICE_NAME", "home-services-booking")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    if config.scheduling.slot_horizon_days < 1:
        raise ValueError(
            f"SLOT_HORIZON_DAYS must be >= 1, got {config.scheduling.slot_horizon_days}"
        )
    if not 0 <= config.pricing.money_places <= 4:
        raise ValueError(
            f"MONEY_DECIMAL_PLACES must be between 0 and 4, got {config.pricing.money_places}"
        )
    if not config.pricing.home_state_name.strip():
        raise ValueError("HOME_STATE_NAME must not be empty")
    if config.geo.earth_radius_km <= 0:
        raise ValueError(
            f"EARTH_RADIUS_KM must be > 0, got {config.geo.earth_radius_km}"
        )
    if config.ledger.id_max_attempts < 1:
        raise ValueError(
            f"ID_MAX_ATTEMPTS must be >= 1, got {config.ledger.id_max_attempts}"
        )


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logger.info("Configuration loaded for '%s'", config.service_name)
    return config


# Singleton instance
settings = load_config()
