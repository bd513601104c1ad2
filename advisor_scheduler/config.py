"""
Centralized configuration with environment variable overrides.

Business hours, slot windows, session expiry, storage paths and the
external integration switches are all configurable here. Nothing is
hardcoded in the flow controller or the booking services.
"""

import logging
import os
from dataclasses import dataclass, field
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

from advisor_scheduler.logging_context import configure_logging

load_dotenv()

logger = logging.getLogger(__name__)

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off", ""}


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


def _safe_bool(env_var: str, default: str) -> bool:
    """Parse a boolean flag (true/false, 1/0, yes/no, on/off)."""
    raw = os.getenv(env_var, default).strip().lower()
    if raw in _TRUTHY:
        return True
    if raw in _FALSY:
        return False
    raise ValueError(f"Invalid boolean for {env_var}: {raw!r}")


@dataclass(frozen=True)
class BusinessConfig:
    """Business calendar: timezone, opening hours and slot offering limits."""

    name: str = os.getenv("BUSINESS_NAME", "Advisor Desk")
    timezone: str = os.getenv("BUSINESS_TIMEZONE", "Asia/Kolkata")
    open_hour: int = _safe_int("BUSINESS_OPEN_HOUR", "9")
    close_hour: int = _safe_int("BUSINESS_CLOSE_HOUR", "18")
    slot_window_days: int = _safe_int("SLOT_WINDOW_DAYS", "7")
    max_slots_returned: int = _safe_int("MAX_SLOTS_RETURNED", "10")
    slots_offered: int = _safe_int("SLOTS_OFFERED", "2")


@dataclass(frozen=True)
class SessionConfig:
    """Conversation session lifetime."""

    idle_timeout_minutes: int = _safe_int("SESSION_IDLE_TIMEOUT_MINUTES", "30")
    sweep_interval_seconds: float = _safe_float("SESSION_SWEEP_INTERVAL", "300")


@dataclass(frozen=True)
class StorageConfig:
    """Where booking records are persisted."""

    bookings_file: str = os.getenv("BOOKINGS_FILE", "data/bookings.json")


@dataclass(frozen=True)
class IntegrationConfig:
    """Calendar / sheet / email side effects and booking-link settings."""

    enabled: bool = _safe_bool("INTEGRATIONS_ENABLED", "false")
    timeout_seconds: float = _safe_float("INTEGRATION_TIMEOUT", "30")
    secure_url_base: str = os.getenv("SECURE_URL_BASE", "")
    code_max_attempts: int = _safe_int("BOOKING_CODE_MAX_ATTEMPTS", "50")
    booking_link_ttl_hours: int = _safe_int("BOOKING_LINK_TTL_HOURS", "24")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    business: BusinessConfig = field(default_factory=BusinessConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    integrations: IntegrationConfig = field(default_factory=IntegrationConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    agent_name: str = os.getenv("AGENT_NAME", "advisor-scheduler")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    business = config.business
    if not 0 <= business.open_hour < 24 or not 0 < business.close_hour <= 24:
        raise ValueError(
            "BUSINESS_OPEN_HOUR and BUSINESS_CLOSE_HOUR must be within 0-24, "
            f"got {business.open_hour}-{business.close_hour}"
        )
    if business.open_hour >= business.close_hour:
        raise ValueError(
            "BUSINESS_OPEN_HOUR must be before BUSINESS_CLOSE_HOUR, "
            f"got {business.open_hour}-{business.close_hour}"
        )
    try:
        ZoneInfo(business.timezone)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"Unknown BUSINESS_TIMEZONE: {business.timezone!r}") from None

    for name, value in [
        ("SLOT_WINDOW_DAYS", business.slot_window_days),
        ("MAX_SLOTS_RETURNED", business.max_slots_returned),
        ("SLOTS_OFFERED", business.slots_offered),
        ("SESSION_IDLE_TIMEOUT_MINUTES", config.session.idle_timeout_minutes),
        ("BOOKING_CODE_MAX_ATTEMPTS", config.integrations.code_max_attempts),
        ("BOOKING_LINK_TTL_HOURS", config.integrations.booking_link_ttl_hours),
    ]:
        if value < 1:
            raise ValueError(f"{name} must be >= 1, got {value}")

    if config.session.sweep_interval_seconds <= 0:
        raise ValueError(
            "SESSION_SWEEP_INTERVAL must be > 0, "
            f"got {config.session.sweep_interval_seconds}"
        )
    if config.integrations.timeout_seconds <= 0:
        raise ValueError(
            "INTEGRATION_TIMEOUT must be > 0, "
            f"got {config.integrations.timeout_seconds}"
        )


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    configure_logging(getattr(logging, config.log_level.upper(), logging.INFO))
    logger.info("Configuration loaded for '%s'", config.business.name)
    return config


# Singleton instance
settings = load_config()
