"""
Centralized configuration with environment variable overrides.

Service rules (price, capacity, notice windows), conversation limits and
database settings all live here. Components receive these values through
their constructors; nothing below reads the environment directly.
"""

import logging
import os
import re
from dataclasses import dataclass, field

from dotenv import load_dotenv

from labvisit.logging_context import SessionIdFilter

load_dotenv()

logger = logging.getLogger(__name__)

_HHMM = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


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
    return os.getenv(env_var, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class ServiceConfig:
    """Laboratory home-visit service rules."""

    name: str = os.getenv("LAB_NAME", "Laboratorio Clínico Buga")
    service_area: str = os.getenv("SERVICE_AREA", "Perímetro urbano de Buga")
    timezone: str = os.getenv("SERVICE_TIMEZONE", "America/Bogota")
    base_price: int = _safe_int("BASE_PRICE", "20000")
    slot_capacity: int = _safe_int("SLOT_CAPACITY", "10")
    default_slot_start: str = os.getenv("SERVICE_START_TIME", "05:30")
    default_slot_end: str = os.getenv("SERVICE_END_TIME", "06:30")


@dataclass(frozen=True)
class SchedulingConfig:
    """Availability query windows."""

    max_advance_days: int = _safe_int("MAX_ADVANCE_DAYS", "90")
    max_range_days: int = _safe_int("MAX_RANGE_DAYS", "90")
    next_slot_lookahead_days: int = _safe_int("NEXT_SLOT_LOOKAHEAD_DAYS", "30")
    summary_days: int = _safe_int("SUMMARY_DAYS", "7")
    alternatives_days: int = _safe_int("ALTERNATIVES_DAYS", "5")


@dataclass(frozen=True)
class CancellationConfig:
    """Minimum notice before a cancellation counts as late."""

    min_notice_minutes: int = _safe_int("CANCELLATION_MIN_NOTICE_MINUTES", "120")


@dataclass(frozen=True)
class ConversationConfig:
    """Limits applied to conversational input and session lifetime."""

    idle_timeout_seconds: int = _safe_int("IDLE_TIMEOUT_SECONDS", "120")
    min_address_length: int = _safe_int("MIN_ADDRESS_LENGTH", "10")
    max_address_length: int = _safe_int("MAX_ADDRESS_LENGTH", "500")
    max_name_length: int = _safe_int("MAX_NAME_LENGTH", "100")
    max_input_length: int = _safe_int("MAX_INPUT_LENGTH", "500")


@dataclass(frozen=True)
class DatabaseConfig:
    """Relational store settings."""

    url: str = os.getenv("DATABASE_URL", "sqlite:///./labvisit.db")
    timeout_seconds: float = _safe_float("DB_TIMEOUT_SECONDS", "5.0")
    echo: bool = _safe_bool("DB_ECHO", "false")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    service: ServiceConfig = field(default_factory=ServiceConfig)
    scheduling: SchedulingConfig = field(default_factory=SchedulingConfig)
    cancellation: CancellationConfig = field(default_factory=CancellationConfig)
    conversation: ConversationConfig = field(default_factory=ConversationConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    service = config.service
    if service.base_price < 0:
        raise ValueError(f"BASE_PRICE must be >= 0, got {service.base_price}")
    if service.slot_capacity < 1:
        raise ValueError(f"SLOT_CAPACITY must be >= 1, got {service.slot_capacity}")

    for env_name, value in [
        ("SERVICE_START_TIME", service.default_slot_start),
        ("SERVICE_END_TIME", service.default_slot_end),
    ]:
        if not _HHMM.match(value):
            raise ValueError(f"{env_name} must be HH:MM, got {value!r}")
    if service.default_slot_start >= service.default_slot_end:
        raise ValueError(
            "SERVICE_START_TIME must be before SERVICE_END_TIME, "
            f"got {service.default_slot_start} - {service.default_slot_end}"
        )

    for env_name, days in [
        ("MAX_ADVANCE_DAYS", config.scheduling.max_advance_days),
        ("MAX_RANGE_DAYS", config.scheduling.max_range_days),
        ("NEXT_SLOT_LOOKAHEAD_DAYS", config.scheduling.next_slot_lookahead_days),
        ("SUMMARY_DAYS", config.scheduling.summary_days),
        ("ALTERNATIVES_DAYS", config.scheduling.alternatives_days),
    ]:
        if days < 1:
            raise ValueError(f"{env_name} must be >= 1, got {days}")

    if config.cancellation.min_notice_minutes < 0:
        raise ValueError(
            "CANCELLATION_MIN_NOTICE_MINUTES must be >= 0, "
            f"got {config.cancellation.min_notice_minutes}"
        )

    conversation = config.conversation
    if conversation.idle_timeout_seconds < 1:
        raise ValueError(
            f"IDLE_TIMEOUT_SECONDS must be >= 1, got {conversation.idle_timeout_seconds}"
        )
    if not 1 <= conversation.min_address_length <= conversation.max_address_length:
        raise ValueError(
            "MIN_ADDRESS_LENGTH must be between 1 and MAX_ADDRESS_LENGTH, "
            f"got {conversation.min_address_length}"
        )
    if conversation.max_input_length < 1:
        raise ValueError(
            f"MAX_INPUT_LENGTH must be >= 1, got {conversation.max_input_length}"
        )

    if config.database.timeout_seconds <= 0:
        raise ValueError(
            f"DB_TIMEOUT_SECONDS must be > 0, got {config.database.timeout_seconds}"
        )


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s [%(session_id)s]: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, SessionIdFilter) for f in handler.filters):
            handler.addFilter(SessionIdFilter())
    logger.info("Configuration loaded for '%s'", config.service.name)
    return config


# Singleton instance
settings = load_config()
