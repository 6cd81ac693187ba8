import os
from dataclasses import dataclass
from datetime import time

from dotenv import load_dotenv


load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_time(value: str | None, default: time) -> time:
    if value is None or not value.strip():
        return default
    hours, minutes = value.strip().split(":")
    return time(int(hours), int(minutes))


APP_ENV = os.getenv("APP_ENV", "development")

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./clinic_scheduler.db")

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:5173").split(",")
    if origin.strip()
]

DEFAULT_TIMEZONE = os.getenv("DEFAULT_TIMEZONE", "UTC")
SLOT_INTERVAL_MINUTES = int(os.getenv("SLOT_INTERVAL_MINUTES", "30"))

# Hours applied to a location that has no business hours configured at all.
DEFAULT_BUSINESS_HOURS_ENABLED = _get_bool(os.getenv("DEFAULT_BUSINESS_HOURS_ENABLED"), default=True)
DEFAULT_BUSINESS_OPEN = _get_time(os.getenv("DEFAULT_BUSINESS_OPEN"), time(0, 0))
DEFAULT_BUSINESS_CLOSE = _get_time(os.getenv("DEFAULT_BUSINESS_CLOSE"), time(23, 59))

RETAIN_DEPOSIT_BY_DEFAULT = _get_bool(os.getenv("RETAIN_DEPOSIT_BY_DEFAULT"), default=True)
CURRENCY = os.getenv("CURRENCY", "usd")

STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY", "")

TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID", "")
TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN", "")
TWILIO_PHONE_NUMBER = os.getenv("TWILIO_PHONE_NUMBER", "")

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "60"))


@dataclass(frozen=True)
class BusinessCalendarDefaults:
    """Hours used for locations without any configured business hours."""

    enabled: bool = True
    open_time: time = time(0, 0)
    close_time: time = time(23, 59)


@dataclass(frozen=True)
class SchedulingPolicy:
    slot_interval_minutes: int = 30
    default_timezone: str = "UTC"
    retain_deposit_by_default: bool = True
    currency: str = "usd"
    calendar_defaults: BusinessCalendarDefaults = BusinessCalendarDefaults()


def get_scheduling_policy() -> SchedulingPolicy:
    return SchedulingPolicy(
        slot_interval_minutes=SLOT_INTERVAL_MINUTES,
        default_timezone=DEFAULT_TIMEZONE,
        retain_deposit_by_default=RETAIN_DEPOSIT_BY_DEFAULT,
        currency=CURRENCY,
        calendar_defaults=BusinessCalendarDefaults(
            enabled=DEFAULT_BUSINESS_HOURS_ENABLED,
            open_time=DEFAULT_BUSINESS_OPEN,
            close_time=DEFAULT_BUSINESS_CLOSE,
        ),
    )


def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if SLOT_INTERVAL_MINUTES <= 0:
        raise RuntimeError("SLOT_INTERVAL_MINUTES must be a positive number of minutes.")
    if DEFAULT_BUSINESS_OPEN >= DEFAULT_BUSINESS_CLOSE:
        raise RuntimeError("DEFAULT_BUSINESS_OPEN must be earlier than DEFAULT_BUSINESS_CLOSE.")
