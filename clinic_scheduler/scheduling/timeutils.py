"""Conversion boundary between recurring wall-clock rules and booked instants.

Recurring rules (availability windows, business hours) are expressed as a
weekday and a local time of day in a location's timezone. Appointments are
absolute instants, stored as naive UTC datetimes. Everything that crosses
between the two goes through this module.
"""

from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from clinic_scheduler.core.errors import InvalidTimeRange


def get_zone(tz_name: str | None) -> ZoneInfo:
    try:
        return ZoneInfo(tz_name or 'UTC')
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise InvalidTimeRange(f'Unknown timezone: {tz_name}.') from exc


def day_of_week(value: date) -> int:
    """Weekday numbered 0=Sunday ... 6=Saturday."""
    return (value.weekday() + 1) % 7


def format_hhmm(value: time) -> str:
    return value.strftime('%H:%M')


def to_utc(value: datetime) -> datetime:
    """Normalise to a naive UTC datetime. Naive input is taken to be UTC already."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def local_to_utc(local_date: date, local_time: time, tz_name: str | None) -> datetime:
    local = datetime.combine(local_date, local_time, tzinfo=get_zone(tz_name))
    return to_utc(local)


def utc_to_local(instant: datetime, tz_name: str | None) -> datetime:
    aware = instant if instant.tzinfo else instant.replace(tzinfo=timezone.utc)
    return aware.astimezone(get_zone(tz_name))


def local_day_bounds(local_date: date, tz_name: str | None) -> tuple[datetime, datetime]:
    """UTC instants bracketing one calendar day in ``tz_name``."""
    start = local_to_utc(local_date, time(0, 0), tz_name)
    end = local_to_utc(local_date + timedelta(days=1), time(0, 0), tz_name)
    return start, end


def validate_range(start: datetime, end: datetime) -> tuple[datetime, datetime]:
    start_utc, end_utc = to_utc(start), to_utc(end)
    if start_utc >= end_utc:
        raise InvalidTimeRange('Start time must be before end time.')
    return start_utc, end_utc
