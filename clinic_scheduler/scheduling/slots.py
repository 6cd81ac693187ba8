"""Bookable slot generation.

Candidate slots for a (staff, location, date) come from the staff member's
availability windows for that weekday, clipped to the location's business
hours. Every candidate is returned, with ``available`` telling whether an
existing booking overlaps it, so a caller can render the whole day.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from sqlalchemy.orm import Session

from clinic_scheduler.core.config import SchedulingPolicy
from clinic_scheduler.core.errors import InvalidTimeRange
from clinic_scheduler.scheduling import availability, business_calendar
from clinic_scheduler.scheduling.conflicts import TimeRange, blocking_appointments, is_blocking, overlaps
from clinic_scheduler.scheduling.timeutils import day_of_week, format_hhmm, local_day_bounds, local_to_utc

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Slot:
    time: str
    available: bool
    datetime: datetime
    end: datetime

    @property
    def start_time(self) -> datetime:
        return self.datetime

    @property
    def end_time(self) -> datetime:
        return self.end


def candidate_starts(
    target_date: date,
    ranges: list[tuple],
    interval_minutes: int,
) -> list[datetime]:
    """Local slot starts inside ``ranges`` that leave room for a whole interval."""
    step = timedelta(minutes=interval_minutes)
    starts: set[datetime] = set()

    for range_start, range_end in ranges:
        current = datetime.combine(target_date, range_start)
        limit = datetime.combine(target_date, range_end)
        while current + step <= limit:
            starts.add(current)
            current += step

    return sorted(starts)


def bookable_ranges(hours: business_calendar.DayHours, windows) -> list[tuple]:
    ranges = []
    for window in windows:
        start = max(hours.open_time, window.start_time)
        end = min(hours.close_time, window.end_time)
        if start < end:
            ranges.append((start, end))
    return ranges


def generate_slots(
    db: Session,
    staff_id: int,
    location_id: int,
    target_date: date,
    policy: SchedulingPolicy,
    interval_minutes: int | None = None,
) -> list[Slot]:
    interval = interval_minutes or policy.slot_interval_minutes
    if interval <= 0:
        raise InvalidTimeRange('Slot interval must be a positive number of minutes.')

    availability.get_staff(db, staff_id)
    location = business_calendar.get_location(db, location_id)
    hours = business_calendar.hours_for(db, location, day_of_week(target_date), policy.calendar_defaults)
    if hours is None:
        return []

    windows = availability.working_windows(db, staff_id, target_date)
    starts = candidate_starts(target_date, bookable_ranges(hours, windows), interval)
    if not starts:
        return []

    day_start, day_end = local_day_bounds(target_date, hours.timezone)
    booked = [
        appointment
        for appointment in blocking_appointments(db, staff_id, day_start, day_end)
        if is_blocking(appointment)
    ]

    slots: list[Slot] = []
    for local_start in starts:
        start_utc = local_to_utc(target_date, local_start.time(), hours.timezone)
        end_utc = start_utc + timedelta(minutes=interval)
        candidate = TimeRange(start_utc, end_utc)
        slots.append(
            Slot(
                time=format_hhmm(local_start.time()),
                available=not any(overlaps(appointment, candidate) for appointment in booked),
                datetime=start_utc,
                end=end_utc,
            )
        )

    logger.debug(
        'Generated %d slot(s) for staff %s at location %s on %s',
        len(slots),
        staff_id,
        location_id,
        target_date,
    )
    return slots
