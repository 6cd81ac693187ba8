"""Per-location business hours."""

import logging
from dataclasses import dataclass
from datetime import time

from sqlalchemy.orm import Session

from clinic_scheduler.core.config import BusinessCalendarDefaults
from clinic_scheduler.core.errors import InvalidTimeRange, NotFound
from clinic_scheduler.models.organization import BusinessHours, Location
from clinic_scheduler.scheduling.timeutils import get_zone

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DayHours:
    open_time: time
    close_time: time
    timezone: str

    def contains(self, start: time, end: time) -> bool:
        return self.open_time <= start and end <= self.close_time


def get_location(db: Session, location_id: int) -> Location:
    location = db.query(Location).filter(Location.id == location_id).first()
    if not location:
        raise NotFound('Location not found.')
    return location


def hours_for(
    db: Session,
    location: Location,
    weekday: int,
    defaults: BusinessCalendarDefaults,
) -> DayHours | None:
    """Opening hours of ``location`` on ``weekday``, or None when closed.

    A location whose hours were never configured falls back to ``defaults``;
    once configured, any weekday without a row is closed.
    """
    if not location.business_hours_configured:
        if not defaults.enabled:
            return None
        return DayHours(defaults.open_time, defaults.close_time, location.timezone)

    row = db.query(BusinessHours).filter(
        BusinessHours.location_id == location.id,
        BusinessHours.weekday == weekday,
    ).first()
    if not row:
        return None

    return DayHours(row.open_time, row.close_time, location.timezone)


def weekly_hours(db: Session, location: Location) -> dict[int, BusinessHours]:
    rows = db.query(BusinessHours).filter(BusinessHours.location_id == location.id).all()
    return {row.weekday: row for row in rows}


def set_business_hours(
    db: Session,
    location: Location,
    hours: dict[int, tuple[time, time] | None],
    timezone: str | None = None,
) -> list[BusinessHours]:
    """Replace the weekly hours of ``location``. Days mapped to None are closed."""
    for weekday, day_hours in hours.items():
        if not 0 <= weekday <= 6:
            raise InvalidTimeRange('Weekday must be between 0 (Sunday) and 6 (Saturday).')
        if day_hours is not None and day_hours[0] >= day_hours[1]:
            raise InvalidTimeRange('Opening time must be before closing time.')

    if timezone is not None:
        get_zone(timezone)
        location.timezone = timezone

    db.query(BusinessHours).filter(BusinessHours.location_id == location.id).delete()

    rows = [
        BusinessHours(location_id=location.id, weekday=weekday, open_time=day_hours[0], close_time=day_hours[1])
        for weekday, day_hours in sorted(hours.items())
        if day_hours is not None
    ]
    db.add_all(rows)
    location.business_hours_configured = True
    db.flush()

    logger.info('Updated business hours for location %s: %d open day(s)', location.id, len(rows))
    return rows
