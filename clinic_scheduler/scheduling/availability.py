"""Recurring staff availability and time off."""

import logging
from datetime import date, time

from sqlalchemy.orm import Session

from clinic_scheduler.core.errors import InvalidTimeRange, NotFound
from clinic_scheduler.models.availability import AvailabilityWindow, TimeOff
from clinic_scheduler.models.staff import Staff
from clinic_scheduler.scheduling.timeutils import day_of_week

logger = logging.getLogger(__name__)


def get_staff(db: Session, staff_id: int) -> Staff:
    staff = db.query(Staff).filter(Staff.id == staff_id).first()
    if not staff:
        raise NotFound('Staff member not found.')
    return staff


def list_windows(db: Session, staff_id: int) -> list[AvailabilityWindow]:
    return db.query(AvailabilityWindow).filter(
        AvailabilityWindow.staff_id == staff_id,
    ).order_by(AvailabilityWindow.day_of_week.asc(), AvailabilityWindow.start_time.asc()).all()


def windows_for_day(db: Session, staff_id: int, weekday: int) -> list[AvailabilityWindow]:
    return db.query(AvailabilityWindow).filter(
        AvailabilityWindow.staff_id == staff_id,
        AvailabilityWindow.day_of_week == weekday,
    ).order_by(AvailabilityWindow.start_time.asc()).all()


def _validate_window(
    db: Session,
    staff_id: int,
    weekday: int,
    start_time: time,
    end_time: time,
    exclude_window_id: int | None = None,
) -> None:
    if not 0 <= weekday <= 6:
        raise InvalidTimeRange('Day of week must be between 0 (Sunday) and 6 (Saturday).')
    if start_time >= end_time:
        raise InvalidTimeRange('Availability must start before it ends.')

    for window in windows_for_day(db, staff_id, weekday):
        if window.id == exclude_window_id:
            continue
        if start_time < window.end_time and end_time > window.start_time:
            raise InvalidTimeRange(
                f'Availability overlaps an existing window '
                f'({window.start_time:%H:%M}-{window.end_time:%H:%M}).'
            )


def create_window(
    db: Session,
    staff_id: int,
    weekday: int,
    start_time: time,
    end_time: time,
    is_recurring: bool = True,
) -> AvailabilityWindow:
    get_staff(db, staff_id)
    _validate_window(db, staff_id, weekday, start_time, end_time)

    window = AvailabilityWindow(
        staff_id=staff_id,
        day_of_week=weekday,
        start_time=start_time,
        end_time=end_time,
        is_recurring=is_recurring,
    )
    db.add(window)
    db.flush()

    logger.info('Added availability %s %s-%s for staff %s', weekday, start_time, end_time, staff_id)
    return window


def update_window(
    db: Session,
    window_id: int,
    weekday: int | None = None,
    start_time: time | None = None,
    end_time: time | None = None,
    is_recurring: bool | None = None,
) -> AvailabilityWindow:
    window = db.query(AvailabilityWindow).filter(AvailabilityWindow.id == window_id).first()
    if not window:
        raise NotFound('Availability window not found.')

    new_weekday = window.day_of_week if weekday is None else weekday
    new_start = window.start_time if start_time is None else start_time
    new_end = window.end_time if end_time is None else end_time
    _validate_window(db, window.staff_id, new_weekday, new_start, new_end, exclude_window_id=window.id)

    window.day_of_week = new_weekday
    window.start_time = new_start
    window.end_time = new_end
    if is_recurring is not None:
        window.is_recurring = is_recurring
    db.flush()

    return window


def delete_window(db: Session, window_id: int) -> None:
    # Existing appointments are left untouched.
    window = db.query(AvailabilityWindow).filter(AvailabilityWindow.id == window_id).first()
    if not window:
        raise NotFound('Availability window not found.')

    db.delete(window)
    db.flush()


def add_time_off(db: Session, staff_id: int, day: date, reason: str | None = None) -> TimeOff:
    get_staff(db, staff_id)

    existing = db.query(TimeOff).filter(TimeOff.staff_id == staff_id, TimeOff.date == day).first()
    if existing:
        if reason:
            existing.reason = reason
            db.flush()
        return existing

    time_off = TimeOff(staff_id=staff_id, date=day, reason=reason)
    db.add(time_off)
    db.flush()

    logger.info('Staff %s marked off on %s', staff_id, day)
    return time_off


def list_time_off(db: Session, staff_id: int, from_date: date | None = None) -> list[TimeOff]:
    query = db.query(TimeOff).filter(TimeOff.staff_id == staff_id)
    if from_date is not None:
        query = query.filter(TimeOff.date >= from_date)
    return query.order_by(TimeOff.date.asc()).all()


def remove_time_off(db: Session, staff_id: int, day: date) -> None:
    time_off = db.query(TimeOff).filter(TimeOff.staff_id == staff_id, TimeOff.date == day).first()
    if not time_off:
        raise NotFound('Time off not found.')

    db.delete(time_off)
    db.flush()


def is_on_time_off(db: Session, staff_id: int, day: date) -> bool:
    return db.query(TimeOff.id).filter(TimeOff.staff_id == staff_id, TimeOff.date == day).first() is not None


def working_windows(db: Session, staff_id: int, day: date) -> list[AvailabilityWindow]:
    """Windows that apply on ``day``, empty when the staff member is off."""
    if is_on_time_off(db, staff_id, day):
        return []
    return windows_for_day(db, staff_id, day_of_week(day))
