"""Overlap detection shared by slot generation, staff matching and booking."""

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session

from clinic_scheduler.core.errors import SlotUnavailable
from clinic_scheduler.models.appointment import STATUS_CANCELED, Appointment

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TimeRange:
    start_time: datetime
    end_time: datetime


def overlaps(existing, candidate) -> bool:
    """Half-open interval overlap: touching boundaries are not a conflict."""
    return candidate.start_time < existing.end_time and candidate.end_time > existing.start_time


def is_blocking(appointment: Appointment) -> bool:
    return appointment.status != STATUS_CANCELED


def blocking_appointments(
    db: Session,
    staff_id: int,
    range_start: datetime,
    range_end: datetime,
    exclude_appointment_id: int | None = None,
) -> list[Appointment]:
    """Non-canceled appointments of ``staff_id`` touching [range_start, range_end)."""
    query = db.query(Appointment).filter(
        Appointment.staff_id == staff_id,
        Appointment.status != STATUS_CANCELED,
        Appointment.start_time < range_end,
        Appointment.end_time > range_start,
    )
    if exclude_appointment_id is not None:
        query = query.filter(Appointment.id != exclude_appointment_id)

    return query.order_by(Appointment.start_time.asc()).all()


def find_conflicts(
    db: Session,
    staff_id: int,
    start_time: datetime,
    end_time: datetime,
    exclude_appointment_id: int | None = None,
) -> list[Appointment]:
    candidate = TimeRange(start_time, end_time)
    return [
        appointment
        for appointment in blocking_appointments(db, staff_id, start_time, end_time, exclude_appointment_id)
        if is_blocking(appointment) and overlaps(appointment, candidate)
    ]


def ensure_slot_free(
    db: Session,
    staff_id: int,
    start_time: datetime,
    end_time: datetime,
    exclude_appointment_id: int | None = None,
) -> None:
    conflicts = find_conflicts(db, staff_id, start_time, end_time, exclude_appointment_id)
    if conflicts:
        logger.warning(
            'Rejected booking for staff %s at %s-%s: overlaps appointment(s) %s',
            staff_id,
            start_time,
            end_time,
            [appointment.id for appointment in conflicts],
        )
        raise SlotUnavailable('This time conflicts with an existing booking.')
