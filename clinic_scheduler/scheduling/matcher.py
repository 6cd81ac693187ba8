"""Find staff who can take a requested time range."""

import logging
from datetime import datetime

from sqlalchemy.orm import Session

from clinic_scheduler.core.errors import NotFound, StaffNotAvailable
from clinic_scheduler.models.service import Service
from clinic_scheduler.models.staff import Staff
from clinic_scheduler.scheduling import availability
from clinic_scheduler.scheduling.conflicts import find_conflicts
from clinic_scheduler.scheduling.timeutils import utc_to_local, validate_range

logger = logging.getLogger(__name__)


def window_covers(db: Session, staff_id: int, start: datetime, end: datetime, tz_name: str) -> bool:
    """True if one availability window fully contains the local range.

    Partial overlap with a window does not count, and a range crossing local
    midnight never qualifies.
    """
    local_start = utc_to_local(start, tz_name)
    local_end = utc_to_local(end, tz_name)
    if local_start.date() != local_end.date():
        return False

    start_of_range = local_start.time().replace(tzinfo=None)
    end_of_range = local_end.time().replace(tzinfo=None)

    return any(
        window.start_time <= start_of_range and window.end_time >= end_of_range
        for window in availability.working_windows(db, staff_id, local_start.date())
    )


def ensure_staff_available(db: Session, staff: Staff, start: datetime, end: datetime, tz_name: str) -> None:
    if not staff.is_active or not window_covers(db, staff.id, start, end, tz_name):
        raise StaffNotAvailable(f'{staff.name} is not working during the requested time.')


def service_staff_ids(db: Session, service_id: int, organization_id: int) -> set[int] | None:
    """Staff ids assigned to the service, or None when any staff may perform it."""
    service = db.query(Service).filter(
        Service.id == service_id,
        Service.organization_id == organization_id,
    ).first()
    if not service:
        raise NotFound('Service not found.')

    assigned = {member.id for member in service.available_staff}
    return assigned or None


def find_available_staff(
    db: Session,
    organization_id: int,
    start: datetime,
    end: datetime,
    tz_name: str,
    service_id: int | None = None,
) -> list[Staff]:
    """Active staff who are working and conflict-free for [start, end).

    Sorted by name, then id.
    """
    start_utc, end_utc = validate_range(start, end)

    candidates = db.query(Staff).filter(
        Staff.organization_id == organization_id,
        Staff.is_active.is_(True),
    ).order_by(Staff.name.asc(), Staff.id.asc()).all()

    if service_id is not None:
        allowed = service_staff_ids(db, service_id, organization_id)
        if allowed is not None:
            candidates = [member for member in candidates if member.id in allowed]

    matched = [
        member
        for member in candidates
        if window_covers(db, member.id, start_utc, end_utc, tz_name)
        and not find_conflicts(db, member.id, start_utc, end_utc)
    ]

    logger.debug(
        'Matched %d of %d staff for organization %s at %s-%s',
        len(matched),
        len(candidates),
        organization_id,
        start_utc,
        end_utc,
    )
    return matched
