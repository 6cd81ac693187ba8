from contextlib import contextmanager
from datetime import datetime, timezone

from fastapi import Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_scheduler.core.config import SchedulingPolicy, get_scheduling_policy
from clinic_scheduler.core.errors import SchedulingError
from clinic_scheduler.database import ensure_scheduling_indexes, get_db
from clinic_scheduler.integrations.notifications import get_notifier
from clinic_scheduler.integrations.payments import get_payment_gateway
from clinic_scheduler.scheduling.lifecycle import AppointmentLifecycle

DATABASE_UNAVAILABLE = 'Database unavailable. Verify DATABASE_URL and database credentials.'


def ensure_database_ready() -> None:
    try:
        ensure_scheduling_indexes()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE,
        ) from exc


@contextmanager
def translate_errors(db: Session | None):
    """Roll back and surface scheduling and database errors as HTTP errors."""
    try:
        yield
    except SchedulingError as exc:
        if db is not None:
            db.rollback()
        raise HTTPException(status_code=exc.status_code, detail=exc.detail) from exc
    except SQLAlchemyError as exc:
        if db is not None:
            db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE,
        ) from exc


def get_policy() -> SchedulingPolicy:
    return get_scheduling_policy()


def get_lifecycle(
    db: Session = Depends(get_db),
    policy: SchedulingPolicy = Depends(get_policy),
) -> AppointmentLifecycle:
    return AppointmentLifecycle(
        db,
        payments=get_payment_gateway(),
        notifier=get_notifier(),
        policy=policy,
    )


def as_utc(value: datetime) -> datetime:
    """Attach UTC to the naive instants stored in the database."""
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value
