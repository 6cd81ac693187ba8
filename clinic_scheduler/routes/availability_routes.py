from datetime import date, datetime, time

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, field_serializer, field_validator, model_validator
from sqlalchemy.orm import Session

from clinic_scheduler.auth.actor import Actor
from clinic_scheduler.auth.dependencies import get_current_actor
from clinic_scheduler.core.config import SchedulingPolicy
from clinic_scheduler.database import get_db
from clinic_scheduler.models.availability import AvailabilityWindow
from clinic_scheduler.models.staff import Staff
from clinic_scheduler.routes.common import as_utc, ensure_database_ready, get_policy, translate_errors
from clinic_scheduler.scheduling import availability, business_calendar, matcher, slots
from clinic_scheduler.scheduling.timeutils import format_hhmm

router = APIRouter(tags=['availability'])

MAX_SLOT_INTERVAL_MINUTES = 240


class WindowRequest(BaseModel):
    day_of_week: int
    start_time: time
    end_time: time
    is_recurring: bool = True

    @field_validator('day_of_week')
    @classmethod
    def validate_day_of_week(cls, value: int) -> int:
        if not 0 <= value <= 6:
            raise ValueError('Day of week must be between 0 (Sunday) and 6 (Saturday).')
        return value

    @model_validator(mode='after')
    def validate_order(self) -> 'WindowRequest':
        if self.start_time >= self.end_time:
            raise ValueError('Availability must start before it ends.')
        return self


class WindowUpdateRequest(BaseModel):
    day_of_week: int | None = None
    start_time: time | None = None
    end_time: time | None = None
    is_recurring: bool | None = None


class WindowResponse(BaseModel):
    id: int
    staff_id: int
    day_of_week: int
    start_time: time
    end_time: time
    is_recurring: bool

    model_config = ConfigDict(from_attributes=True)

    @field_serializer('start_time', 'end_time')
    def serialize_time(self, value: time) -> str:
        return format_hhmm(value)


class TimeOffRequest(BaseModel):
    date: date
    reason: str | None = None

    @field_validator('reason')
    @classmethod
    def normalize_reason(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        return normalized or None


class TimeOffResponse(BaseModel):
    id: int
    staff_id: int
    date: date
    reason: str | None = None

    model_config = ConfigDict(from_attributes=True)


class DayHoursModel(BaseModel):
    open: time
    close: time

    @model_validator(mode='after')
    def validate_order(self) -> 'DayHoursModel':
        if self.open >= self.close:
            raise ValueError('Opening time must be before closing time.')
        return self

    @field_serializer('open', 'close')
    def serialize_time(self, value: time) -> str:
        return format_hhmm(value)


class BusinessHoursRequest(BaseModel):
    timezone: str | None = None
    hours: dict[int, DayHoursModel | None]

    @field_validator('hours')
    @classmethod
    def validate_weekdays(cls, value: dict[int, DayHoursModel | None]) -> dict[int, DayHoursModel | None]:
        for weekday in value:
            if not 0 <= weekday <= 6:
                raise ValueError('Weekday must be between 0 (Sunday) and 6 (Saturday).')
        return value


class BusinessHoursResponse(BaseModel):
    location_id: int
    timezone: str
    configured: bool
    hours: dict[int, DayHoursModel | None]


class SlotResponse(BaseModel):
    time: str
    available: bool
    datetime: datetime
    end_time: datetime


class StaffResponse(BaseModel):
    id: int
    name: str
    title: str | None = None

    model_config = ConfigDict(from_attributes=True)


def require_staff_editor(actor: Actor, staff: Staff) -> None:
    if actor.can_manage(staff.organization_id):
        return
    if staff.user_id is not None and actor.user_id == staff.user_id:
        return
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail='Only clinic admins or the staff member can change this availability.',
    )


def require_location_admin(actor: Actor, organization_id: int) -> None:
    if not actor.can_manage(organization_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail='Only clinic staff can change business hours.',
        )


@router.get('/staff/{staff_id}/windows', response_model=list[WindowResponse])
def list_staff_windows(staff_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    with translate_errors(db):
        availability.get_staff(db, staff_id)
        return availability.list_windows(db, staff_id)


@router.post('/staff/{staff_id}/windows', response_model=WindowResponse, status_code=status.HTTP_201_CREATED)
def create_staff_window(
    staff_id: int,
    data: WindowRequest,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with translate_errors(db):
        require_staff_editor(actor, availability.get_staff(db, staff_id))
        window = availability.create_window(
            db,
            staff_id,
            data.day_of_week,
            data.start_time,
            data.end_time,
            is_recurring=data.is_recurring,
        )
        db.commit()
        db.refresh(window)

        return window


@router.put('/windows/{window_id}', response_model=WindowResponse)
def update_staff_window(
    window_id: int,
    data: WindowUpdateRequest,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with translate_errors(db):
        existing = db.query(AvailabilityWindow).filter(AvailabilityWindow.id == window_id).first()
        if not existing:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Availability window not found.')
        require_staff_editor(actor, availability.get_staff(db, existing.staff_id))

        window = availability.update_window(
            db,
            window_id,
            weekday=data.day_of_week,
            start_time=data.start_time,
            end_time=data.end_time,
            is_recurring=data.is_recurring,
        )
        db.commit()
        db.refresh(window)

        return window


@router.delete('/windows/{window_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_staff_window(
    window_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with translate_errors(db):
        existing = db.query(AvailabilityWindow).filter(AvailabilityWindow.id == window_id).first()
        if not existing:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Availability window not found.')
        require_staff_editor(actor, availability.get_staff(db, existing.staff_id))

        availability.delete_window(db, window_id)
        db.commit()


@router.get('/staff/{staff_id}/time-off', response_model=list[TimeOffResponse])
def list_staff_time_off(
    staff_id: int,
    from_date: date | None = Query(default=None),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with translate_errors(db):
        availability.get_staff(db, staff_id)
        return availability.list_time_off(db, staff_id, from_date=from_date)


@router.post('/staff/{staff_id}/time-off', response_model=TimeOffResponse, status_code=status.HTTP_201_CREATED)
def add_staff_time_off(
    staff_id: int,
    data: TimeOffRequest,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with translate_errors(db):
        require_staff_editor(actor, availability.get_staff(db, staff_id))
        time_off = availability.add_time_off(db, staff_id, data.date, reason=data.reason)
        db.commit()
        db.refresh(time_off)

        return time_off


@router.delete('/staff/{staff_id}/time-off/{day}', status_code=status.HTTP_204_NO_CONTENT)
def remove_staff_time_off(
    staff_id: int,
    day: date,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with translate_errors(db):
        require_staff_editor(actor, availability.get_staff(db, staff_id))
        availability.remove_time_off(db, staff_id, day)
        db.commit()


def build_hours_response(db: Session, location) -> BusinessHoursResponse:
    rows = business_calendar.weekly_hours(db, location)
    return BusinessHoursResponse(
        location_id=location.id,
        timezone=location.timezone,
        configured=bool(location.business_hours_configured),
        hours={
            weekday: DayHoursModel(open=rows[weekday].open_time, close=rows[weekday].close_time)
            if weekday in rows else None
            for weekday in range(7)
        },
    )


@router.get('/locations/{location_id}/hours', response_model=BusinessHoursResponse)
def get_location_hours(location_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    with translate_errors(db):
        location = business_calendar.get_location(db, location_id)
        return build_hours_response(db, location)


@router.put('/locations/{location_id}/hours', response_model=BusinessHoursResponse)
def set_location_hours(
    location_id: int,
    data: BusinessHoursRequest,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with translate_errors(db):
        location = business_calendar.get_location(db, location_id)
        require_location_admin(actor, location.organization_id)

        business_calendar.set_business_hours(
            db,
            location,
            {
                weekday: (day_hours.open, day_hours.close) if day_hours else None
                for weekday, day_hours in data.hours.items()
            },
            timezone=data.timezone,
        )
        db.commit()
        db.refresh(location)

        return build_hours_response(db, location)


@router.get('/slots', response_model=list[SlotResponse])
def list_slots(
    staff_id: int = Query(...),
    location_id: int = Query(...),
    slot_date: date = Query(..., alias='date'),
    interval_minutes: int | None = Query(default=None, ge=5, le=MAX_SLOT_INTERVAL_MINUTES),
    policy: SchedulingPolicy = Depends(get_policy),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with translate_errors(db):
        generated = slots.generate_slots(
            db,
            staff_id,
            location_id,
            slot_date,
            policy,
            interval_minutes=interval_minutes,
        )
        return [
            SlotResponse(
                time=slot.time,
                available=slot.available,
                datetime=as_utc(slot.datetime),
                end_time=as_utc(slot.end),
            )
            for slot in generated
        ]


@router.get('/staff', response_model=list[StaffResponse])
def list_available_staff(
    organization_id: int = Query(...),
    start_time: datetime = Query(...),
    end_time: datetime = Query(...),
    service_id: int | None = Query(default=None),
    location_id: int | None = Query(default=None),
    policy: SchedulingPolicy = Depends(get_policy),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with translate_errors(db):
        tz_name = policy.default_timezone
        if location_id is not None:
            location = business_calendar.get_location(db, location_id)
            if location.organization_id != organization_id:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Location not found.')
            tz_name = location.timezone

        return matcher.find_available_staff(
            db,
            organization_id,
            start_time,
            end_time,
            tz_name,
            service_id=service_id,
        )
