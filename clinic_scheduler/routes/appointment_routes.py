from datetime import date, datetime, timedelta
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, field_validator
from sqlalchemy.orm import Session

from clinic_scheduler.auth.actor import Actor
from clinic_scheduler.auth.dependencies import get_current_actor
from clinic_scheduler.database import get_db
from clinic_scheduler.models.appointment import (
    STATUS_CANCELED,
    STATUS_CANCELLATION_REQUESTED,
    STATUS_COMPLETED,
    STATUS_PENDING,
    STATUS_SCHEDULED,
    Appointment,
)
from clinic_scheduler.models.service import PAYMENT_TYPE_DEPOSIT, PAYMENT_TYPE_FULL
from clinic_scheduler.routes.common import as_utc, ensure_database_ready, get_lifecycle, translate_errors
from clinic_scheduler.scheduling.lifecycle import AppointmentLifecycle, BookingRequest, LifecycleResult

router = APIRouter(tags=['appointments'])

MAX_APPOINTMENT_NOTES_LENGTH = 2000
APPOINTMENT_STATUSES = (
    STATUS_PENDING,
    STATUS_SCHEDULED,
    STATUS_CANCELLATION_REQUESTED,
    STATUS_COMPLETED,
    STATUS_CANCELED,
)


def normalize_notes(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = value.strip()
    if len(normalized) > MAX_APPOINTMENT_NOTES_LENGTH:
        raise ValueError(f'Notes must be {MAX_APPOINTMENT_NOTES_LENGTH} characters or fewer.')
    return normalized or None


class CreateAppointmentRequest(BaseModel):
    organization_id: int
    location_id: int
    client_id: int
    staff_id: int
    service_id: int
    start_time: datetime
    end_time: datetime | None = None
    payment_type: str | None = None
    notes: str | None = None
    private_notes: str | None = None

    @field_validator('payment_type')
    @classmethod
    def validate_payment_type(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip().lower()
        if normalized not in (PAYMENT_TYPE_DEPOSIT, PAYMENT_TYPE_FULL):
            raise ValueError('Payment type must be "deposit" or "full".')
        return normalized

    @field_validator('notes', 'private_notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return normalize_notes(value)


class RescheduleRequest(BaseModel):
    start_time: datetime
    end_time: datetime | None = None
    staff_id: int | None = None


class UpdateAppointmentRequest(BaseModel):
    notes: str | None = None
    private_notes: str | None = None
    archived: bool | None = None

    @field_validator('notes', 'private_notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return normalize_notes(value)


class ConfirmPaymentRequest(BaseModel):
    payment_id: str

    @field_validator('payment_id')
    @classmethod
    def validate_payment_id(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Payment id is required.')
        return normalized


class CancelRequest(BaseModel):
    retain_deposit: bool | None = None


class ProcessCancellationRequest(BaseModel):
    approved: bool
    refund: bool | None = None


class CompleteRequest(BaseModel):
    final_total: Decimal | None = None

    @field_validator('final_total')
    @classmethod
    def validate_final_total(cls, value: Decimal | None) -> Decimal | None:
        if value is not None and value < 0:
            raise ValueError('Final total cannot be negative.')
        return value


class AppointmentResponse(BaseModel):
    id: int
    organization_id: int
    location_id: int
    client_id: int
    staff_id: int
    service_id: int
    start_time: datetime
    end_time: datetime
    status: str
    total_amount: Decimal
    deposit_paid: Decimal
    reminders_sent: int
    archived: bool
    notes: str | None = None
    private_notes: str | None = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator('start_time', 'end_time')
    @classmethod
    def attach_utc(cls, value: datetime) -> datetime:
        return as_utc(value)


class TransactionResponse(BaseModel):
    id: int
    appointment_id: int
    amount: Decimal
    type: str
    status: str
    provider_payment_id: str | None = None
    refunded_transaction_id: int | None = None
    description: str | None = None

    model_config = ConfigDict(from_attributes=True)


class LifecycleResponse(BaseModel):
    appointment: AppointmentResponse
    warnings: list[str] = []
    client_secret: str | None = None
    transactions: list[TransactionResponse] = []


class PaymentSummaryResponse(BaseModel):
    transactions: list[TransactionResponse]
    total_amount: Decimal
    total_paid: Decimal
    remaining_balance: Decimal
    deposit_paid: Decimal


def to_response(result: LifecycleResult) -> LifecycleResponse:
    return LifecycleResponse(
        appointment=AppointmentResponse.model_validate(result.appointment),
        warnings=result.warnings,
        client_secret=result.client_secret,
        transactions=[TransactionResponse.model_validate(item) for item in result.transactions],
    )


def hide_private_notes(actor: Actor, appointment: AppointmentResponse) -> AppointmentResponse:
    if actor.is_patient:
        return appointment.model_copy(update={'private_notes': None})
    return appointment


@router.get('', response_model=list[AppointmentResponse])
def list_appointments(
    organization_id: int | None = Query(default=None),
    staff_id: int | None = Query(default=None),
    status_filter: str | None = Query(default=None, alias='status'),
    from_date: date | None = Query(default=None),
    to_date: date | None = Query(default=None),
    include_archived: bool = Query(default=False),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    if status_filter is not None and status_filter not in APPOINTMENT_STATUSES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Invalid appointment status.')

    with translate_errors(db):
        query = db.query(Appointment)
        if actor.is_patient:
            if actor.client_id is None:
                return []
            query = query.filter(Appointment.client_id == actor.client_id)
        else:
            target_org = organization_id if organization_id is not None else actor.organization_id
            if target_org is None or not actor.can_manage(target_org):
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail='Only clinic staff can list these appointments.',
                )
            query = query.filter(Appointment.organization_id == target_org)

        if staff_id is not None:
            query = query.filter(Appointment.staff_id == staff_id)
        if status_filter is not None:
            query = query.filter(Appointment.status == status_filter)
        if from_date is not None:
            query = query.filter(Appointment.start_time >= datetime.combine(from_date, datetime.min.time()))
        if to_date is not None:
            query = query.filter(
                Appointment.start_time < datetime.combine(to_date + timedelta(days=1), datetime.min.time())
            )
        if not include_archived:
            query = query.filter(Appointment.archived.is_(False))

        appointments = query.order_by(Appointment.start_time.asc(), Appointment.id.asc()).all()
        return [
            hide_private_notes(actor, AppointmentResponse.model_validate(appointment))
            for appointment in appointments
        ]


@router.post('', response_model=LifecycleResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    actor: Actor = Depends(get_current_actor),
    lifecycle: AppointmentLifecycle = Depends(get_lifecycle),
):
    ensure_database_ready()

    with translate_errors(lifecycle.db):
        result = lifecycle.book(BookingRequest(**data.model_dump()), actor)
        return to_response(result)


@router.get('/{appointment_id}', response_model=AppointmentResponse)
def get_appointment(
    appointment_id: int,
    actor: Actor = Depends(get_current_actor),
    lifecycle: AppointmentLifecycle = Depends(get_lifecycle),
):
    ensure_database_ready()

    with translate_errors(lifecycle.db):
        appointment = lifecycle.get_appointment(appointment_id, actor)
        return hide_private_notes(actor, AppointmentResponse.model_validate(appointment))


@router.patch('/{appointment_id}', response_model=AppointmentResponse)
def update_appointment(
    appointment_id: int,
    data: UpdateAppointmentRequest,
    actor: Actor = Depends(get_current_actor),
    lifecycle: AppointmentLifecycle = Depends(get_lifecycle),
):
    ensure_database_ready()

    changes = data.model_dump(exclude_unset=True)
    if changes.get('archived', False) is None:
        changes.pop('archived')

    with translate_errors(lifecycle.db):
        appointment = lifecycle.update_details(appointment_id, actor, **changes)
        return AppointmentResponse.model_validate(appointment)


@router.put('/{appointment_id}/schedule', response_model=LifecycleResponse)
def reschedule_appointment(
    appointment_id: int,
    data: RescheduleRequest,
    actor: Actor = Depends(get_current_actor),
    lifecycle: AppointmentLifecycle = Depends(get_lifecycle),
):
    ensure_database_ready()

    with translate_errors(lifecycle.db):
        result = lifecycle.reschedule(
            appointment_id,
            actor,
            data.start_time,
            end_time=data.end_time,
            staff_id=data.staff_id,
        )
        return to_response(result)


@router.post('/{appointment_id}/confirm-payment', response_model=LifecycleResponse)
def confirm_appointment_payment(
    appointment_id: int,
    data: ConfirmPaymentRequest,
    actor: Actor = Depends(get_current_actor),
    lifecycle: AppointmentLifecycle = Depends(get_lifecycle),
):
    ensure_database_ready()

    with translate_errors(lifecycle.db):
        return to_response(lifecycle.confirm_payment(appointment_id, data.payment_id, actor))


@router.post('/{appointment_id}/cancellation-request', response_model=LifecycleResponse)
def request_appointment_cancellation(
    appointment_id: int,
    actor: Actor = Depends(get_current_actor),
    lifecycle: AppointmentLifecycle = Depends(get_lifecycle),
):
    ensure_database_ready()

    with translate_errors(lifecycle.db):
        return to_response(lifecycle.request_cancellation(appointment_id, actor))


@router.post('/{appointment_id}/cancel', response_model=LifecycleResponse)
def cancel_appointment(
    appointment_id: int,
    data: CancelRequest,
    actor: Actor = Depends(get_current_actor),
    lifecycle: AppointmentLifecycle = Depends(get_lifecycle),
):
    ensure_database_ready()

    with translate_errors(lifecycle.db):
        return to_response(lifecycle.cancel(appointment_id, actor, retain_deposit=data.retain_deposit))


@router.post('/{appointment_id}/process-cancellation', response_model=LifecycleResponse)
def process_appointment_cancellation(
    appointment_id: int,
    data: ProcessCancellationRequest,
    actor: Actor = Depends(get_current_actor),
    lifecycle: AppointmentLifecycle = Depends(get_lifecycle),
):
    ensure_database_ready()

    with translate_errors(lifecycle.db):
        result = lifecycle.process_cancellation(appointment_id, actor, data.approved, refund=data.refund)
        return to_response(result)


@router.post('/{appointment_id}/complete', response_model=LifecycleResponse)
def complete_appointment(
    appointment_id: int,
    data: CompleteRequest,
    actor: Actor = Depends(get_current_actor),
    lifecycle: AppointmentLifecycle = Depends(get_lifecycle),
):
    ensure_database_ready()

    with translate_errors(lifecycle.db):
        return to_response(lifecycle.complete(appointment_id, actor, final_total=data.final_total))


@router.post('/{appointment_id}/reminders', response_model=LifecycleResponse)
def send_appointment_reminder(
    appointment_id: int,
    actor: Actor = Depends(get_current_actor),
    lifecycle: AppointmentLifecycle = Depends(get_lifecycle),
):
    ensure_database_ready()

    with translate_errors(lifecycle.db):
        return to_response(lifecycle.send_reminder(appointment_id, actor))


@router.get('/{appointment_id}/transactions', response_model=PaymentSummaryResponse)
def get_appointment_transactions(
    appointment_id: int,
    actor: Actor = Depends(get_current_actor),
    lifecycle: AppointmentLifecycle = Depends(get_lifecycle),
):
    ensure_database_ready()

    with translate_errors(lifecycle.db):
        summary = lifecycle.payment_summary(appointment_id, actor)
        return PaymentSummaryResponse(
            transactions=[TransactionResponse.model_validate(item) for item in summary['transactions']],
            total_amount=summary['total_amount'],
            total_paid=summary['total_paid'],
            remaining_balance=summary['remaining_balance'],
            deposit_paid=summary['deposit_paid'],
        )
