"""Appointment lifecycle.

States::

    pending ──(payment confirmed)──> scheduled ──> completed
       │                               │
       ├──> cancellation_requested <───┤
       │        │ approve -> canceled
       │        │ deny    -> status held before the request
       └──────> canceled <─────────────┘   (clinic cancels directly)

``completed`` and ``canceled`` are terminal. Each operation runs as one
database transaction: the rows it touches are locked, the payment provider is
called inside the transaction and a provider failure rolls everything back,
except refunds the provider has already made, which are kept.
Notifications go out after commit and never undo the change.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.orm import Session

from clinic_scheduler.auth.actor import Actor
from clinic_scheduler.core.config import SchedulingPolicy
from clinic_scheduler.core.errors import (
    InvalidTimeRange,
    InvalidTransition,
    NotFound,
    PaymentFailed,
    PaymentRequired,
    PermissionDenied,
    SchedulingError,
    StaffNotAvailable,
)
from clinic_scheduler.database import lock_row
from clinic_scheduler.integrations.notifications import Notifier
from clinic_scheduler.integrations.payments import PaymentGateway, PaymentProviderError
from clinic_scheduler.integrations.rewards import RewardLedger
from clinic_scheduler.models.appointment import (
    STATUS_CANCELED,
    STATUS_CANCELLATION_REQUESTED,
    STATUS_COMPLETED,
    STATUS_PENDING,
    STATUS_SCHEDULED,
    TERMINAL_STATUSES,
    Appointment,
)
from clinic_scheduler.models.audit_log import AuditLog
from clinic_scheduler.models.client import Client
from clinic_scheduler.models.organization import Location
from clinic_scheduler.models.service import PAYMENT_TYPE_DEPOSIT, PAYMENT_TYPE_NONE, Service
from clinic_scheduler.models.staff import Staff
from clinic_scheduler.models.transaction import (
    CHARGE_TYPES,
    STATUS_COMPLETED as TXN_COMPLETED,
    STATUS_PENDING as TXN_PENDING,
    TYPE_BALANCE,
    TYPE_DEPOSIT,
    TYPE_FULL_PAYMENT,
    TYPE_REFUND,
    Transaction,
)
from clinic_scheduler.scheduling import business_calendar
from clinic_scheduler.scheduling.conflicts import ensure_slot_free
from clinic_scheduler.scheduling.matcher import ensure_staff_available
from clinic_scheduler.scheduling.timeutils import day_of_week, utc_to_local, validate_range

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    STATUS_PENDING: frozenset({STATUS_SCHEDULED, STATUS_CANCELLATION_REQUESTED, STATUS_CANCELED}),
    STATUS_SCHEDULED: frozenset({STATUS_COMPLETED, STATUS_CANCELLATION_REQUESTED, STATUS_CANCELED}),
    STATUS_CANCELLATION_REQUESTED: frozenset({STATUS_CANCELED, STATUS_SCHEDULED, STATUS_PENDING}),
    STATUS_COMPLETED: frozenset(),
    STATUS_CANCELED: frozenset(),
}

ZERO = Decimal('0.00')


def check_transition(current: str, target: str) -> None:
    if target not in ALLOWED_TRANSITIONS.get(current, frozenset()):
        raise InvalidTransition(current, target)


@dataclass
class BookingRequest:
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


@dataclass
class LifecycleResult:
    appointment: Appointment
    warnings: list[str] = field(default_factory=list)
    client_secret: str | None = None
    transactions: list[Transaction] = field(default_factory=list)


def snapshot(appointment: Appointment) -> dict:
    return {
        'status': appointment.status,
        'staff_id': appointment.staff_id,
        'start_time': appointment.start_time.isoformat() if appointment.start_time else None,
        'end_time': appointment.end_time.isoformat() if appointment.end_time else None,
        'total_amount': str(appointment.total_amount or ZERO),
        'deposit_paid': str(appointment.deposit_paid or ZERO),
        'archived': bool(appointment.archived),
        'notes': appointment.notes,
        'private_notes': appointment.private_notes,
    }


def net_paid(db: Session, appointment_id: int) -> Decimal:
    """Completed charges minus completed refunds."""
    rows = db.query(Transaction.type, func.sum(Transaction.amount)).filter(
        Transaction.appointment_id == appointment_id,
        Transaction.status == TXN_COMPLETED,
    ).group_by(Transaction.type).all()

    total = ZERO
    for transaction_type, amount in rows:
        if transaction_type in CHARGE_TYPES:
            total += Decimal(amount)
        elif transaction_type == TYPE_REFUND:
            total -= Decimal(amount)
    return total


def charge_plan(service: Service, requested: str | None) -> tuple[str, Decimal] | None:
    """Transaction type and amount to collect at booking, or None if free."""
    price = Decimal(service.price or 0)
    if service.payment_type in (None, PAYMENT_TYPE_NONE) or price <= 0:
        return None

    deposit = Decimal(service.deposit_amount or 0)
    wants_deposit = requested == PAYMENT_TYPE_DEPOSIT or (
        requested is None and service.payment_type == PAYMENT_TYPE_DEPOSIT
    )
    if wants_deposit and service.deposit_required and deposit > 0:
        return TYPE_DEPOSIT, deposit

    return TYPE_FULL_PAYMENT, price


class AppointmentLifecycle:
    def __init__(
        self,
        db: Session,
        payments: PaymentGateway,
        notifier: Notifier,
        policy: SchedulingPolicy,
        rewards: RewardLedger | None = None,
    ):
        self.db = db
        self.payments = payments
        self.notifier = notifier
        self.policy = policy
        self.rewards = rewards or RewardLedger()

    # -- lookups -----------------------------------------------------------

    def get_appointment(self, appointment_id: int, actor: Actor) -> Appointment:
        appointment = self.db.query(Appointment).filter(Appointment.id == appointment_id).first()
        if not appointment:
            raise NotFound('Appointment not found.')
        self._require_access(actor, appointment)
        return appointment

    def _lock_appointment(self, appointment_id: int) -> Appointment:
        appointment = lock_row(self.db, Appointment, appointment_id)
        if not appointment:
            raise NotFound('Appointment not found.')
        return appointment

    def _require_access(self, actor: Actor, appointment: Appointment) -> None:
        if actor.is_patient:
            if actor.client_id != appointment.client_id:
                raise PermissionDenied('Only the client who booked this appointment can access it.')
        elif not actor.can_manage(appointment.organization_id):
            raise PermissionDenied()

    def _require_clinic(self, actor: Actor, organization_id: int) -> None:
        if not actor.can_manage(organization_id):
            raise PermissionDenied('Only clinic staff can perform this action.')

    def _load(self, model, row_id: int, organization_id: int, label: str):
        row = self.db.query(model).filter(model.id == row_id).first()
        if not row or row.organization_id != organization_id:
            raise NotFound(f'{label} not found.')
        return row

    # -- validation --------------------------------------------------------

    def _validate_booking_window(
        self,
        location: Location,
        staff: Staff,
        start: datetime,
        end: datetime,
    ) -> None:
        local_start = utc_to_local(start, location.timezone)
        local_end = utc_to_local(end, location.timezone)
        if local_start.date() != local_end.date():
            raise InvalidTimeRange('Appointments must start and end on the same day.')

        hours = business_calendar.hours_for(
            self.db,
            location,
            day_of_week(local_start.date()),
            self.policy.calendar_defaults,
        )
        if hours is None:
            raise InvalidTimeRange('The location is closed on the requested day.')
        if not hours.contains(local_start.time().replace(tzinfo=None), local_end.time().replace(tzinfo=None)):
            raise InvalidTimeRange('Appointment is outside business hours.')

        ensure_staff_available(self.db, staff, start, end, location.timezone)

    # -- side effects ------------------------------------------------------

    def _audit(self, actor: Actor, action: str, appointment: Appointment, before: dict | None, **extra) -> None:
        changes = {'before': before, 'after': snapshot(appointment)}
        changes.update(extra)
        self.db.add(
            AuditLog(
                organization_id=appointment.organization_id,
                actor_id=actor.user_id,
                actor_role=actor.role,
                action=action,
                resource='appointment',
                resource_id=appointment.id,
                changes=changes,
            )
        )

    def _notify(self, appointment: Appointment, template_category: str, to_staff: bool = False) -> list[str]:
        client = self.db.query(Client).filter(Client.id == appointment.client_id).first()
        service = self.db.query(Service).filter(Service.id == appointment.service_id).first()
        location = self.db.query(Location).filter(Location.id == appointment.location_id).first()

        if to_staff:
            staff = self.db.query(Staff).filter(Staff.id == appointment.staff_id).first()
            recipient = staff.phone if staff else None
        else:
            recipient = client.phone if client else None

        start = utc_to_local(appointment.start_time, location.timezone if location else None)
        variables = {
            'client_name': f'{client.first_name} {client.last_name}' if client else 'Client',
            'service_name': service.name if service else 'appointment',
            'start': start.strftime('%Y-%m-%d %H:%M'),
        }

        try:
            self.notifier.notify(recipient, template_category, variables)
        except Exception as exc:
            logger.warning(
                'Notification %s for appointment %s failed: %s',
                template_category,
                appointment.id,
                exc,
                exc_info=True,
            )
            return [f'Notification "{template_category}" could not be sent.']
        return []

    def _charge(self, appointment: Appointment, transaction_type: str, amount: Decimal, **metadata):
        try:
            charge = self.payments.create_charge(
                amount,
                {
                    'appointment_id': appointment.id,
                    'organization_id': appointment.organization_id,
                    'client_id': appointment.client_id,
                    'payment_type': transaction_type,
                    **metadata,
                },
            )
        except PaymentProviderError as exc:
            self.db.rollback()
            raise PaymentFailed(str(exc)) from exc

        transaction = Transaction(
            organization_id=appointment.organization_id,
            appointment_id=appointment.id,
            client_id=appointment.client_id,
            amount=amount,
            type=transaction_type,
            status=TXN_PENDING,
            provider_payment_id=charge.id,
        )
        self.db.add(transaction)
        return charge, transaction

    def _refund_payments(self, appointment: Appointment) -> list[Transaction]:
        completed = self.db.query(Transaction).filter(
            Transaction.appointment_id == appointment.id,
            Transaction.status == TXN_COMPLETED,
        ).order_by(Transaction.id.asc()).all()

        refunded: dict[int, Decimal] = {}
        for transaction in completed:
            if transaction.type == TYPE_REFUND and transaction.refunded_transaction_id is not None:
                refunded[transaction.refunded_transaction_id] = (
                    refunded.get(transaction.refunded_transaction_id, ZERO) + Decimal(transaction.amount)
                )

        refunds = []
        issued = []
        for charge in completed:
            if charge.type not in CHARGE_TYPES:
                continue
            remaining = Decimal(charge.amount) - refunded.get(charge.id, ZERO)
            if remaining <= 0:
                continue

            try:
                provider_refund = self.payments.refund(charge.provider_payment_id, remaining)
            except PaymentProviderError as exc:
                self._keep_issued_refunds(appointment.id, issued)
                raise PaymentFailed(str(exc)) from exc

            values = {
                'organization_id': appointment.organization_id,
                'appointment_id': appointment.id,
                'client_id': appointment.client_id,
                'amount': remaining,
                'type': TYPE_REFUND,
                'status': TXN_COMPLETED,
                'provider_payment_id': provider_refund.id,
                'refunded_transaction_id': charge.id,
                'description': f'Refund of {charge.type} transaction {charge.id}',
            }
            issued.append(values)
            refund = Transaction(**values)
            self.db.add(refund)
            refunds.append(refund)

        return refunds

    def _keep_issued_refunds(self, appointment_id: int, issued: list[dict]) -> None:
        """Roll back the operation but record refunds the provider already made.

        A retry then skips the charges these rows refund.
        """
        self.db.rollback()
        if not issued:
            return

        self.db.add_all([Transaction(**values) for values in issued])
        self.db.commit()
        logger.warning(
            'Recorded %s refund(s) for appointment %s before a later refund failed',
            len(issued),
            appointment_id,
        )

    # -- operations --------------------------------------------------------

    def book(self, request: BookingRequest, actor: Actor) -> LifecycleResult:
        if actor.is_patient:
            if actor.client_id != request.client_id:
                raise PermissionDenied('Clients can only book appointments for themselves.')
        else:
            self._require_clinic(actor, request.organization_id)

        service = self._load(Service, request.service_id, request.organization_id, 'Service')
        location = self._load(Location, request.location_id, request.organization_id, 'Location')
        staff = self._load(Staff, request.staff_id, request.organization_id, 'Staff member')
        self._load(Client, request.client_id, request.organization_id, 'Client')

        if not service.is_active:
            raise NotFound('Service not found.')
        if service.available_staff and staff.id not in {member.id for member in service.available_staff}:
            raise StaffNotAvailable(f'{staff.name} does not perform {service.name}.')

        end_time = request.end_time or request.start_time + timedelta(minutes=service.duration_minutes)
        start, end = validate_range(request.start_time, end_time)
        self._validate_booking_window(location, staff, start, end)

        # Serialises bookings per staff member until commit.
        lock_row(self.db, Staff, staff.id)
        ensure_slot_free(self.db, staff.id, start, end)

        plan = charge_plan(service, request.payment_type)
        appointment = Appointment(
            organization_id=request.organization_id,
            location_id=location.id,
            client_id=request.client_id,
            staff_id=staff.id,
            service_id=service.id,
            start_time=start,
            end_time=end,
            status=STATUS_PENDING if plan else STATUS_SCHEDULED,
            total_amount=Decimal(service.price or 0),
            deposit_paid=ZERO,
            reminders_sent=0,
            archived=False,
            notes=request.notes,
            private_notes=request.private_notes,
        )
        self.db.add(appointment)
        self.db.flush()

        result = LifecycleResult(appointment=appointment)
        if plan:
            transaction_type, amount = plan
            charge, transaction = self._charge(appointment, transaction_type, amount, service_id=service.id)
            result.client_secret = charge.client_secret
            result.transactions.append(transaction)

        self._audit(actor, 'create', appointment, None)
        self.db.commit()
        self.db.refresh(appointment)

        logger.info(
            'Booked appointment %s for staff %s at %s (%s)',
            appointment.id,
            staff.id,
            appointment.start_time,
            appointment.status,
        )
        category = 'appointment_pending_payment' if plan else 'appointment_booked'
        result.warnings.extend(self._notify(appointment, category))
        return result

    def confirm_payment(self, appointment_id: int, payment_id: str, actor: Actor) -> LifecycleResult:
        """Record a succeeded payment against its appointment.

        The charge is marked completed whatever the appointment status, since
        the money has moved. Only a ``pending`` appointment is promoted to
        ``scheduled``. If the appointment was canceled with a refund, the
        payment is refunded. Redelivery of an applied confirmation only retries
        such a refund.
        """
        appointment = self._lock_appointment(appointment_id)
        self._require_access(actor, appointment)

        transaction = self.db.query(Transaction).filter(
            Transaction.appointment_id == appointment.id,
            Transaction.provider_payment_id == payment_id,
            Transaction.type.in_(CHARGE_TYPES),
        ).first()
        if not transaction:
            raise NotFound('Payment not found for this appointment.')

        result = LifecycleResult(appointment=appointment, transactions=[transaction])
        promoted = False

        if transaction.status == TXN_COMPLETED:
            self.db.rollback()
        else:
            try:
                confirmed = self.payments.confirmed(payment_id)
            except PaymentProviderError as exc:
                self.db.rollback()
                raise PaymentFailed(str(exc)) from exc
            if not confirmed:
                self.db.rollback()
                raise PaymentRequired()

            before = snapshot(appointment)
            transaction.status = TXN_COMPLETED
            if transaction.type in (TYPE_DEPOSIT, TYPE_FULL_PAYMENT):
                appointment.deposit_paid = Decimal(appointment.deposit_paid or 0) + Decimal(transaction.amount)

            if appointment.status == STATUS_PENDING:
                appointment.status = STATUS_SCHEDULED
                promoted = True
            elif appointment.status == STATUS_CANCELLATION_REQUESTED and appointment.previous_status == STATUS_PENDING:
                # A denied request now returns to the paid state.
                appointment.previous_status = STATUS_SCHEDULED

            self._audit(
                actor,
                'confirm_payment',
                appointment,
                before,
                payment_id=payment_id,
                transaction_type=transaction.type,
            )
            if appointment.status in (STATUS_SCHEDULED, STATUS_COMPLETED):
                self.rewards.award_for_appointment(self.db, appointment, Decimal(transaction.amount))
            self.db.commit()

            logger.info(
                'Payment %s confirmed for appointment %s (%s)',
                payment_id,
                appointment.id,
                appointment.status,
            )

        if appointment.status == STATUS_CANCELED and appointment.deposit_retained is False:
            result.transactions.extend(self._refund_after_cancellation(appointment.id, actor))

        self.db.refresh(appointment)
        self.db.refresh(transaction)
        if promoted:
            result.warnings.extend(self._notify(appointment, 'appointment_confirmed'))
        return result

    def _refund_after_cancellation(self, appointment_id: int, actor: Actor) -> list[Transaction]:
        """Refund payments that completed after a refunding cancellation."""
        appointment = self._lock_appointment(appointment_id)
        before = snapshot(appointment)
        refunds = self._refund_payments(appointment)
        if not refunds:
            self.db.rollback()
            return []

        self._audit(
            actor,
            'refund_after_cancellation',
            appointment,
            before,
            refunded_amount=str(sum((Decimal(item.amount) for item in refunds), ZERO)),
        )
        self.db.commit()

        logger.info('Refunded late payment for canceled appointment %s', appointment_id)
        return refunds

    def request_cancellation(self, appointment_id: int, actor: Actor) -> LifecycleResult:
        appointment = self._lock_appointment(appointment_id)
        if not actor.is_patient or actor.client_id != appointment.client_id:
            raise PermissionDenied('Only the client who booked this appointment can request cancellation.')

        check_transition(appointment.status, STATUS_CANCELLATION_REQUESTED)

        before = snapshot(appointment)
        appointment.previous_status = appointment.status
        appointment.status = STATUS_CANCELLATION_REQUESTED

        self._audit(actor, 'request_cancellation', appointment, before)
        self.db.commit()
        self.db.refresh(appointment)

        logger.info('Cancellation requested for appointment %s', appointment.id)
        result = LifecycleResult(appointment=appointment)
        result.warnings.extend(self._notify(appointment, 'cancellation_requested', to_staff=True))
        return result

    def cancel(self, appointment_id: int, actor: Actor, retain_deposit: bool | None = None) -> LifecycleResult:
        """Clinic-initiated cancellation, no approval step."""
        appointment = self._lock_appointment(appointment_id)
        self._require_clinic(actor, appointment.organization_id)
        check_transition(appointment.status, STATUS_CANCELED)

        retain = self.policy.retain_deposit_by_default if retain_deposit is None else retain_deposit
        return self._apply_cancellation(appointment, actor, 'cancel', refund=not retain)

    def process_cancellation(
        self,
        appointment_id: int,
        actor: Actor,
        approved: bool,
        refund: bool | None = None,
    ) -> LifecycleResult:
        appointment = self._lock_appointment(appointment_id)
        self._require_clinic(actor, appointment.organization_id)

        if appointment.status != STATUS_CANCELLATION_REQUESTED:
            target = STATUS_CANCELED if approved else STATUS_SCHEDULED
            raise InvalidTransition(appointment.status, target)

        if approved:
            issue_refund = (not self.policy.retain_deposit_by_default) if refund is None else refund
            return self._apply_cancellation(appointment, actor, 'approve_cancellation', refund=issue_refund)

        restored = appointment.previous_status or STATUS_SCHEDULED
        check_transition(appointment.status, restored)

        before = snapshot(appointment)
        appointment.status = restored
        appointment.previous_status = None

        self._audit(actor, 'deny_cancellation', appointment, before)
        self.db.commit()
        self.db.refresh(appointment)

        logger.info('Cancellation denied for appointment %s', appointment.id)
        result = LifecycleResult(appointment=appointment)
        result.warnings.extend(self._notify(appointment, 'cancellation_denied'))
        return result

    def _apply_cancellation(self, appointment: Appointment, actor: Actor, action: str, refund: bool) -> LifecycleResult:
        before = snapshot(appointment)
        refunds = self._refund_payments(appointment) if refund else []

        appointment.status = STATUS_CANCELED
        appointment.previous_status = None
        appointment.deposit_retained = not refund

        self._audit(
            actor,
            action,
            appointment,
            before,
            retain_deposit=not refund,
            refunded_amount=str(sum((Decimal(item.amount) for item in refunds), ZERO)),
        )
        self.db.commit()
        self.db.refresh(appointment)

        logger.info(
            'Appointment %s canceled by %s (deposit %s)',
            appointment.id,
            actor.role,
            'refunded' if refund else 'retained',
        )
        result = LifecycleResult(appointment=appointment, transactions=refunds)
        result.warnings.extend(self._notify(appointment, 'appointment_canceled'))
        return result

    def complete(self, appointment_id: int, actor: Actor, final_total: Decimal | None = None) -> LifecycleResult:
        appointment = self._lock_appointment(appointment_id)
        self._require_clinic(actor, appointment.organization_id)
        check_transition(appointment.status, STATUS_COMPLETED)

        before = snapshot(appointment)
        paid = net_paid(self.db, appointment.id)
        result = LifecycleResult(appointment=appointment)

        balance = ZERO
        if final_total is not None:
            final_total = Decimal(final_total)
            if final_total < 0:
                raise SchedulingError('Final total cannot be negative.')
            balance = final_total - paid
            if balance > 0:
                charge, transaction = self._charge(
                    appointment,
                    TYPE_BALANCE,
                    balance,
                    purpose='remaining_balance',
                )
                transaction.description = 'Remaining balance for appointment'
                result.client_secret = charge.client_secret
                result.transactions.append(transaction)
            appointment.total_amount = final_total

        appointment.status = STATUS_COMPLETED
        self._audit(actor, 'complete', appointment, before, total_paid=str(paid), balance_charged=str(max(balance, ZERO)))
        if paid > 0:
            self.rewards.award_for_appointment(self.db, appointment, paid)
        self.db.commit()
        self.db.refresh(appointment)

        logger.info('Appointment %s completed', appointment.id)
        result.warnings.extend(self._notify(appointment, 'appointment_completed'))
        return result

    def reschedule(
        self,
        appointment_id: int,
        actor: Actor,
        start_time: datetime,
        end_time: datetime | None = None,
        staff_id: int | None = None,
    ) -> LifecycleResult:
        appointment = self._lock_appointment(appointment_id)
        self._require_clinic(actor, appointment.organization_id)
        if appointment.status in TERMINAL_STATUSES:
            raise InvalidTransition(
                appointment.status,
                appointment.status,
                detail=f'A {appointment.status} appointment cannot be rescheduled.',
            )

        location = self._load(Location, appointment.location_id, appointment.organization_id, 'Location')
        staff = self._load(Staff, staff_id or appointment.staff_id, appointment.organization_id, 'Staff member')

        duration = appointment.end_time - appointment.start_time
        start, end = validate_range(start_time, end_time or start_time + duration)
        self._validate_booking_window(location, staff, start, end)

        lock_row(self.db, Staff, staff.id)
        ensure_slot_free(self.db, staff.id, start, end, exclude_appointment_id=appointment.id)

        before = snapshot(appointment)
        appointment.staff_id = staff.id
        appointment.start_time = start
        appointment.end_time = end

        self._audit(actor, 'reschedule', appointment, before)
        self.db.commit()
        self.db.refresh(appointment)

        logger.info('Appointment %s moved to %s', appointment.id, appointment.start_time)
        result = LifecycleResult(appointment=appointment)
        result.warnings.extend(self._notify(appointment, 'appointment_rescheduled'))
        return result

    def update_details(self, appointment_id: int, actor: Actor, **changes) -> Appointment:
        """Update notes, private notes or the archived flag."""
        allowed = {'notes', 'private_notes', 'archived'}
        unknown = set(changes) - allowed
        if unknown:
            raise ValueError(f'Unsupported appointment fields: {", ".join(sorted(unknown))}')

        appointment = self._lock_appointment(appointment_id)
        self._require_clinic(actor, appointment.organization_id)

        before = snapshot(appointment)
        for name, value in changes.items():
            setattr(appointment, name, value)

        self._audit(actor, 'update', appointment, before)
        self.db.commit()
        self.db.refresh(appointment)
        return appointment

    def send_reminder(self, appointment_id: int, actor: Actor) -> LifecycleResult:
        appointment = self._lock_appointment(appointment_id)
        self._require_clinic(actor, appointment.organization_id)
        if appointment.status not in (STATUS_PENDING, STATUS_SCHEDULED):
            raise InvalidTransition(
                appointment.status,
                appointment.status,
                detail='Reminders can only be sent for upcoming appointments.',
            )

        warnings = self._notify(appointment, 'appointment_reminder')
        if warnings:
            self.db.rollback()
            return LifecycleResult(appointment=appointment, warnings=warnings)

        before = snapshot(appointment)
        appointment.reminders_sent = (appointment.reminders_sent or 0) + 1
        self._audit(actor, 'send_reminder', appointment, before, reminders_sent=appointment.reminders_sent)
        self.db.commit()
        self.db.refresh(appointment)
        return LifecycleResult(appointment=appointment)

    def payment_summary(self, appointment_id: int, actor: Actor) -> dict:
        appointment = self.get_appointment(appointment_id, actor)
        transactions = self.db.query(Transaction).filter(
            Transaction.appointment_id == appointment.id,
        ).order_by(Transaction.id.asc()).all()

        total_amount = Decimal(appointment.total_amount or 0)
        total_paid = net_paid(self.db, appointment.id)
        return {
            'transactions': transactions,
            'total_amount': total_amount,
            'total_paid': total_paid,
            'remaining_balance': total_amount - total_paid,
            'deposit_paid': Decimal(appointment.deposit_paid or 0),
        }
