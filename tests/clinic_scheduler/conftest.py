import os
from datetime import datetime, time
from decimal import Decimal
from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from clinic_scheduler.auth.actor import Actor  # noqa: E402
from clinic_scheduler.core.config import SchedulingPolicy  # noqa: E402
from clinic_scheduler.database import Base, use_immediate_transactions  # noqa: E402
from clinic_scheduler.integrations.notifications import NotificationError, Notifier, render_message  # noqa: E402
from clinic_scheduler.integrations.payments import Charge, PaymentGateway, PaymentProviderError, Refund  # noqa: E402
from clinic_scheduler.models import (  # noqa: E402,F401
    appointment,
    audit_log,
    availability,
    client,
    organization,
    reward,
    service,
    staff,
    transaction,
    user,
)
from clinic_scheduler.models.appointment import STATUS_SCHEDULED, Appointment  # noqa: E402
from clinic_scheduler.models.availability import AvailabilityWindow  # noqa: E402
from clinic_scheduler.models.client import Client  # noqa: E402
from clinic_scheduler.models.organization import BusinessHours, Location, Organization  # noqa: E402
from clinic_scheduler.models.service import PAYMENT_TYPE_DEPOSIT, PAYMENT_TYPE_NONE, Service  # noqa: E402
from clinic_scheduler.models.staff import Staff  # noqa: E402
from clinic_scheduler.models.user import ROLE_CLINIC_ADMIN, ROLE_PATIENT, User  # noqa: E402
from clinic_scheduler.scheduling.lifecycle import AppointmentLifecycle  # noqa: E402


class FakePaymentGateway(PaymentGateway):
    def __init__(self):
        self.charges = []
        self.refunds = []
        self.succeeded = set()
        self.fail = False

    def create_charge(self, amount, metadata):
        if self.fail:
            raise PaymentProviderError('Card declined.')
        charge = Charge(id=f'pi_{len(self.charges) + 1}', client_secret=f'pi_{len(self.charges) + 1}_secret')
        self.charges.append((charge.id, Decimal(amount), metadata))
        return charge

    def refund(self, charge_id, amount):
        if self.fail:
            raise PaymentProviderError('Refund rejected.')
        refund = Refund(id=f're_{len(self.refunds) + 1}')
        self.refunds.append((charge_id, Decimal(amount)))
        return refund

    def confirmed(self, payment_id):
        if self.fail:
            raise PaymentProviderError('Provider unavailable.')
        return payment_id in self.succeeded


class FakeNotifier(Notifier):
    def __init__(self, fail: bool = False):
        self.sent = []
        self.fail = fail

    def notify(self, recipient, template_category, variables):
        if self.fail:
            raise NotificationError('SMS provider unavailable.')
        self.sent.append((recipient, template_category, render_message(template_category, variables)))


@pytest.fixture
def db():
    engine = create_engine(
        'sqlite:///:memory:',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


def build_clinic(db):
    """One organization with a Monday-open location, one staff member and a client."""
    org = Organization(name='Lakeside Clinic', slug='lakeside')
    db.add(org)
    db.flush()

    location = Location(organization_id=org.id, name='Main', timezone='UTC', business_hours_configured=True)
    db.add(location)
    db.flush()
    db.add(BusinessHours(location_id=location.id, weekday=1, open_time=time(9, 0), close_time=time(18, 0)))

    admin_user = User(email='admin@lakeside.test', role=ROLE_CLINIC_ADMIN, organization_id=org.id)
    patient_user = User(email='pat@example.test', role=ROLE_PATIENT)
    db.add_all([admin_user, patient_user])
    db.flush()

    staff_member = Staff(organization_id=org.id, name='Sam Rivera', phone='+15550000001')
    db.add(staff_member)
    db.flush()
    db.add(
        AvailabilityWindow(
            staff_id=staff_member.id,
            day_of_week=1,
            start_time=time(9, 0),
            end_time=time(17, 0),
        )
    )

    patient = Client(
        organization_id=org.id,
        user_id=patient_user.id,
        first_name='Pat',
        last_name='Lee',
        phone='+15550000002',
    )
    free_service = Service(
        organization_id=org.id,
        name='Consultation',
        duration_minutes=30,
        price=Decimal('0'),
        payment_type=PAYMENT_TYPE_NONE,
    )
    paid_service = Service(
        organization_id=org.id,
        name='Facial',
        duration_minutes=30,
        price=Decimal('100.00'),
        deposit_required=True,
        deposit_amount=Decimal('25.00'),
        payment_type=PAYMENT_TYPE_DEPOSIT,
    )
    db.add_all([patient, free_service, paid_service])
    db.commit()

    return SimpleNamespace(
        org=org,
        location=location,
        staff=staff_member,
        client=patient,
        free_service=free_service,
        paid_service=paid_service,
        admin=Actor(user_id=admin_user.id, role=ROLE_CLINIC_ADMIN, organization_id=org.id),
        patient=Actor(user_id=patient_user.id, role=ROLE_PATIENT, client_id=patient.id),
    )


@pytest.fixture
def clinic(db):
    return build_clinic(db)


@pytest.fixture
def file_database(tmp_path):
    """File-backed SQLite whose sessions contend like concurrent requests."""
    engine = create_engine(
        f'sqlite:///{tmp_path / "clinic.db"}',
        connect_args={'check_same_thread': False, 'timeout': 0.2},
    )
    use_immediate_transactions(engine)
    Base.metadata.create_all(bind=engine)
    session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)

    seed = session_factory()
    try:
        clinic = build_clinic(seed)
    finally:
        seed.close()

    yield SimpleNamespace(session=session_factory, clinic=clinic)
    engine.dispose()


@pytest.fixture
def payments():
    return FakePaymentGateway()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def failing_notifier():
    return FakeNotifier(fail=True)


@pytest.fixture
def policy():
    return SchedulingPolicy()


@pytest.fixture
def lifecycle(db, payments, notifier, policy):
    return AppointmentLifecycle(db, payments=payments, notifier=notifier, policy=policy)


@pytest.fixture
def make_appointment(db, clinic):
    def factory(start: datetime, end: datetime, status: str = STATUS_SCHEDULED, staff_id: int | None = None):
        booked = Appointment(
            organization_id=clinic.org.id,
            location_id=clinic.location.id,
            client_id=clinic.client.id,
            staff_id=staff_id or clinic.staff.id,
            service_id=clinic.free_service.id,
            start_time=start,
            end_time=end,
            status=status,
            total_amount=Decimal('0'),
            deposit_paid=Decimal('0'),
        )
        db.add(booked)
        db.commit()
        db.refresh(booked)
        return booked

    return factory
