from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.exc import OperationalError

from clinic_scheduler import database
from clinic_scheduler.core.config import SchedulingPolicy
from clinic_scheduler.core.errors import SlotUnavailable
from clinic_scheduler.database import engine, ensure_scheduling_indexes, lock_row
from clinic_scheduler.models.appointment import STATUS_SCHEDULED, Appointment
from clinic_scheduler.models.staff import Staff
from clinic_scheduler.scheduling.conflicts import ensure_slot_free
from clinic_scheduler.scheduling.lifecycle import AppointmentLifecycle, BookingRequest

START = datetime(2026, 1, 5, 10, 0)
END = START + timedelta(minutes=30)


def free_booking(clinic) -> BookingRequest:
    return BookingRequest(
        organization_id=clinic.org.id,
        location_id=clinic.location.id,
        client_id=clinic.client.id,
        staff_id=clinic.staff.id,
        service_id=clinic.free_service.id,
        start_time=START,
    )


def test_sqlite_engine_leaves_transactions_to_sqlalchemy() -> None:
    if engine.dialect.name != 'sqlite':
        pytest.skip('DATABASE_URL is not SQLite')

    with engine.connect() as connection:
        assert connection.connection.dbapi_connection.isolation_level is None


def test_second_booking_session_waits_for_the_first(file_database, payments, notifier) -> None:
    clinic = file_database.clinic
    first = file_database.session()
    second = file_database.session()
    retry = file_database.session()

    try:
        lock_row(first, Staff, clinic.staff.id)
        ensure_slot_free(first, clinic.staff.id, START, END)

        with pytest.raises(OperationalError):
            AppointmentLifecycle(second, payments=payments, notifier=notifier, policy=SchedulingPolicy()).book(
                free_booking(clinic),
                clinic.admin,
            )

        first.add(
            Appointment(
                organization_id=clinic.org.id,
                location_id=clinic.location.id,
                client_id=clinic.client.id,
                staff_id=clinic.staff.id,
                service_id=clinic.free_service.id,
                start_time=START,
                end_time=END,
                status=STATUS_SCHEDULED,
            )
        )
        first.commit()

        with pytest.raises(SlotUnavailable):
            AppointmentLifecycle(retry, payments=payments, notifier=notifier, policy=SchedulingPolicy()).book(
                free_booking(clinic),
                clinic.admin,
            )
        retry.rollback()

        booked = retry.query(Appointment).filter(
            Appointment.staff_id == clinic.staff.id,
            Appointment.start_time == START,
        ).count()
        assert booked == 1
    finally:
        first.close()
        second.close()
        retry.close()


def test_scheduling_schema_adds_missing_appointment_columns(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    legacy_engine = create_engine(f'sqlite:///{tmp_path / "legacy.db"}')
    with legacy_engine.begin() as connection:
        connection.execute(
            text(
                'CREATE TABLE appointments ('
                'id INTEGER PRIMARY KEY, staff_id INTEGER, organization_id INTEGER, '
                'start_time DATETIME, end_time DATETIME, status VARCHAR)'
            )
        )
    monkeypatch.setattr(database, 'engine', legacy_engine)
    monkeypatch.setattr(database, '_scheduling_indexes_checked', False)

    ensure_scheduling_indexes()

    columns = {column['name'] for column in inspect(legacy_engine).get_columns('appointments')}
    indexes = {index['name'] for index in inspect(legacy_engine).get_indexes('appointments')}
    assert 'deposit_retained' in columns
    assert {'idx_appointments_staff_range', 'idx_appointments_org_status'} <= indexes
    legacy_engine.dispose()
