from datetime import date, datetime, time

import pytest

from clinic_scheduler.core.config import SchedulingPolicy
from clinic_scheduler.core.errors import NotFound
from clinic_scheduler.models.appointment import STATUS_CANCELED
from clinic_scheduler.scheduling import availability, business_calendar
from clinic_scheduler.scheduling.slots import candidate_starts, generate_slots

MONDAY = date(2026, 1, 5)


def test_candidate_starts_only_keeps_whole_intervals() -> None:
    starts = candidate_starts(MONDAY, [(time(9, 0), time(10, 15))], 30)

    assert starts == [datetime(2026, 1, 5, 9, 0), datetime(2026, 1, 5, 9, 30)]


def test_candidate_starts_deduplicates_and_sorts() -> None:
    starts = candidate_starts(MONDAY, [(time(10, 0), time(11, 0)), (time(9, 0), time(10, 30))], 30)

    assert starts == [
        datetime(2026, 1, 5, 9, 0),
        datetime(2026, 1, 5, 9, 30),
        datetime(2026, 1, 5, 10, 0),
        datetime(2026, 1, 5, 10, 30),
    ]


def test_open_day_with_no_bookings(db, clinic, policy) -> None:
    slots = generate_slots(db, clinic.staff.id, clinic.location.id, MONDAY, policy)

    assert len(slots) == 16
    assert slots[0].time == '09:00'
    assert slots[-1].time == '16:30'
    assert all(slot.available for slot in slots)
    assert slots[0].start_time == datetime(2026, 1, 5, 9, 0)
    assert slots[0].end_time == datetime(2026, 1, 5, 9, 30)


def test_booked_slot_is_marked_unavailable(db, clinic, policy, make_appointment) -> None:
    make_appointment(datetime(2026, 1, 5, 10, 0), datetime(2026, 1, 5, 10, 30))

    slots = generate_slots(db, clinic.staff.id, clinic.location.id, MONDAY, policy)

    assert [slot.time for slot in slots if not slot.available] == ['10:00']
    assert len(slots) == 16


def test_canceled_booking_does_not_block(db, clinic, policy, make_appointment) -> None:
    make_appointment(datetime(2026, 1, 5, 10, 0), datetime(2026, 1, 5, 10, 30), status=STATUS_CANCELED)

    slots = generate_slots(db, clinic.staff.id, clinic.location.id, MONDAY, policy)

    assert all(slot.available for slot in slots)


def test_generation_is_repeatable(db, clinic, policy, make_appointment) -> None:
    make_appointment(datetime(2026, 1, 5, 13, 15), datetime(2026, 1, 5, 13, 45))

    first = generate_slots(db, clinic.staff.id, clinic.location.id, MONDAY, policy)
    second = generate_slots(db, clinic.staff.id, clinic.location.id, MONDAY, policy)

    assert first == second
    assert [slot.time for slot in first if not slot.available] == ['13:00', '13:30']


def test_closed_day_has_no_slots(db, clinic, policy) -> None:
    assert generate_slots(db, clinic.staff.id, clinic.location.id, date(2026, 1, 4), policy) == []


def test_time_off_day_has_no_slots(db, clinic, policy) -> None:
    availability.add_time_off(db, clinic.staff.id, MONDAY)
    db.commit()

    assert generate_slots(db, clinic.staff.id, clinic.location.id, MONDAY, policy) == []


def test_slots_are_clipped_to_business_hours(db, clinic, policy) -> None:
    business_calendar.set_business_hours(db, clinic.location, {1: (time(12, 0), time(14, 0))})
    db.commit()

    slots = generate_slots(db, clinic.staff.id, clinic.location.id, MONDAY, policy)

    assert [slot.time for slot in slots] == ['12:00', '12:30', '13:00', '13:30']


def test_custom_interval(db, clinic, policy) -> None:
    slots = generate_slots(db, clinic.staff.id, clinic.location.id, MONDAY, policy, interval_minutes=60)

    assert [slot.time for slot in slots][:2] == ['09:00', '10:00']
    assert len(slots) == 8


def test_policy_interval_is_used_by_default(db, clinic) -> None:
    slots = generate_slots(
        db,
        clinic.staff.id,
        clinic.location.id,
        MONDAY,
        SchedulingPolicy(slot_interval_minutes=120),
    )

    assert [slot.time for slot in slots] == ['09:00', '11:00', '13:00', '15:00']


def test_slots_follow_location_timezone(db, clinic, policy, make_appointment) -> None:
    clinic.location.timezone = 'America/New_York'
    db.commit()
    # 10:00 in New York on a winter Monday.
    make_appointment(datetime(2026, 1, 5, 15, 0), datetime(2026, 1, 5, 15, 30))

    slots = generate_slots(db, clinic.staff.id, clinic.location.id, MONDAY, policy)

    assert slots[0].time == '09:00'
    assert slots[0].datetime == datetime(2026, 1, 5, 14, 0)
    assert [slot.time for slot in slots if not slot.available] == ['10:00']


def test_unknown_staff_or_location(db, clinic, policy) -> None:
    with pytest.raises(NotFound):
        generate_slots(db, 999, clinic.location.id, MONDAY, policy)

    with pytest.raises(NotFound):
        generate_slots(db, clinic.staff.id, 999, MONDAY, policy)
