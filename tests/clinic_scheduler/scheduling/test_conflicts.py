from datetime import datetime

import pytest

from clinic_scheduler.core.errors import SlotUnavailable
from clinic_scheduler.models.appointment import STATUS_CANCELED, STATUS_CANCELLATION_REQUESTED, STATUS_PENDING
from clinic_scheduler.scheduling.conflicts import TimeRange, ensure_slot_free, find_conflicts, overlaps


def at(hour: int, minute: int = 0) -> datetime:
    return datetime(2026, 1, 5, hour, minute)


@pytest.mark.parametrize(
    ('first', 'second', 'expected'),
    [
        (TimeRange(at(10), at(10, 30)), TimeRange(at(10, 15), at(10, 45)), True),
        (TimeRange(at(10), at(11)), TimeRange(at(10, 15), at(10, 30)), True),
        (TimeRange(at(10), at(10, 30)), TimeRange(at(10, 30), at(11)), False),
        (TimeRange(at(9), at(9, 30)), TimeRange(at(10), at(10, 30)), False),
    ],
)
def test_overlaps_is_half_open_and_symmetric(first: TimeRange, second: TimeRange, expected: bool) -> None:
    assert overlaps(first, second) is expected
    assert overlaps(second, first) is expected


def test_find_conflicts_ignores_canceled_appointments(db, clinic, make_appointment) -> None:
    make_appointment(at(10), at(10, 30), status=STATUS_CANCELED)

    assert find_conflicts(db, clinic.staff.id, at(10), at(10, 30)) == []


@pytest.mark.parametrize('status', [STATUS_PENDING, STATUS_CANCELLATION_REQUESTED])
def test_pending_and_cancellation_requested_appointments_block(db, clinic, make_appointment, status: str) -> None:
    existing = make_appointment(at(10), at(10, 30), status=status)

    assert [item.id for item in find_conflicts(db, clinic.staff.id, at(10, 15), at(10, 45))] == [existing.id]


def test_find_conflicts_is_scoped_to_staff(db, clinic, make_appointment) -> None:
    make_appointment(at(10), at(10, 30))

    assert find_conflicts(db, clinic.staff.id + 100, at(10), at(10, 30)) == []


def test_find_conflicts_can_exclude_the_appointment_being_moved(db, clinic, make_appointment) -> None:
    existing = make_appointment(at(10), at(10, 30))

    assert find_conflicts(db, clinic.staff.id, at(10), at(11), exclude_appointment_id=existing.id) == []


def test_ensure_slot_free_raises_on_overlap(db, clinic, make_appointment) -> None:
    make_appointment(at(10), at(10, 30))

    with pytest.raises(SlotUnavailable) as exception_info:
        ensure_slot_free(db, clinic.staff.id, at(10), at(10, 30))

    assert exception_info.value.status_code == 409


def test_ensure_slot_free_accepts_adjacent_booking(db, clinic, make_appointment) -> None:
    make_appointment(at(10), at(10, 30))

    ensure_slot_free(db, clinic.staff.id, at(10, 30), at(11))
