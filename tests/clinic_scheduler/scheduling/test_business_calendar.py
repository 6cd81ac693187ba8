from datetime import time

import pytest

from clinic_scheduler.core.config import BusinessCalendarDefaults
from clinic_scheduler.core.errors import InvalidTimeRange, NotFound
from clinic_scheduler.models.organization import Location
from clinic_scheduler.scheduling.business_calendar import get_location, hours_for, set_business_hours, weekly_hours


def test_unconfigured_location_uses_defaults(db, clinic) -> None:
    location = Location(organization_id=clinic.org.id, name='Annex', timezone='UTC')
    db.add(location)
    db.commit()

    hours = hours_for(db, location, 3, BusinessCalendarDefaults())

    assert (hours.open_time, hours.close_time) == (time(0, 0), time(23, 59))


def test_unconfigured_location_is_closed_when_defaults_disabled(db, clinic) -> None:
    location = Location(organization_id=clinic.org.id, name='Annex', timezone='UTC')
    db.add(location)
    db.commit()

    assert hours_for(db, location, 3, BusinessCalendarDefaults(enabled=False)) is None


def test_configured_location_is_closed_on_missing_weekday(db, clinic) -> None:
    defaults = BusinessCalendarDefaults()

    assert hours_for(db, clinic.location, 1, defaults).open_time == time(9, 0)
    assert hours_for(db, clinic.location, 0, defaults) is None


def test_set_business_hours_replaces_week(db, clinic) -> None:
    set_business_hours(
        db,
        clinic.location,
        {2: (time(8, 0), time(12, 0)), 3: (time(10, 0), time(16, 0)), 4: None},
        timezone='Europe/London',
    )
    db.commit()

    rows = weekly_hours(db, clinic.location)

    assert sorted(rows) == [2, 3]
    assert rows[2].close_time == time(12, 0)
    assert clinic.location.timezone == 'Europe/London'
    assert hours_for(db, clinic.location, 1, BusinessCalendarDefaults()) is None


def test_set_business_hours_rejects_inverted_hours(db, clinic) -> None:
    with pytest.raises(InvalidTimeRange):
        set_business_hours(db, clinic.location, {1: (time(18, 0), time(9, 0))})


def test_set_business_hours_rejects_unknown_timezone(db, clinic) -> None:
    with pytest.raises(InvalidTimeRange):
        set_business_hours(db, clinic.location, {1: (time(9, 0), time(17, 0))}, timezone='Nowhere/Land')


def test_get_location_raises_when_missing(db) -> None:
    with pytest.raises(NotFound) as exception_info:
        get_location(db, 404)

    assert exception_info.value.detail == 'Location not found.'
