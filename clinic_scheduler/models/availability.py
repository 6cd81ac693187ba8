"""Availability model definitions."""

from sqlalchemy import Boolean, Column, Date, ForeignKey, Integer, String, Time, UniqueConstraint
from clinic_scheduler.database import Base


class AvailabilityWindow(Base):
    """Recurring weekly interval during which a staff member can be booked."""
    __tablename__ = "availability_windows"

    id = Column(Integer, primary_key=True)
    staff_id = Column(Integer, ForeignKey("staff.id"), nullable=False)
    day_of_week = Column(Integer, nullable=False)  # 0=Sunday ... 6=Saturday
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    is_recurring = Column(Boolean, default=True)


class TimeOff(Base):
    """Full day on which a staff member is unavailable."""
    __tablename__ = "time_off"
    __table_args__ = (UniqueConstraint("staff_id", "date", name="uq_time_off_staff_date"),)

    id = Column(Integer, primary_key=True)
    staff_id = Column(Integer, ForeignKey("staff.id"), nullable=False, index=True)
    date = Column(Date, nullable=False)
    reason = Column(String)
