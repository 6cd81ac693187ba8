"""Appointment model definitions."""

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from clinic_scheduler.database import Base

STATUS_PENDING = "pending"
STATUS_SCHEDULED = "scheduled"
STATUS_CANCELLATION_REQUESTED = "cancellation_requested"
STATUS_COMPLETED = "completed"
STATUS_CANCELED = "canceled"

TERMINAL_STATUSES = frozenset({STATUS_COMPLETED, STATUS_CANCELED})


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Appointment(Base):
    """A booked appointment. Times are UTC instants stored without tzinfo."""
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False)
    location_id = Column(Integer, ForeignKey("locations.id"), nullable=False)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    staff_id = Column(Integer, ForeignKey("staff.id"), nullable=False)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    status = Column(String, nullable=False, default=STATUS_PENDING)
    # Status to restore when a cancellation request is denied.
    previous_status = Column(String)
    # Set on cancellation; payments confirmed afterwards follow this decision.
    deposit_retained = Column(Boolean)
    total_amount = Column(Numeric(10, 2), default=0)
    deposit_paid = Column(Numeric(10, 2), default=0)
    reminders_sent = Column(Integer, default=0)
    archived = Column(Boolean, default=False)
    notes = Column(Text)
    private_notes = Column(Text)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
