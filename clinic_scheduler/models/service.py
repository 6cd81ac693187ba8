"""Service model definitions."""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from clinic_scheduler.database import Base
from clinic_scheduler.models.staff import staff_services

PAYMENT_TYPE_NONE = "none"
PAYMENT_TYPE_DEPOSIT = "deposit"
PAYMENT_TYPE_FULL = "full"


class Service(Base):
    """A bookable treatment offered by an organization."""
    __tablename__ = "services"

    id = Column(Integer, primary_key=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    duration_minutes = Column(Integer, nullable=False, default=30)
    price = Column(Numeric(10, 2), default=0)
    deposit_required = Column(Boolean, default=False)
    deposit_amount = Column(Numeric(10, 2))
    payment_type = Column(String, default=PAYMENT_TYPE_NONE)
    is_active = Column(Boolean, default=True)

    # Empty means any staff member of the organization may perform it.
    available_staff = relationship("Staff", secondary=staff_services, lazy="selectin")
