"""Transaction model definitions."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String
from clinic_scheduler.database import Base
from clinic_scheduler.models.appointment import utcnow

TYPE_DEPOSIT = "deposit"
TYPE_FULL_PAYMENT = "full_payment"
TYPE_BALANCE = "balance"
TYPE_REFUND = "refund"

CHARGE_TYPES = frozenset({TYPE_DEPOSIT, TYPE_FULL_PAYMENT, TYPE_BALANCE})

STATUS_PENDING = "pending"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"


class Transaction(Base):
    """Money movement tied to an appointment."""
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False)
    appointment_id = Column(Integer, ForeignKey("appointments.id"), nullable=False)
    client_id = Column(Integer, ForeignKey("clients.id"))
    amount = Column(Numeric(10, 2), nullable=False)
    type = Column(String, nullable=False)
    status = Column(String, nullable=False, default=STATUS_PENDING)
    provider_payment_id = Column(String, index=True)
    refunded_transaction_id = Column(Integer, ForeignKey("transactions.id"))
    description = Column(String)
    created_at = Column(DateTime, default=utcnow)
