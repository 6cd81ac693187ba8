"""Reward model definitions."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from clinic_scheduler.database import Base
from clinic_scheduler.models.appointment import utcnow


class Reward(Base):
    """Loyalty points awarded to a client, at most once per reference."""
    __tablename__ = "rewards"
    __table_args__ = (UniqueConstraint("reference_type", "reference_id", name="uq_rewards_reference"),)

    id = Column(Integer, primary_key=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    points = Column(Integer, nullable=False)
    reason = Column(String, nullable=False)
    reference_id = Column(Integer)
    reference_type = Column(String)
    created_at = Column(DateTime, default=utcnow)
