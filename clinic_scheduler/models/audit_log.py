"""Audit log model definitions."""

from sqlalchemy import JSON, Column, DateTime, Integer, String
from clinic_scheduler.database import Base
from clinic_scheduler.models.appointment import utcnow


class AuditLog(Base):
    """Record of an accepted change, with before/after snapshots."""
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True)
    organization_id = Column(Integer, index=True)
    actor_id = Column(Integer)
    actor_role = Column(String)
    action = Column(String, nullable=False)
    resource = Column(String, nullable=False)
    resource_id = Column(Integer)
    changes = Column(JSON)
    created_at = Column(DateTime, default=utcnow)
