"""User model definitions."""

from sqlalchemy import Column, ForeignKey, Integer, String
from clinic_scheduler.database import Base

ROLE_PATIENT = "patient"
ROLE_STAFF = "staff"
ROLE_CLINIC_ADMIN = "clinic_admin"
ROLE_SUPER_ADMIN = "super_admin"

CLINIC_ROLES = frozenset({ROLE_STAFF, ROLE_CLINIC_ADMIN, ROLE_SUPER_ADMIN})


class User(Base):
    """Represents an application user."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True)
    role = Column(String, nullable=False, default=ROLE_PATIENT)
    organization_id = Column(Integer, ForeignKey("organizations.id"))
