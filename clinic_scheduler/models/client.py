"""Client model definitions."""

from sqlalchemy import Column, ForeignKey, Integer, String
from clinic_scheduler.database import Base


class Client(Base):
    """A patient of a clinic."""
    __tablename__ = "clients"

    id = Column(Integer, primary_key=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"))
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    email = Column(String)
    phone = Column(String)
