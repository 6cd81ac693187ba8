"""Staff model definitions."""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, Table

from clinic_scheduler.database import Base


staff_services = Table(
    "staff_services",
    Base.metadata,
    Column("staff_id", Integer, ForeignKey("staff.id"), primary_key=True),
    Column("service_id", Integer, ForeignKey("services.id"), primary_key=True),
)


class Staff(Base):
    """A bookable member of a clinic's staff."""
    __tablename__ = "staff"

    id = Column(Integer, primary_key=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"))
    name = Column(String, nullable=False)
    title = Column(String)
    phone = Column(String)
    is_active = Column(Boolean, default=True)
    can_book_online = Column(Boolean, default=True)
