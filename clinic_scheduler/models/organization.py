"""Organization, location and business hours model definitions."""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, Time, UniqueConstraint
from sqlalchemy.orm import relationship

from clinic_scheduler.database import Base


class Organization(Base):
    """A clinic tenant."""
    __tablename__ = "organizations"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    slug = Column(String, unique=True, index=True)
    is_active = Column(Boolean, default=True)


class Location(Base):
    """A physical clinic location with its own timezone."""
    __tablename__ = "locations"

    id = Column(Integer, primary_key=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    timezone = Column(String, nullable=False, default="UTC")
    # False until hours are saved; unconfigured locations use the calendar defaults.
    business_hours_configured = Column(Boolean, default=False)
    is_active = Column(Boolean, default=True)

    business_hours = relationship(
        "BusinessHours",
        back_populates="location",
        cascade="all, delete-orphan",
        order_by="BusinessHours.weekday",
    )


class BusinessHours(Base):
    """Opening hours of a location for one weekday (0=Sunday ... 6=Saturday)."""
    __tablename__ = "business_hours"
    __table_args__ = (UniqueConstraint("location_id", "weekday", name="uq_business_hours_location_weekday"),)

    id = Column(Integer, primary_key=True)
    location_id = Column(Integer, ForeignKey("locations.id"), nullable=False)
    weekday = Column(Integer, nullable=False)
    open_time = Column(Time, nullable=False)
    close_time = Column(Time, nullable=False)

    location = relationship("Location", back_populates="business_hours")
