"""Weekly availability template definitions."""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship
from clinic_scheduler.database import Base


class WeeklyAvailability(Base):
    """One weekday entry of a provider's recurring schedule."""
    __tablename__ = "weekly_availability"
    __table_args__ = (UniqueConstraint('provider_id', 'weekday', name='uq_weekly_availability_day'),)

    id = Column(Integer, primary_key=True)
    provider_id = Column(String, ForeignKey("users.id"), index=True, nullable=False)
    weekday = Column(String, nullable=False)  # monday..sunday
    is_available = Column(Boolean, default=True)

    windows = relationship(
        "AvailabilityWindow",
        order_by="AvailabilityWindow.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class AvailabilityWindow(Base):
    """A half-open ``[start_time, end_time)`` window, both ``HH:MM``."""
    __tablename__ = "availability_windows"

    id = Column(Integer, primary_key=True)
    availability_id = Column(Integer, ForeignKey("weekly_availability.id"), nullable=False)
    position = Column(Integer, default=0)
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)
