"""Blocked range definitions."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from clinic_scheduler.database import Base


class BlockedRange(Base):
    """A weekly recurring window during which a provider takes no bookings."""
    __tablename__ = "blocked_ranges"

    id = Column(Integer, primary_key=True)
    provider_id = Column(String, ForeignKey("users.id"), index=True, nullable=False)
    weekday = Column(String, nullable=False)
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)
    reason = Column(String, default='')
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime)
