"""Provider rating aggregate."""

from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String
from clinic_scheduler.database import Base


class ProviderRating(Base):
    __tablename__ = "provider_ratings"

    provider_id = Column(String, ForeignKey("users.id"), primary_key=True)
    average = Column(Float, default=0.0)
    count = Column(Integer, default=0)
    updated_at = Column(DateTime)
