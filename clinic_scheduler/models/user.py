"""User directory definitions."""

from sqlalchemy import Boolean, Column, String
from clinic_scheduler.database import Base

REQUESTER_ROLE = 'requester'
PROVIDER_ROLE = 'provider'
ADMIN_ROLE = 'admin'


class User(Base):
    """Represents a requester, provider, or admin known to the directory."""
    __tablename__ = "users"

    id = Column(String, primary_key=True, index=True)
    email = Column(String, unique=True, index=True)
    full_name = Column(String)
    role = Column(String)  # requester/provider/admin
    is_active = Column(Boolean, default=True)
