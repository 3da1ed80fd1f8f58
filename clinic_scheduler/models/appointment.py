"""Appointment model definitions."""

from enum import Enum

from sqlalchemy import JSON, Column, Date, DateTime, ForeignKey, Index, Integer, String, text
from clinic_scheduler.database import Base, RELEASED_STATUS_SQL


class AppointmentStatus(str, Enum):
    """Appointment lifecycle statuses."""

    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no-show"


class AppointmentType(str, Enum):
    IN_PERSON = "in-person"
    EMERGENCY = "emergency"


class CancelledBy(str, Enum):
    REQUESTER = "requester"
    PROVIDER = "provider"
    ADMIN = "admin"
    SYSTEM = "system"


class Appointment(Base):
    """Represents a booked appointment. Rows are never deleted."""
    __tablename__ = "appointments"
    __table_args__ = (
        # At most one slot-holding appointment per provider, date and time.
        Index(
            'uq_appointments_active_slot',
            'provider_id',
            'date',
            'time',
            unique=True,
            sqlite_where=text(f'status NOT IN {RELEASED_STATUS_SQL}'),
            postgresql_where=text(f'status NOT IN {RELEASED_STATUS_SQL}'),
        ),
    )

    id = Column(Integer, primary_key=True)
    appointment_id = Column(String, unique=True, index=True, nullable=False)
    requester_id = Column(String, ForeignKey("users.id"), index=True, nullable=False)
    provider_id = Column(String, ForeignKey("users.id"), index=True, nullable=False)
    date = Column(Date, nullable=False)
    time = Column(String(5), nullable=False)  # HH:MM
    duration_minutes = Column(Integer, default=30)
    appointment_type = Column(String, default=AppointmentType.IN_PERSON.value)
    reason = Column(String, nullable=False)
    symptoms = Column(JSON, default=list)
    status = Column(String, default=AppointmentStatus.SCHEDULED.value, nullable=False)

    cancellation_reason = Column(String)
    cancelled_by = Column(String)
    cancelled_at = Column(DateTime)

    # Only the slot immediately before the latest reschedule is kept.
    previous_date = Column(Date)
    previous_time = Column(String(5))
    reschedule_reason = Column(String)

    check_in_at = Column(DateTime)
    check_out_at = Column(DateTime)
    provider_notes = Column(String)

    rating_score = Column(Integer)
    rating_review = Column(String)
    rated_at = Column(DateTime)

    created_at = Column(DateTime)
    updated_at = Column(DateTime)


class AppointmentSequence(Base):
    """Per-date counter behind the public appointment identifier."""
    __tablename__ = "appointment_sequences"

    date = Column(Date, primary_key=True)
    last_value = Column(Integer, default=0, nullable=False)
