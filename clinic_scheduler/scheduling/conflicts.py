"""
Booking conflict detection.

The read-side checks give callers precise error messages. The partial unique
index on ``(provider_id, date, time)`` is what actually closes the
check-then-act race: ``reserve_slot`` flushes the row and turns the index
violation into the same ``ConflictError`` a failed check would raise.
"""

import logging
from datetime import date, datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from clinic_scheduler.core.errors import (
    SLOT_ALREADY_BOOKED,
    SLOT_BLOCKED,
    ConflictError,
    TemporalError,
)
from clinic_scheduler.models.appointment import Appointment, AppointmentStatus
from clinic_scheduler.models.blocked_range import BlockedRange
from clinic_scheduler.scheduling import clock

logger = logging.getLogger(__name__)

# An appointment in any other status keeps holding its slot.
RELEASED_STATUSES = (AppointmentStatus.CANCELLED.value, AppointmentStatus.NO_SHOW.value)


def ensure_future(instant: datetime, now: datetime, detail: str) -> None:
    if instant <= now:
        raise TemporalError(detail)


def booked_times_on(db: Session, provider_id: str, on_date: date) -> set[str]:
    rows = db.query(Appointment.time).filter(
        Appointment.provider_id == provider_id,
        Appointment.date == on_date,
        Appointment.status.not_in(RELEASED_STATUSES),
    ).all()
    return {row_time for (row_time,) in rows}


def find_booking_conflict(
    db: Session,
    provider_id: str,
    on_date: date,
    hhmm: str,
    exclude_id: int | None = None,
) -> Appointment | None:
    query = db.query(Appointment).filter(
        Appointment.provider_id == provider_id,
        Appointment.date == on_date,
        Appointment.time == hhmm,
        Appointment.status.not_in(RELEASED_STATUSES),
    )
    if exclude_id is not None:
        query = query.filter(Appointment.id != exclude_id)
    return query.first()


def find_blocking_range(db: Session, provider_id: str, weekday: str, hhmm: str) -> BlockedRange | None:
    return db.query(BlockedRange).filter(
        BlockedRange.provider_id == provider_id,
        BlockedRange.weekday == weekday,
        BlockedRange.is_active.is_(True),
        BlockedRange.start_time <= hhmm,
        BlockedRange.end_time > hhmm,
    ).first()


def check_slot(
    db: Session,
    provider_id: str,
    on_date: date,
    hhmm: str,
    now: datetime,
    exclude_id: int | None = None,
    past_detail: str = 'Cannot book an appointment for a past date/time. Please select a future time slot.',
) -> None:
    ensure_future(clock.appointment_instant(on_date, hhmm), now, past_detail)

    if find_booking_conflict(db, provider_id, on_date, hhmm, exclude_id=exclude_id):
        raise ConflictError(SLOT_ALREADY_BOOKED)

    if find_blocking_range(db, provider_id, clock.weekday_name(on_date), hhmm):
        raise ConflictError(SLOT_BLOCKED)


def reserve_slot(db: Session, appointment: Appointment) -> None:
    """Write ``appointment`` in its slot, failing if another one holds it."""
    db.add(appointment)
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        logger.info(
            'Slot reservation lost for provider %s on %s at %s',
            appointment.provider_id,
            appointment.date,
            appointment.time,
        )
        raise ConflictError(SLOT_ALREADY_BOOKED) from exc
