from datetime import date

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from clinic_scheduler.core import config
from clinic_scheduler.models.appointment import AppointmentSequence

SEQUENCE_WIDTH = 4


def format_appointment_id(on_date: date, sequence: int) -> str:
    return f'{config.APPOINTMENT_ID_PREFIX}{on_date:%Y%m%d}{sequence:0{SEQUENCE_WIDTH}d}'


def _increment(db: Session, on_date: date) -> bool:
    result = db.execute(
        update(AppointmentSequence)
        .where(AppointmentSequence.date == on_date)
        .values(last_value=AppointmentSequence.last_value + 1)
    )
    return result.rowcount > 0


def next_appointment_id(db: Session, on_date: date) -> str:
    """Allocate the next identifier for ``on_date`` inside the caller's transaction.

    The counter row is bumped with an atomic ``UPDATE``; the first booking of
    a day inserts the row, and a concurrent first insert falls back to the
    update path.
    """
    if not _increment(db, on_date):
        try:
            with db.begin_nested():
                db.add(AppointmentSequence(date=on_date, last_value=1))
        except IntegrityError:
            _increment(db, on_date)

    sequence = db.query(AppointmentSequence.last_value).filter(AppointmentSequence.date == on_date).scalar()
    return format_appointment_id(on_date, sequence)
