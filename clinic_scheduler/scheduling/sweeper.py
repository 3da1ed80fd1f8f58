"""
Expiration Sweeper

Reconciles appointment statuses against the clock once their start instant
has passed:

- confirmed -> completed
- scheduled -> cancelled (actor ``system``)

Every other status is left alone. The sweeper runs inside read paths and
from the periodic task in ``tasks.py``. Persistence failures are logged and
swallowed; callers still get the records with their reconciled statuses.
"""

import logging
from datetime import datetime
from typing import Any, Iterable

from sqlalchemy import bindparam, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from clinic_scheduler.models.appointment import Appointment, AppointmentStatus, CancelledBy
from clinic_scheduler.scheduling import clock

logger = logging.getLogger(__name__)

EXPIRED_CANCELLATION_REASON = 'time passed without confirmation'

_appointments = Appointment.__table__

# Guarded by the status the sweeper saw, so a concurrent manual change wins.
_SWEEP_STATEMENT = (
    update(_appointments)
    .where(_appointments.c.id == bindparam('target_id'))
    .where(_appointments.c.status == bindparam('expected_status'))
    .values(
        status=bindparam('new_status'),
        cancellation_reason=bindparam('new_cancellation_reason'),
        cancelled_by=bindparam('new_cancelled_by'),
        cancelled_at=bindparam('new_cancelled_at'),
        updated_at=bindparam('new_updated_at'),
    )
)


def has_started(appointment: Any, now: datetime) -> bool:
    return clock.appointment_instant(appointment.date, appointment.time) < now


def planned_transition(appointment: Any, now: datetime) -> dict | None:
    """The column values the sweeper would write, or ``None`` when nothing is due."""
    if not appointment.date or not appointment.time or not has_started(appointment, now):
        return None

    if appointment.status == AppointmentStatus.CONFIRMED.value:
        return {
            'status': AppointmentStatus.COMPLETED.value,
            'cancellation_reason': appointment.cancellation_reason,
            'cancelled_by': appointment.cancelled_by,
            'cancelled_at': appointment.cancelled_at,
            'updated_at': now,
        }

    if appointment.status == AppointmentStatus.SCHEDULED.value:
        return {
            'status': AppointmentStatus.CANCELLED.value,
            'cancellation_reason': EXPIRED_CANCELLATION_REASON,
            'cancelled_by': CancelledBy.SYSTEM.value,
            'cancelled_at': now,
            'updated_at': now,
        }

    return None


def reconcile(appointments: Iterable[Any], now: datetime) -> list[tuple[Any, dict]]:
    planned = []
    for appointment in appointments:
        values = planned_transition(appointment, now)
        if values is not None:
            planned.append((appointment, values))
    return planned


def _apply_planned(planned: list[tuple[Appointment, dict]]) -> None:
    # Committed values, so a later flush never rewrites them without the status guard.
    for appointment, values in planned:
        for column, value in values.items():
            set_committed_value(appointment, column, value)


def _rollback_keeping(db: Session, appointments: list[Appointment]) -> None:
    """Roll back the session without expiring ``appointments``."""
    attached = [appointment for appointment in appointments if appointment in db]
    for appointment in attached:
        db.expunge(appointment)
    db.rollback()
    for appointment in attached:
        db.add(appointment)


def _write_batch(db: Session, appointments: list[Appointment], planned: list[tuple[Appointment, dict]]) -> bool:
    """Persist ``planned`` in one guarded update. Returns whether it was committed.

    Either way the in-memory rows carry the reconciled values afterwards and
    can be read without another round-trip.
    """
    params = [
        {
            'target_id': appointment.id,
            'expected_status': appointment.status,
            'new_status': values['status'],
            'new_cancellation_reason': values['cancellation_reason'],
            'new_cancelled_by': values['cancelled_by'],
            'new_cancelled_at': values['cancelled_at'],
            'new_updated_at': values['updated_at'],
        }
        for appointment, values in planned
    ]

    try:
        with db.begin_nested():
            db.execute(_SWEEP_STATEMENT, params)
    except SQLAlchemyError:
        logger.exception('Failed to reconcile %d expired appointments', len(params))
        _apply_planned(planned)
        return False

    _apply_planned(planned)
    try:
        db.commit()
    except SQLAlchemyError:
        logger.exception('Failed to commit %d reconciled appointments', len(params))
        _rollback_keeping(db, appointments)
        return False

    # The commit expired the loaded rows; touching them reloads stored values.
    for appointment, values in planned:
        logger.info(
            'Appointment %s reconciled as %s after its start time passed',
            appointment.appointment_id,
            values['status'],
        )

    return True


def sweep_expired(db: Session, appointments: Iterable[Appointment], now: datetime | None = None) -> list[Appointment]:
    """Reconcile ``appointments`` in one batch update and return them.

    If the update cannot be persisted the failure is logged and the returned
    rows still show the reconciled statuses. Sweeping an already reconciled
    set is a no-op.
    """
    now = now or clock.now()
    appointments = list(appointments)
    planned = reconcile(appointments, now)

    if planned:
        _write_batch(db, appointments, planned)

    return appointments


def sweep_due(db: Session, now: datetime | None = None) -> int:
    """Scan for every overdue scheduled/confirmed appointment and reconcile it."""
    now = now or clock.now()

    candidates = db.query(Appointment).filter(
        Appointment.status.in_((AppointmentStatus.SCHEDULED.value, AppointmentStatus.CONFIRMED.value)),
        Appointment.date <= now.date(),
    ).all()
    due = [appointment for appointment in candidates if has_started(appointment, now)]

    if not due:
        return 0

    before = {appointment.id: appointment.status for appointment in due}
    if not _write_batch(db, due, reconcile(due, now)):
        return 0

    changed = sum(1 for appointment in due if appointment.status != before[appointment.id])
    if changed:
        logger.info('Periodic sweep reconciled %d appointments', changed)

    return changed
