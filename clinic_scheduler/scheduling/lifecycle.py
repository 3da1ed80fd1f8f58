"""
Appointment lifecycle state machine.

    scheduled -> confirmed -> in-progress -> completed
    scheduled | confirmed | in-progress -> cancelled | no-show

``completed``, ``cancelled`` and ``no-show`` are terminal. Rescheduling is
not a transition: it moves the slot and leaves the status alone.
"""

import logging
from datetime import datetime

from clinic_scheduler.core.errors import ValidationError
from clinic_scheduler.models.appointment import Appointment, AppointmentStatus, CancelledBy

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = frozenset({
    AppointmentStatus.COMPLETED.value,
    AppointmentStatus.CANCELLED.value,
    AppointmentStatus.NO_SHOW.value,
})

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    AppointmentStatus.SCHEDULED.value: frozenset({
        AppointmentStatus.CONFIRMED.value,
        AppointmentStatus.CANCELLED.value,
        AppointmentStatus.NO_SHOW.value,
    }),
    AppointmentStatus.CONFIRMED.value: frozenset({
        AppointmentStatus.IN_PROGRESS.value,
        AppointmentStatus.COMPLETED.value,
        AppointmentStatus.CANCELLED.value,
        AppointmentStatus.NO_SHOW.value,
    }),
    AppointmentStatus.IN_PROGRESS.value: frozenset({
        AppointmentStatus.COMPLETED.value,
        AppointmentStatus.CANCELLED.value,
        AppointmentStatus.NO_SHOW.value,
    }),
    AppointmentStatus.COMPLETED.value: frozenset(),
    AppointmentStatus.CANCELLED.value: frozenset(),
    AppointmentStatus.NO_SHOW.value: frozenset(),
}

CANCELLING_ACTORS = frozenset(actor.value for actor in CancelledBy)


def normalize_status(value: str) -> str:
    # Older clients send in_progress / no_show.
    normalized = (value or '').strip().lower().replace('_', '-')
    if normalized not in ALLOWED_TRANSITIONS:
        raise ValidationError(f'Invalid status {value!r}.')
    return normalized


def is_terminal(current: str) -> bool:
    return current in TERMINAL_STATUSES


def can_transition(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def apply_transition(
    appointment: Appointment,
    target: str,
    actor: str,
    at: datetime,
    reason: str | None = None,
    notes: str | None = None,
) -> Appointment:
    """Move ``appointment`` to ``target`` and record the transition's side effects.

    Entering ``in-progress`` stamps the check-in time, entering ``completed``
    stamps the check-out time and keeps the provider's notes, and entering
    ``cancelled`` needs a non-empty reason and a known cancelling actor.
    """
    current = appointment.status
    if not can_transition(current, target):
        raise ValidationError(f'Cannot change appointment status from {current} to {target}.')

    if target == AppointmentStatus.CANCELLED.value:
        cleaned_reason = (reason or '').strip()
        if not cleaned_reason:
            raise ValidationError('Cancel reason is required.')
        if actor not in CANCELLING_ACTORS:
            raise ValidationError(f'Invalid cancelling actor {actor!r}.')
        appointment.cancellation_reason = cleaned_reason
        appointment.cancelled_by = actor
        appointment.cancelled_at = at

    if target == AppointmentStatus.IN_PROGRESS.value:
        appointment.check_in_at = at

    if target == AppointmentStatus.COMPLETED.value:
        appointment.check_out_at = at
        if notes and notes.strip():
            appointment.provider_notes = notes.strip()

    appointment.status = target
    appointment.updated_at = at
    logger.info('Appointment %s: %s -> %s (%s)', appointment.appointment_id, current, target, actor)

    return appointment
