"""Lead-time guards for cancelling and rescheduling.

Both guards read the appointment's current status and current slot at the
moment of the request.
"""

from datetime import datetime, timedelta

from clinic_scheduler.core import config
from clinic_scheduler.core.errors import TemporalError
from clinic_scheduler.models.appointment import Appointment
from clinic_scheduler.scheduling import clock
from clinic_scheduler.scheduling.lifecycle import is_terminal


def lead_time(appointment: Appointment, now: datetime) -> timedelta:
    return clock.appointment_instant(appointment.date, appointment.time) - now


def can_cancel(appointment: Appointment, now: datetime) -> bool:
    if is_terminal(appointment.status):
        return False
    return lead_time(appointment, now) > timedelta(hours=config.CANCEL_LEAD_TIME_HOURS)


def can_reschedule(appointment: Appointment, now: datetime) -> bool:
    if is_terminal(appointment.status):
        return False
    return lead_time(appointment, now) > timedelta(hours=config.RESCHEDULE_LEAD_TIME_HOURS)


def ensure_can_cancel(appointment: Appointment, now: datetime) -> None:
    if not can_cancel(appointment, now):
        raise TemporalError(
            f'Appointment cannot be cancelled less than {config.CANCEL_LEAD_TIME_HOURS} hours before it starts '
            'or after it has ended.'
        )


def ensure_can_reschedule(appointment: Appointment, now: datetime) -> None:
    if not can_reschedule(appointment, now):
        raise TemporalError(
            f'Appointment cannot be rescheduled less than {config.RESCHEDULE_LEAD_TIME_HOURS} hours before it '
            'starts or after it has ended.'
        )
