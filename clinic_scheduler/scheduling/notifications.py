"""
Appointment notifications.

Dispatch runs after the scheduling mutation has been committed. A failing
dispatcher is logged and never undoes the mutation.
"""

import logging

from clinic_scheduler.models.appointment import Appointment

logger = logging.getLogger(__name__)

APPOINTMENT_BOOKED = 'appointment_booked'
APPOINTMENT_CANCELLED = 'appointment_cancelled'
APPOINTMENT_RESCHEDULED = 'appointment_rescheduled'
APPOINTMENT_STATUS_CHANGED = 'appointment_status_changed'


class NotificationDispatcher:
    """Delivers appointment events to people. Subclasses reach email/SMS gateways."""

    def send(self, event: str, recipient_id: str, payload: dict) -> None:
        raise NotImplementedError


class LoggingDispatcher(NotificationDispatcher):
    def send(self, event: str, recipient_id: str, payload: dict) -> None:
        logger.info('Notification %s for %s: %s', event, recipient_id, payload)


_dispatcher: NotificationDispatcher = LoggingDispatcher()


def get_dispatcher() -> NotificationDispatcher:
    return _dispatcher


def set_dispatcher(dispatcher: NotificationDispatcher) -> None:
    global _dispatcher
    _dispatcher = dispatcher


def build_payload(appointment: Appointment, **extra) -> dict:
    payload = {
        'appointment_id': appointment.appointment_id,
        'date': appointment.date.isoformat(),
        'time': appointment.time,
        'status': appointment.status,
    }
    payload.update({key: value for key, value in extra.items() if value is not None})
    return payload


def notify(event: str, recipient_id: str, appointment: Appointment, **extra) -> None:
    try:
        get_dispatcher().send(event, recipient_id, build_payload(appointment, **extra))
    except Exception:
        logger.exception('Failed to dispatch %s for appointment %s', event, appointment.appointment_id)
