"""Booking, rescheduling, cancellation and provider status updates.

Every mutation commits before notifications go out. Read paths run the
expiration sweeper over whatever they return.
"""

import logging
from datetime import date, datetime

from sqlalchemy.orm import Session

from clinic_scheduler.core import config
from clinic_scheduler.core.errors import AuthorizationError, NotFoundError, ValidationError
from clinic_scheduler.models.appointment import Appointment, AppointmentStatus, AppointmentType
from clinic_scheduler.models.user import ADMIN_ROLE, PROVIDER_ROLE, REQUESTER_ROLE, User
from clinic_scheduler.scheduling import availability, clock, conflicts, lifecycle, notifications, policy
from clinic_scheduler.scheduling.identifiers import next_appointment_id
from clinic_scheduler.scheduling.sweeper import sweep_expired

logger = logging.getLogger(__name__)

APPOINTMENT_TYPES = tuple(appointment_type.value for appointment_type in AppointmentType)


def _clean(value: str | None) -> str:
    return (value or '').strip()


def normalize_appointment_type(value: str | None) -> str:
    normalized = _clean(value).lower()
    if normalized not in APPOINTMENT_TYPES:
        raise ValidationError('Invalid appointment type.')
    return normalized


def normalize_symptoms(symptoms) -> list[str]:
    if symptoms is None:
        return []
    if isinstance(symptoms, str):
        symptoms = [symptoms]
    return [symptom.strip() for symptom in symptoms if symptom and symptom.strip()]


def is_party(actor: User, appointment: Appointment) -> bool:
    if actor.role == ADMIN_ROLE:
        return True
    if actor.role == REQUESTER_ROLE:
        return appointment.requester_id == actor.id
    if actor.role == PROVIDER_ROLE:
        return appointment.provider_id == actor.id
    return False


def load_appointment(db: Session, appointment_id: str) -> Appointment:
    appointment = db.query(Appointment).filter(Appointment.appointment_id == appointment_id).first()
    if appointment is None:
        raise NotFoundError('Appointment not found.')
    return appointment


def load_for_party(db: Session, actor: User, appointment_id: str, action: str) -> Appointment:
    appointment = load_appointment(db, appointment_id)
    if not is_party(actor, appointment):
        raise AuthorizationError(f'You can only {action} your own appointments.')
    return appointment


def _other_party(actor: User, appointment: Appointment) -> list[str]:
    return [party for party in (appointment.requester_id, appointment.provider_id) if party != actor.id]


def book_appointment(
    db: Session,
    actor: User,
    provider_id: str | None,
    on_date: date | None,
    hhmm: str | None,
    appointment_type: str | None,
    reason: str | None,
    symptoms: list[str] | None = None,
    now: datetime | None = None,
) -> Appointment:
    if not _clean(provider_id) or on_date is None or not _clean(hhmm) or not _clean(appointment_type) \
            or not _clean(reason):
        raise ValidationError('Missing required fields: provider_id, date, time, type, and reason are required.')

    hhmm = clock.normalize_hhmm(hhmm)
    appointment_type = normalize_appointment_type(appointment_type)
    reason = _clean(reason)
    if len(reason) > config.MAX_REASON_LENGTH:
        raise ValidationError(f'Reason must be {config.MAX_REASON_LENGTH} characters or fewer.')

    if actor.role != REQUESTER_ROLE:
        raise AuthorizationError('Only requesters can book appointments.')

    now = now or clock.now()
    requester = availability.get_requester(db, actor.id)
    provider = availability.get_provider(db, provider_id)
    if provider.is_active is False:
        raise ValidationError('Provider is not available for appointments.')

    conflicts.check_slot(db, provider.id, on_date, hhmm, now)

    appointment = Appointment(
        appointment_id=next_appointment_id(db, now.date()),
        requester_id=requester.id,
        provider_id=provider.id,
        date=on_date,
        time=hhmm,
        duration_minutes=config.DEFAULT_APPOINTMENT_DURATION_MINUTES,
        appointment_type=appointment_type,
        reason=reason,
        symptoms=normalize_symptoms(symptoms),
        status=AppointmentStatus.SCHEDULED.value,
        created_at=now,
        updated_at=now,
    )
    conflicts.reserve_slot(db, appointment)
    db.commit()
    db.refresh(appointment)
    logger.info(
        'Booked %s with provider %s on %s at %s',
        appointment.appointment_id,
        provider.id,
        on_date,
        hhmm,
    )

    notifications.notify(notifications.APPOINTMENT_BOOKED, provider.id, appointment, requester_id=requester.id)
    notifications.notify(notifications.APPOINTMENT_BOOKED, requester.id, appointment, provider_id=provider.id)

    return appointment


def reschedule_appointment(
    db: Session,
    actor: User,
    appointment_id: str,
    new_date: date | None,
    new_time: str | None,
    reason: str | None = None,
    now: datetime | None = None,
) -> Appointment:
    if new_date is None or not _clean(new_time):
        raise ValidationError('New date and time are required.')
    new_time = clock.normalize_hhmm(new_time)

    now = now or clock.now()
    appointment = load_for_party(db, actor, appointment_id, 'reschedule')
    policy.ensure_can_reschedule(appointment, now)

    conflicts.check_slot(
        db,
        appointment.provider_id,
        new_date,
        new_time,
        now,
        exclude_id=appointment.id,
        past_detail='Cannot reschedule to a past date/time.',
    )

    old_date, old_time = appointment.date, appointment.time
    appointment.previous_date = old_date
    appointment.previous_time = old_time
    appointment.reschedule_reason = _clean(reason) or None
    appointment.date = new_date
    appointment.time = new_time
    appointment.updated_at = now

    conflicts.reserve_slot(db, appointment)
    db.commit()
    db.refresh(appointment)
    logger.info('Rescheduled %s from %s %s to %s %s', appointment.appointment_id, old_date, old_time, new_date, new_time)

    for recipient in _other_party(actor, appointment):
        notifications.notify(
            notifications.APPOINTMENT_RESCHEDULED,
            recipient,
            appointment,
            previous_date=old_date.isoformat(),
            previous_time=old_time,
            reason=appointment.reschedule_reason,
        )

    return appointment


def cancel_appointment(
    db: Session,
    actor: User,
    appointment_id: str,
    reason: str | None,
    now: datetime | None = None,
) -> Appointment:
    if not _clean(reason):
        raise ValidationError('Cancel reason is required.')

    now = now or clock.now()
    appointment = load_for_party(db, actor, appointment_id, 'cancel')
    policy.ensure_can_cancel(appointment, now)

    lifecycle.apply_transition(appointment, AppointmentStatus.CANCELLED.value, actor.role, now, reason=reason)
    db.commit()
    db.refresh(appointment)

    for recipient in _other_party(actor, appointment):
        notifications.notify(
            notifications.APPOINTMENT_CANCELLED,
            recipient,
            appointment,
            reason=appointment.cancellation_reason,
            cancelled_by=appointment.cancelled_by,
        )

    return appointment


def update_status(
    db: Session,
    actor: User,
    appointment_id: str,
    target: str,
    notes: str | None = None,
    reason: str | None = None,
    now: datetime | None = None,
) -> Appointment:
    """Provider-driven lifecycle changes: confirm, check in, complete, cancel, no-show."""
    target = lifecycle.normalize_status(target)
    if actor.role not in (PROVIDER_ROLE, ADMIN_ROLE):
        raise AuthorizationError('Only the provider can update appointment status.')

    now = now or clock.now()
    appointment = load_for_party(db, actor, appointment_id, 'update')

    if target == AppointmentStatus.CANCELLED.value:
        policy.ensure_can_cancel(appointment, now)

    lifecycle.apply_transition(appointment, target, actor.role, now, reason=reason, notes=notes)
    db.commit()
    db.refresh(appointment)

    notifications.notify(notifications.APPOINTMENT_STATUS_CHANGED, appointment.requester_id, appointment)

    return appointment


def get_appointment(db: Session, actor: User, appointment_id: str, now: datetime | None = None) -> Appointment:
    appointment = load_for_party(db, actor, appointment_id, 'view')
    return sweep_expired(db, [appointment], now=now)[0]


def _parse_status_filter(status: str | None) -> set[str]:
    if not _clean(status):
        return set()
    return {lifecycle.normalize_status(value) for value in status.split(',') if value.strip()}


def list_appointments(
    db: Session,
    actor: User,
    status: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    appointment_type: str | None = None,
    now: datetime | None = None,
) -> list[Appointment]:
    statuses = _parse_status_filter(status)

    query = db.query(Appointment)
    if actor.role == REQUESTER_ROLE:
        query = query.filter(Appointment.requester_id == actor.id)
    elif actor.role == PROVIDER_ROLE:
        query = query.filter(Appointment.provider_id == actor.id)
    elif actor.role != ADMIN_ROLE:
        raise AuthorizationError('Unknown role.')

    if _clean(appointment_type):
        query = query.filter(Appointment.appointment_type == normalize_appointment_type(appointment_type))
    if start_date is not None:
        query = query.filter(Appointment.date >= start_date)
    if end_date is not None:
        query = query.filter(Appointment.date <= end_date)

    appointments = query.order_by(Appointment.date.desc(), Appointment.time.desc()).all()
    appointments = sweep_expired(db, appointments, now=now)

    # Filter after sweeping so the filter sees reconciled statuses.
    if statuses:
        appointments = [appointment for appointment in appointments if appointment.status in statuses]

    return appointments
