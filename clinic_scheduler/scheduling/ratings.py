"""Appointment ratings and the provider's average.

The average is recomputed from every rated, completed appointment of the
provider on each submission. Recomputation is serialized per provider: a
fixed pool of process-local locks striped by provider id, plus a row lock
on the aggregate where the database supports ``SELECT ... FOR UPDATE``.
"""

import logging
from datetime import datetime
from threading import Lock

from sqlalchemy import func
from sqlalchemy.orm import Session

from clinic_scheduler.core.errors import AuthorizationError, ValidationError
from clinic_scheduler.models.appointment import Appointment, AppointmentStatus
from clinic_scheduler.models.provider_rating import ProviderRating
from clinic_scheduler.models.user import REQUESTER_ROLE, User
from clinic_scheduler.scheduling import clock
from clinic_scheduler.scheduling.booking import load_for_party
from clinic_scheduler.scheduling.sweeper import sweep_expired

logger = logging.getLogger(__name__)

MIN_SCORE = 1
MAX_SCORE = 5

LOCK_STRIPES = 64

_provider_locks = tuple(Lock() for _ in range(LOCK_STRIPES))


def _lock_for(provider_id: str) -> Lock:
    # Providers sharing a stripe serialize against each other; the pool never grows.
    return _provider_locks[hash(provider_id) % LOCK_STRIPES]


def recompute_provider_rating(db: Session, provider_id: str, now: datetime) -> ProviderRating:
    summary = db.query(ProviderRating).filter(ProviderRating.provider_id == provider_id).with_for_update().first()
    if summary is None:
        summary = ProviderRating(provider_id=provider_id, average=0.0, count=0)
        db.add(summary)

    total, count = db.query(func.sum(Appointment.rating_score), func.count(Appointment.rating_score)).filter(
        Appointment.provider_id == provider_id,
        Appointment.status == AppointmentStatus.COMPLETED.value,
        Appointment.rating_score.is_not(None),
    ).one()

    summary.count = count or 0
    summary.average = (total / count) if count else 0.0
    summary.updated_at = now

    return summary


def get_provider_rating(db: Session, provider_id: str) -> ProviderRating:
    summary = db.query(ProviderRating).filter(ProviderRating.provider_id == provider_id).first()
    return summary or ProviderRating(provider_id=provider_id, average=0.0, count=0)


def rate_appointment(
    db: Session,
    actor: User,
    appointment_id: str,
    score: int,
    review: str | None = None,
    now: datetime | None = None,
) -> Appointment:
    if score is None or not MIN_SCORE <= score <= MAX_SCORE:
        raise ValidationError(f'Rating must be between {MIN_SCORE} and {MAX_SCORE}.')
    if actor.role != REQUESTER_ROLE:
        raise AuthorizationError('Only the requester can rate an appointment.')

    now = now or clock.now()
    appointment = load_for_party(db, actor, appointment_id, 'rate')
    appointment = sweep_expired(db, [appointment], now=now)[0]

    if appointment.status != AppointmentStatus.COMPLETED.value:
        raise ValidationError('You can only rate completed appointments.')

    with _lock_for(appointment.provider_id):
        appointment.rating_score = score
        appointment.rating_review = (review or '').strip()
        appointment.rated_at = now
        db.flush()

        summary = recompute_provider_rating(db, appointment.provider_id, now)
        db.commit()

    db.refresh(appointment)
    logger.info(
        'Provider %s rating is now %.2f over %d ratings',
        appointment.provider_id,
        summary.average,
        summary.count,
    )

    return appointment
