from datetime import date, datetime

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_scheduler.auth.dependencies import get_current_actor, get_db
from clinic_scheduler.core import config
from clinic_scheduler.core.errors import SchedulingError, database_unavailable
from clinic_scheduler.models.user import User
from clinic_scheduler.routes.availability_routes import ensure_database_ready
from clinic_scheduler.scheduling import booking, clock, policy, ratings

router = APIRouter(tags=['appointments'])


class CreateAppointmentRequest(BaseModel):
    provider_id: str
    date: date
    time: str
    type: str
    reason: str
    symptoms: list[str] | None = None

    @field_validator('provider_id')
    @classmethod
    def validate_provider_id(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Provider is required.')
        return normalized

    @field_validator('time')
    @classmethod
    def validate_time(cls, value: str) -> str:
        return clock.normalize_hhmm(value)

    @field_validator('type')
    @classmethod
    def validate_type(cls, value: str) -> str:
        return booking.normalize_appointment_type(value)

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Reason for visit is required.')
        if len(normalized) > config.MAX_REASON_LENGTH:
            raise ValueError(f'Reason must be {config.MAX_REASON_LENGTH} characters or fewer.')
        return normalized


class CancelAppointmentRequest(BaseModel):
    reason: str


class RescheduleAppointmentRequest(BaseModel):
    new_date: date
    new_time: str
    reason: str | None = None

    @field_validator('new_time')
    @classmethod
    def validate_new_time(cls, value: str) -> str:
        return clock.normalize_hhmm(value)


class UpdateStatusRequest(BaseModel):
    status: str
    notes: str | None = None
    reason: str | None = None


class RateAppointmentRequest(BaseModel):
    score: int
    review: str | None = None


class AppointmentResponse(BaseModel):
    appointment_id: str
    requester_id: str
    provider_id: str
    date: date
    time: str
    duration_minutes: int
    appointment_type: str
    reason: str
    symptoms: list[str] = []
    status: str
    cancellation_reason: str | None = None
    cancelled_by: str | None = None
    cancelled_at: datetime | None = None
    previous_date: date | None = None
    previous_time: str | None = None
    reschedule_reason: str | None = None
    check_in_at: datetime | None = None
    check_out_at: datetime | None = None
    provider_notes: str | None = None
    rating_score: int | None = None
    rating_review: str | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class AppointmentPolicyResponse(BaseModel):
    appointment_id: str
    can_cancel: bool
    can_reschedule: bool
    lead_time_minutes: int


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    actor: User = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return booking.book_appointment(
            db,
            actor,
            data.provider_id,
            data.date,
            data.time,
            data.type,
            data.reason,
            symptoms=data.symptoms,
        )
    except SchedulingError as exc:
        db.rollback()
        raise exc.to_http() from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.get('/mine', response_model=list[AppointmentResponse])
def list_my_appointments(
    status_filter: str | None = Query(default=None, alias='status'),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    appointment_type: str | None = Query(default=None, alias='type'),
    actor: User = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return booking.list_appointments(
            db,
            actor,
            status=status_filter,
            start_date=start_date,
            end_date=end_date,
            appointment_type=appointment_type,
        )
    except SchedulingError as exc:
        raise exc.to_http() from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/{appointment_id}', response_model=AppointmentResponse)
def get_appointment(
    appointment_id: str,
    actor: User = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return booking.get_appointment(db, actor, appointment_id)
    except SchedulingError as exc:
        raise exc.to_http() from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/{appointment_id}/policy', response_model=AppointmentPolicyResponse)
def get_appointment_policy(
    appointment_id: str,
    actor: User = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        now = clock.now()
        appointment = booking.get_appointment(db, actor, appointment_id, now=now)
        return AppointmentPolicyResponse(
            appointment_id=appointment.appointment_id,
            can_cancel=policy.can_cancel(appointment, now),
            can_reschedule=policy.can_reschedule(appointment, now),
            lead_time_minutes=int(policy.lead_time(appointment, now).total_seconds() // 60),
        )
    except SchedulingError as exc:
        raise exc.to_http() from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.patch('/{appointment_id}/cancel', response_model=AppointmentResponse)
def cancel_appointment(
    appointment_id: str,
    data: CancelAppointmentRequest,
    actor: User = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return booking.cancel_appointment(db, actor, appointment_id, data.reason)
    except SchedulingError as exc:
        db.rollback()
        raise exc.to_http() from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.patch('/{appointment_id}/reschedule', response_model=AppointmentResponse)
def reschedule_appointment(
    appointment_id: str,
    data: RescheduleAppointmentRequest,
    actor: User = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return booking.reschedule_appointment(
            db,
            actor,
            appointment_id,
            data.new_date,
            data.new_time,
            reason=data.reason,
        )
    except SchedulingError as exc:
        db.rollback()
        raise exc.to_http() from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.patch('/{appointment_id}/status', response_model=AppointmentResponse)
def update_appointment_status(
    appointment_id: str,
    data: UpdateStatusRequest,
    actor: User = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return booking.update_status(
            db,
            actor,
            appointment_id,
            data.status,
            notes=data.notes,
            reason=data.reason,
        )
    except SchedulingError as exc:
        db.rollback()
        raise exc.to_http() from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.patch('/{appointment_id}/rate', response_model=AppointmentResponse)
def rate_appointment(
    appointment_id: str,
    data: RateAppointmentRequest,
    actor: User = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return ratings.rate_appointment(db, actor, appointment_id, data.score, review=data.review)
    except SchedulingError as exc:
        db.rollback()
        raise exc.to_http() from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc
