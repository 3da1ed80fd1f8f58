from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_scheduler.auth.dependencies import get_current_actor, get_db
from clinic_scheduler.core.errors import SchedulingError, database_unavailable
from clinic_scheduler.database import ensure_availability_schema, ensure_appointment_schema
from clinic_scheduler.models.user import ADMIN_ROLE, PROVIDER_ROLE, User
from clinic_scheduler.scheduling import availability, clock, ratings
from clinic_scheduler.scheduling.slots import Slot, get_slots_for_date

router = APIRouter(tags=['availability'])

NOT_AVAILABLE_MESSAGE = 'Provider is not available on this day.'


class WindowPayload(BaseModel):
    start_time: str
    end_time: str

    @field_validator('start_time', 'end_time')
    @classmethod
    def validate_time(cls, value: str) -> str:
        return clock.normalize_hhmm(value)

    class Config:
        from_attributes = True


class WeekdayAvailabilityPayload(BaseModel):
    weekday: str
    is_available: bool = True
    windows: list[WindowPayload] = []

    @field_validator('weekday')
    @classmethod
    def validate_weekday(cls, value: str) -> str:
        return clock.normalize_weekday(value)

    class Config:
        from_attributes = True


class SlotListResponse(BaseModel):
    provider_id: str
    date: date
    message: str | None = None
    slots: list[Slot]


class CreateBlockedRangeRequest(BaseModel):
    weekday: str
    start_time: str
    end_time: str
    reason: str | None = None
    provider_id: str | None = None

    @field_validator('weekday')
    @classmethod
    def validate_weekday(cls, value: str) -> str:
        return clock.normalize_weekday(value)

    @field_validator('start_time', 'end_time')
    @classmethod
    def validate_time(cls, value: str) -> str:
        return clock.normalize_hhmm(value)


class BlockedRangeResponse(BaseModel):
    id: int
    provider_id: str
    weekday: str
    start_time: str
    end_time: str
    reason: str | None = None
    is_active: bool
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class ProviderRatingResponse(BaseModel):
    provider_id: str
    average: float
    count: int


def ensure_database_ready() -> None:
    try:
        ensure_availability_schema()
        ensure_appointment_schema()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


def resolve_provider_scope(actor: User, provider_id: str | None) -> str:
    """Providers manage their own schedule; admins name the provider."""
    if actor.role == PROVIDER_ROLE:
        if provider_id and provider_id != actor.id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail='Providers can only manage their own schedule.',
            )
        return actor.id

    if actor.role == ADMIN_ROLE:
        if not provider_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='provider_id is required.',
            )
        return provider_id

    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail='Only providers and admins can manage schedules.',
    )


@router.get('/{provider_id}/slots', response_model=SlotListResponse)
def list_slots(
    provider_id: str,
    slot_date: date = Query(..., alias='date'),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        slots = get_slots_for_date(db, provider_id, slot_date)
        return SlotListResponse(
            provider_id=provider_id,
            date=slot_date,
            message=None if slots else NOT_AVAILABLE_MESSAGE,
            slots=slots,
        )
    except SchedulingError as exc:
        raise exc.to_http() from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/{provider_id}/schedule', response_model=list[WeekdayAvailabilityPayload])
def get_schedule(provider_id: str, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return availability.get_weekly_availability(db, provider_id)
    except SchedulingError as exc:
        raise exc.to_http() from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.put('/{provider_id}/schedule', response_model=list[WeekdayAvailabilityPayload])
def update_schedule(
    provider_id: str,
    data: list[WeekdayAvailabilityPayload],
    actor: User = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    provider_id = resolve_provider_scope(actor, provider_id)
    ensure_database_ready()

    try:
        entries = [
            availability.WeekdayInput(
                weekday=entry.weekday,
                is_available=entry.is_available,
                windows=[availability.WindowInput(w.start_time, w.end_time) for w in entry.windows],
            )
            for entry in data
        ]
        return availability.set_weekly_availability(db, provider_id, entries)
    except SchedulingError as exc:
        db.rollback()
        raise exc.to_http() from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.get('/{provider_id}/blocked-ranges', response_model=list[BlockedRangeResponse])
def list_blocked_ranges(provider_id: str, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return availability.list_blocked_ranges(db, provider_id)
    except SchedulingError as exc:
        raise exc.to_http() from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('/blocked-ranges', response_model=BlockedRangeResponse, status_code=status.HTTP_201_CREATED)
def create_blocked_range(
    data: CreateBlockedRangeRequest,
    actor: User = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    provider_id = resolve_provider_scope(actor, data.provider_id)
    ensure_database_ready()

    try:
        return availability.create_blocked_range(
            db,
            provider_id,
            data.weekday,
            data.start_time,
            data.end_time,
            reason=data.reason,
        )
    except SchedulingError as exc:
        db.rollback()
        raise exc.to_http() from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.delete('/blocked-ranges/{blocked_range_id}', status_code=status.HTTP_204_NO_CONTENT)
def remove_blocked_range(
    blocked_range_id: int,
    actor: User = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    if actor.role not in (PROVIDER_ROLE, ADMIN_ROLE):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail='Only providers and admins can unblock time ranges.',
        )

    ensure_database_ready()

    try:
        owner = actor.id if actor.role == PROVIDER_ROLE else None
        availability.deactivate_blocked_range(db, owner, blocked_range_id)
    except SchedulingError as exc:
        raise exc.to_http() from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.get('/{provider_id}/rating', response_model=ProviderRatingResponse)
def get_provider_rating(provider_id: str, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        availability.get_provider(db, provider_id)
        summary = ratings.get_provider_rating(db, provider_id)
        return ProviderRatingResponse(
            provider_id=provider_id,
            average=summary.average or 0.0,
            count=summary.count or 0,
        )
    except SchedulingError as exc:
        raise exc.to_http() from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc
