"""Provider weekly templates and recurring blocked ranges."""

import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.orm import Session

from clinic_scheduler.core.errors import ConflictError, NotFoundError, ValidationError
from clinic_scheduler.models.availability import AvailabilityWindow, WeeklyAvailability
from clinic_scheduler.models.blocked_range import BlockedRange
from clinic_scheduler.models.user import PROVIDER_ROLE, REQUESTER_ROLE, User
from clinic_scheduler.scheduling import clock

logger = logging.getLogger(__name__)


@dataclass
class WindowInput:
    start_time: str
    end_time: str


@dataclass
class WeekdayInput:
    weekday: str
    is_available: bool = True
    windows: list[WindowInput] = field(default_factory=list)


def get_user(db: Session, user_id: str, role: str, label: str) -> User:
    user = db.query(User).filter(User.id == user_id, User.role == role).first()
    if user is None:
        raise NotFoundError(f'{label} not found.')
    return user


def get_provider(db: Session, provider_id: str) -> User:
    return get_user(db, provider_id, PROVIDER_ROLE, 'Provider')


def get_requester(db: Session, requester_id: str) -> User:
    return get_user(db, requester_id, REQUESTER_ROLE, 'Requester')


def validate_range(start_time: str, end_time: str) -> tuple[str, str]:
    start = clock.normalize_hhmm(start_time)
    end = clock.normalize_hhmm(end_time)
    if start >= end:
        raise ValidationError('End time must be after start time.')
    return start, end


def get_weekly_availability(db: Session, provider_id: str) -> list[WeeklyAvailability]:
    get_provider(db, provider_id)
    entries = db.query(WeeklyAvailability).filter(WeeklyAvailability.provider_id == provider_id).all()
    return sorted(entries, key=lambda entry: clock.WEEKDAY_NAMES.index(entry.weekday))


def set_weekly_availability(db: Session, provider_id: str, entries: list[WeekdayInput]) -> list[WeeklyAvailability]:
    """Replace the provider's whole weekly template."""
    get_provider(db, provider_id)

    seen: set[str] = set()
    rows: list[WeeklyAvailability] = []
    for entry in entries:
        weekday = clock.normalize_weekday(entry.weekday)
        if weekday in seen:
            raise ValidationError(f'Duplicate availability entry for {weekday}.')
        seen.add(weekday)

        row = WeeklyAvailability(provider_id=provider_id, weekday=weekday, is_available=entry.is_available)
        for position, window in enumerate(entry.windows):
            start, end = validate_range(window.start_time, window.end_time)
            row.windows.append(AvailabilityWindow(position=position, start_time=start, end_time=end))
        rows.append(row)

    for existing in db.query(WeeklyAvailability).filter(WeeklyAvailability.provider_id == provider_id).all():
        db.delete(existing)
    db.flush()

    db.add_all(rows)
    db.commit()
    logger.info('Updated weekly availability for provider %s (%d days)', provider_id, len(rows))

    return get_weekly_availability(db, provider_id)


def windows_for(db: Session, provider_id: str, weekday: str) -> list[AvailabilityWindow]:
    entry = db.query(WeeklyAvailability).filter(
        WeeklyAvailability.provider_id == provider_id,
        WeeklyAvailability.weekday == weekday,
    ).first()

    if entry is None or not entry.is_available:
        return []
    return list(entry.windows)


def active_blocks_for(db: Session, provider_id: str, weekday: str) -> list[BlockedRange]:
    return db.query(BlockedRange).filter(
        BlockedRange.provider_id == provider_id,
        BlockedRange.weekday == weekday,
        BlockedRange.is_active.is_(True),
    ).order_by(BlockedRange.start_time.asc()).all()


def list_blocked_ranges(db: Session, provider_id: str) -> list[BlockedRange]:
    get_provider(db, provider_id)
    ranges = db.query(BlockedRange).filter(
        BlockedRange.provider_id == provider_id,
        BlockedRange.is_active.is_(True),
    ).all()
    return sorted(ranges, key=lambda block: (clock.WEEKDAY_NAMES.index(block.weekday), block.start_time))


def create_blocked_range(
    db: Session,
    provider_id: str,
    weekday: str,
    start_time: str,
    end_time: str,
    reason: str | None = None,
    created_at: datetime | None = None,
) -> BlockedRange:
    get_provider(db, provider_id)
    weekday = clock.normalize_weekday(weekday)
    start, end = validate_range(start_time, end_time)

    overlapping = db.query(BlockedRange).filter(
        BlockedRange.provider_id == provider_id,
        BlockedRange.weekday == weekday,
        BlockedRange.is_active.is_(True),
        BlockedRange.start_time < end,
        BlockedRange.end_time > start,
    ).first()
    if overlapping:
        raise ConflictError('This time range overlaps with an existing blocked range.')

    blocked = BlockedRange(
        provider_id=provider_id,
        weekday=weekday,
        start_time=start,
        end_time=end,
        reason=(reason or '').strip(),
        is_active=True,
        created_at=created_at or clock.now(),
    )
    db.add(blocked)
    db.commit()
    db.refresh(blocked)
    logger.info('Blocked %s %s-%s for provider %s', weekday, start, end, provider_id)

    return blocked


def deactivate_blocked_range(db: Session, provider_id: str | None, blocked_range_id: int) -> BlockedRange:
    """Soft-delete a blocked range. ``provider_id=None`` skips the ownership check."""
    query = db.query(BlockedRange).filter(BlockedRange.id == blocked_range_id)
    if provider_id is not None:
        query = query.filter(BlockedRange.provider_id == provider_id)

    blocked = query.first()
    if blocked is None:
        raise NotFoundError('Blocked range not found.')

    blocked.is_active = False
    db.commit()
    db.refresh(blocked)
    logger.info('Unblocked range %s for provider %s', blocked.id, blocked.provider_id)

    return blocked
