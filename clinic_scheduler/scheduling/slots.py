"""
Slot generation.

Turns a provider's weekly windows into the ordered list of candidate start
times for one calendar date. A candidate is unavailable when any of these
holds:

- an appointment that still holds its slot starts at that exact time
- it falls inside ``[start, end)`` of an active blocked range for the weekday
- the target date is today and its start is at or before ``now``
"""

from datetime import date, datetime, timedelta
from typing import Iterable

from pydantic import BaseModel
from sqlalchemy.orm import Session

from clinic_scheduler.core import config
from clinic_scheduler.scheduling import availability, clock
from clinic_scheduler.scheduling.conflicts import booked_times_on


class Slot(BaseModel):
    time: str
    available: bool


def iterate_window(target_date: date, start_time: str, end_time: str, granularity: int) -> list[datetime]:
    """Start instants from ``start_time`` up to but excluding ``end_time``."""
    current = clock.appointment_instant(target_date, start_time)
    end = clock.appointment_instant(target_date, end_time)
    step = timedelta(minutes=granularity)

    starts: list[datetime] = []
    while current < end:
        starts.append(current)
        current += step
    return starts


def is_blocked(slot_time: str, blocks: Iterable) -> bool:
    return any(block.start_time <= slot_time < block.end_time for block in blocks)


def generate_slots(
    windows: Iterable,
    target_date: date,
    now: datetime,
    booked_times: set[str],
    blocks: Iterable,
    granularity: int | None = None,
) -> list[Slot]:
    granularity = granularity or config.SLOT_GRANULARITY_MINUTES
    blocks = list(blocks)

    slots: list[Slot] = []
    # Windows are not merged; overlapping windows yield repeated times.
    for window in windows:
        for start in iterate_window(target_date, window.start_time, window.end_time, granularity):
            slot_time = clock.format_hhmm(start.time())
            is_booked = slot_time in booked_times
            is_past = target_date == now.date() and start <= now
            available = not (is_booked or is_blocked(slot_time, blocks) or is_past)
            slots.append(Slot(time=slot_time, available=available))

    return slots


def get_slots_for_date(
    db: Session,
    provider_id: str,
    target_date: date,
    now: datetime | None = None,
) -> list[Slot]:
    now = now or clock.now()
    availability.get_provider(db, provider_id)

    weekday = clock.weekday_name(target_date)
    windows = availability.windows_for(db, provider_id, weekday)
    if not windows:
        return []

    return generate_slots(
        windows,
        target_date,
        now,
        booked_times_on(db, provider_id, target_date),
        availability.active_blocks_for(db, provider_id, weekday),
    )
