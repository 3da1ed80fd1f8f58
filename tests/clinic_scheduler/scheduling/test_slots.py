from datetime import date, datetime, timedelta
from types import SimpleNamespace

import pytest

from clinic_scheduler.core.errors import NotFoundError
from clinic_scheduler.models.availability import AvailabilityWindow, WeeklyAvailability
from clinic_scheduler.scheduling.slots import generate_slots, get_slots_for_date, iterate_window

MONDAY = date(2026, 1, 5)
EARLY_MONDAY = datetime(2026, 1, 5, 8, 0)
MORNING = [SimpleNamespace(start_time='09:00', end_time='12:00')]


def _times(slots) -> list[str]:
    return [slot.time for slot in slots]


def test_generate_slots_covers_window_in_thirty_minute_steps() -> None:
    slots = generate_slots(MORNING, MONDAY, EARLY_MONDAY, booked_times=set(), blocks=[])

    assert _times(slots) == ['09:00', '09:30', '10:00', '10:30', '11:00', '11:30']
    assert all(slot.available for slot in slots)


def test_generate_slots_never_emits_window_end() -> None:
    slots = generate_slots(
        [SimpleNamespace(start_time='09:00', end_time='09:45')],
        MONDAY,
        EARLY_MONDAY,
        booked_times=set(),
        blocks=[],
    )

    assert _times(slots) == ['09:00', '09:30']


def test_generate_slots_marks_booked_time_unavailable() -> None:
    slots = generate_slots(MORNING, MONDAY, EARLY_MONDAY, booked_times={'10:00'}, blocks=[])

    availability = {slot.time: slot.available for slot in slots}
    assert availability['10:00'] is False
    assert [time for time, available in availability.items() if not available] == ['10:00']


def test_generate_slots_marks_blocked_range_half_open() -> None:
    block = SimpleNamespace(start_time='10:00', end_time='11:00')

    slots = generate_slots(MORNING, MONDAY, EARLY_MONDAY, booked_times=set(), blocks=[block])

    availability = {slot.time: slot.available for slot in slots}
    assert availability['10:00'] is False
    assert availability['10:30'] is False
    assert availability['11:00'] is True
    assert availability['09:30'] is True


def test_generate_slots_marks_past_times_today_unavailable() -> None:
    now = datetime(2026, 1, 5, 10, 0)

    slots = generate_slots(MORNING, MONDAY, now, booked_times=set(), blocks=[])

    availability = {slot.time: slot.available for slot in slots}
    assert availability['09:30'] is False
    assert availability['10:00'] is False
    assert availability['10:30'] is True


def test_generate_slots_only_applies_clock_check_to_today() -> None:
    windows = [SimpleNamespace(start_time='09:00', end_time='10:00')]
    yesterday = date(2026, 1, 4)

    slots = generate_slots(windows, yesterday, EARLY_MONDAY, booked_times=set(), blocks=[], granularity=30)

    assert [(slot.time, slot.available) for slot in slots] == [('09:00', True), ('09:30', True)]


def test_generate_slots_flags_slot_that_is_both_booked_and_blocked() -> None:
    block = SimpleNamespace(start_time='10:00', end_time='10:30')

    slots = generate_slots(MORNING, MONDAY, EARLY_MONDAY, booked_times={'10:00'}, blocks=[block])

    assert [slot.time for slot in slots if not slot.available] == ['10:00']


def test_generate_slots_keeps_overlapping_windows_unmerged() -> None:
    windows = [
        SimpleNamespace(start_time='09:00', end_time='10:00'),
        SimpleNamespace(start_time='09:30', end_time='10:30'),
    ]

    slots = generate_slots(windows, MONDAY, EARLY_MONDAY, booked_times=set(), blocks=[])

    assert _times(slots) == ['09:00', '09:30', '09:30', '10:00']


@pytest.mark.parametrize(
    ('start_time', 'end_time'),
    [('09:00', '17:00'), ('08:30', '12:00'), ('13:15', '16:45')],
)
def test_iterate_window_steps_by_granularity(start_time: str, end_time: str) -> None:
    starts = iterate_window(MONDAY, start_time, end_time, 30)

    assert starts[0] == datetime.combine(MONDAY, datetime.strptime(start_time, '%H:%M').time())
    assert all(later - earlier == timedelta(minutes=30) for earlier, later in zip(starts, starts[1:]))
    assert starts[-1] < datetime.combine(MONDAY, datetime.strptime(end_time, '%H:%M').time())


def test_get_slots_for_date_returns_six_open_slots_for_monday_morning(db, monday_schedule) -> None:
    slots = get_slots_for_date(db, 'doc-1', MONDAY, now=EARLY_MONDAY)

    assert _times(slots) == ['09:00', '09:30', '10:00', '10:30', '11:00', '11:30']
    assert all(slot.available for slot in slots)


def test_get_slots_for_date_is_empty_without_weekday_entry(db, monday_schedule) -> None:
    tuesday = date(2026, 1, 6)

    assert get_slots_for_date(db, 'doc-1', tuesday, now=EARLY_MONDAY) == []


def test_get_slots_for_date_is_empty_when_day_marked_unavailable(db, users) -> None:
    entry = WeeklyAvailability(provider_id='doc-1', weekday='monday', is_available=False)
    entry.windows.append(AvailabilityWindow(position=0, start_time='09:00', end_time='12:00'))
    db.add(entry)
    db.commit()

    assert get_slots_for_date(db, 'doc-1', MONDAY, now=EARLY_MONDAY) == []


def test_get_slots_for_date_marks_existing_booking(db, monday_schedule, make_appointment) -> None:
    make_appointment(time='10:00', status='confirmed')

    slots = get_slots_for_date(db, 'doc-1', MONDAY, now=EARLY_MONDAY)

    assert [slot.time for slot in slots if not slot.available] == ['10:00']


def test_get_slots_for_date_ignores_cancelled_and_no_show_bookings(db, monday_schedule, make_appointment) -> None:
    make_appointment(time='10:00', status='cancelled')
    make_appointment(time='10:30', status='no-show')

    slots = get_slots_for_date(db, 'doc-1', MONDAY, now=EARLY_MONDAY)

    assert all(slot.available for slot in slots)


def test_get_slots_for_date_marks_active_block(db, monday_schedule, make_block) -> None:
    make_block(start_time='10:00', end_time='10:30')
    make_block(start_time='11:00', end_time='12:00', is_active=False)

    slots = get_slots_for_date(db, 'doc-1', MONDAY, now=EARLY_MONDAY)

    assert [slot.time for slot in slots if not slot.available] == ['10:00']


def test_get_slots_for_date_ignores_other_providers_bookings(db, monday_schedule, make_appointment) -> None:
    make_appointment(provider_id='doc-2', time='10:00')

    slots = get_slots_for_date(db, 'doc-1', MONDAY, now=EARLY_MONDAY)

    assert all(slot.available for slot in slots)


def test_get_slots_for_date_rejects_unknown_provider(db, users) -> None:
    with pytest.raises(NotFoundError) as exception_info:
        get_slots_for_date(db, 'nobody', MONDAY, now=EARLY_MONDAY)

    assert exception_info.value.detail == 'Provider not found.'
