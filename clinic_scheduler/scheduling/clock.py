"""Wall-clock helpers shared by the scheduling engine.

Appointments store a calendar ``date`` and an ``HH:MM`` string interpreted in
``CLINIC_TIMEZONE``. ``now()`` returns the current instant in that same zone,
without tzinfo, so every comparison in the engine is between values on the
same clock.
"""

import re
from datetime import date, datetime, time
from zoneinfo import ZoneInfo

from clinic_scheduler.core import config
from clinic_scheduler.core.errors import ValidationError

WEEKDAY_NAMES = ('monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday')

_HHMM_PATTERN = re.compile(r'^([01]\d|2[0-3]):([0-5]\d)$')


def now() -> datetime:
    return datetime.now(ZoneInfo(config.CLINIC_TIMEZONE)).replace(tzinfo=None)


def parse_hhmm(value: str) -> time:
    match = _HHMM_PATTERN.match((value or '').strip())
    if not match:
        raise ValidationError(f'Invalid time {value!r}; expected HH:MM in 24-hour format.')
    return time(int(match.group(1)), int(match.group(2)))


def format_hhmm(value: time) -> str:
    return f'{value.hour:02d}:{value.minute:02d}'


def normalize_hhmm(value: str) -> str:
    return format_hhmm(parse_hhmm(value))


def normalize_weekday(value: str) -> str:
    normalized = (value or '').strip().lower()
    if normalized not in WEEKDAY_NAMES:
        raise ValidationError(f'Invalid weekday {value!r}.')
    return normalized


def weekday_name(day: date) -> str:
    return WEEKDAY_NAMES[day.weekday()]


def appointment_instant(day: date, hhmm: str) -> datetime:
    return datetime.combine(day, parse_hhmm(hhmm))

