import os
from datetime import date, datetime

import pytest

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')
os.environ.setdefault('SWEEPER_ENABLED', 'false')

from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from clinic_scheduler.database import Base  # noqa: E402
from clinic_scheduler.models.appointment import Appointment  # noqa: E402
from clinic_scheduler.models.availability import AvailabilityWindow, WeeklyAvailability  # noqa: E402
from clinic_scheduler.models.blocked_range import BlockedRange  # noqa: E402
from clinic_scheduler.models.provider_rating import ProviderRating  # noqa: E402, F401
from clinic_scheduler.models.user import User  # noqa: E402

# Monday.
MONDAY = date(2026, 1, 5)
NOW = datetime(2026, 1, 5, 8, 0)


@pytest.fixture
def session_factory():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def users(db):
    directory = {
        'requester': User(id='req-1', email='pat@example.com', full_name='Pat Lee', role='requester'),
        'other_requester': User(id='req-2', email='sam@example.com', full_name='Sam Roe', role='requester'),
        'provider': User(id='doc-1', email='dr.kim@example.com', full_name='Dr. Kim', role='provider'),
        'other_provider': User(id='doc-2', email='dr.ng@example.com', full_name='Dr. Ng', role='provider'),
        'admin': User(id='adm-1', email='ops@example.com', full_name='Ops', role='admin'),
    }
    db.add_all(directory.values())
    db.commit()
    return directory


@pytest.fixture
def monday_schedule(db, users):
    entry = WeeklyAvailability(provider_id='doc-1', weekday='monday', is_available=True)
    entry.windows.append(AvailabilityWindow(position=0, start_time='09:00', end_time='12:00'))
    db.add(entry)
    db.commit()
    return entry


@pytest.fixture
def make_appointment(db, users):
    counter = {'value': 0}

    def _make(**overrides) -> Appointment:
        counter['value'] += 1
        values = {
            'appointment_id': f'APT20260101{counter["value"]:04d}',
            'requester_id': 'req-1',
            'provider_id': 'doc-1',
            'date': MONDAY,
            'time': '10:00',
            'duration_minutes': 30,
            'appointment_type': 'in-person',
            'reason': 'Follow-up visit',
            'symptoms': [],
            'status': 'scheduled',
            'created_at': NOW,
            'updated_at': NOW,
        }
        values.update(overrides)
        appointment = Appointment(**values)
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
        return appointment

    return _make


@pytest.fixture
def make_block(db, users):
    def _make(**overrides) -> BlockedRange:
        values = {
            'provider_id': 'doc-1',
            'weekday': 'monday',
            'start_time': '10:00',
            'end_time': '10:30',
            'reason': 'Staff meeting',
            'is_active': True,
            'created_at': NOW,
        }
        values.update(overrides)
        block = BlockedRange(**values)
        db.add(block)
        db.commit()
        db.refresh(block)
        return block

    return _make


@pytest.fixture
def frozen_clock(monkeypatch: pytest.MonkeyPatch) -> datetime:
    from clinic_scheduler.scheduling import clock

    monkeypatch.setattr(clock, 'now', lambda: NOW)
    return NOW
