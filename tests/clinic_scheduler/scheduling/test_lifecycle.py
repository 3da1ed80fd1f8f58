from datetime import datetime
from types import SimpleNamespace

import pytest

from clinic_scheduler.core.errors import ValidationError
from clinic_scheduler.scheduling.lifecycle import apply_transition, can_transition, is_terminal, normalize_status

AT = datetime(2026, 1, 5, 9, 5)


def _appointment(status: str) -> SimpleNamespace:
    return SimpleNamespace(
        appointment_id='APT202601050001',
        status=status,
        cancellation_reason=None,
        cancelled_by=None,
        cancelled_at=None,
        check_in_at=None,
        check_out_at=None,
        provider_notes=None,
        updated_at=None,
    )


@pytest.mark.parametrize(
    ('current', 'target'),
    [
        ('scheduled', 'confirmed'),
        ('scheduled', 'cancelled'),
        ('scheduled', 'no-show'),
        ('confirmed', 'in-progress'),
        ('confirmed', 'completed'),
        ('confirmed', 'no-show'),
        ('in-progress', 'completed'),
        ('in-progress', 'cancelled'),
    ],
)
def test_allowed_transitions(current: str, target: str) -> None:
    assert can_transition(current, target) is True


@pytest.mark.parametrize(
    ('current', 'target'),
    [
        ('scheduled', 'in-progress'),
        ('scheduled', 'completed'),
        ('confirmed', 'scheduled'),
        ('in-progress', 'confirmed'),
        ('completed', 'cancelled'),
        ('cancelled', 'scheduled'),
        ('no-show', 'confirmed'),
    ],
)
def test_disallowed_transitions(current: str, target: str) -> None:
    assert can_transition(current, target) is False

    with pytest.raises(ValidationError):
        apply_transition(_appointment(current), target, 'provider', AT, reason='x')


def test_terminal_statuses() -> None:
    assert {status for status in ('scheduled', 'confirmed', 'in-progress', 'completed', 'cancelled', 'no-show')
            if is_terminal(status)} == {'completed', 'cancelled', 'no-show'}


@pytest.mark.parametrize(('raw', 'expected'), [('in_progress', 'in-progress'), (' No_Show ', 'no-show')])
def test_normalize_status_accepts_underscored_names(raw: str, expected: str) -> None:
    assert normalize_status(raw) == expected


def test_normalize_status_rejects_unknown() -> None:
    with pytest.raises(ValidationError):
        normalize_status('archived')


def test_check_in_stamps_time() -> None:
    appointment = apply_transition(_appointment('confirmed'), 'in-progress', 'provider', AT)

    assert appointment.status == 'in-progress'
    assert appointment.check_in_at == AT
    assert appointment.updated_at == AT


def test_completion_stamps_check_out_and_keeps_notes() -> None:
    appointment = apply_transition(_appointment('in-progress'), 'completed', 'provider', AT, notes='  Stable  ')

    assert appointment.check_out_at == AT
    assert appointment.provider_notes == 'Stable'


def test_cancellation_records_reason_actor_and_time() -> None:
    appointment = apply_transition(_appointment('scheduled'), 'cancelled', 'requester', AT, reason=' Conflict ')

    assert appointment.cancellation_reason == 'Conflict'
    assert appointment.cancelled_by == 'requester'
    assert appointment.cancelled_at == AT


def test_cancellation_requires_reason() -> None:
    appointment = _appointment('scheduled')

    with pytest.raises(ValidationError):
        apply_transition(appointment, 'cancelled', 'requester', AT, reason='  ')

    assert appointment.status == 'scheduled'


def test_cancellation_requires_known_actor() -> None:
    with pytest.raises(ValidationError):
        apply_transition(_appointment('scheduled'), 'cancelled', 'stranger', AT, reason='Busy')
