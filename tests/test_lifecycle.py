"""Tests for the hold lifecycle state machine."""

from datetime import datetime, timedelta, timezone

import pytest

from hold_service.lifecycle import HoldSignal, is_expiry_due, transition
from hold_service.models import HoldStatus

A, C, V, E = HoldStatus.AUTHORIZED, HoldStatus.CAPTURED, HoldStatus.VOIDED, HoldStatus.EXPIRED

EXPECTED = [
    (A, HoldSignal.TRANSACTION_AUTHORIZED, C, True),
    (A, HoldSignal.TRANSACTION_POSTED, C, True),
    (A, HoldSignal.TRANSACTION_FAILED, V, True),
    (A, HoldSignal.EXPIRY_SWEEP, E, True),
    (C, HoldSignal.TRANSACTION_AUTHORIZED, C, False),
    (C, HoldSignal.TRANSACTION_POSTED, C, False),
    (C, HoldSignal.TRANSACTION_FAILED, C, False),
    (C, HoldSignal.EXPIRY_SWEEP, C, False),
    (V, HoldSignal.TRANSACTION_AUTHORIZED, C, True),
    (V, HoldSignal.TRANSACTION_POSTED, V, False),
    (V, HoldSignal.TRANSACTION_FAILED, V, False),
    (V, HoldSignal.EXPIRY_SWEEP, V, False),
    (E, HoldSignal.TRANSACTION_AUTHORIZED, E, False),
    (E, HoldSignal.TRANSACTION_POSTED, E, False),
    (E, HoldSignal.TRANSACTION_FAILED, E, False),
    (E, HoldSignal.EXPIRY_SWEEP, E, False),
]


@pytest.mark.parametrize("status,signal,expected,changed", EXPECTED)
def test_transition_table(status, signal, expected, changed):
    result = transition(status, signal)
    assert result.status == expected
    assert result.changed is changed


def test_table_covers_every_pair():
    assert len(EXPECTED) == len(HoldStatus) * len(HoldSignal)


def test_late_authorization_resurrects_voided_hold():
    voided = transition(A, HoldSignal.TRANSACTION_FAILED).status
    assert transition(voided, HoldSignal.TRANSACTION_AUTHORIZED) == (C, True)


def test_transition_accepts_raw_values():
    assert transition("AUTHORIZED", "TRANSACTION_POSTED") == (C, True)


def test_unknown_status_is_rejected():
    with pytest.raises(ValueError):
        transition("PENDING", HoldSignal.TRANSACTION_AUTHORIZED)


def test_unknown_signal_is_rejected():
    with pytest.raises(ValueError):
        transition(A, "TRANSACTION_REVERSED")


def test_expiry_due_is_strict():
    now = datetime(2026, 1, 1, tzinfo=timezone.utc)
    assert is_expiry_due(now - timedelta(seconds=1), now)
    assert not is_expiry_due(now, now)
    assert not is_expiry_due(now + timedelta(days=1), now)


def test_expiry_due_treats_naive_values_as_utc():
    now = datetime(2026, 1, 1, 12, tzinfo=timezone.utc)
    assert is_expiry_due(datetime(2026, 1, 1, 11, 59), now)
