"""Hold lifecycle state machine.

Pure transition logic shared by the inbound event processor and the expiry
sweep. Nothing here touches storage.

    AUTHORIZED --authorized/posted--> CAPTURED
    VOIDED     --authorized-------->  CAPTURED
    AUTHORIZED --failed------------>  VOIDED
    AUTHORIZED --expiry sweep------>  EXPIRED

Every other (status, signal) pair leaves the hold unchanged. The
VOIDED -> CAPTURED edge lets a late authorization revive a voided hold.
"""

import enum
import itertools
from datetime import datetime, timezone
from typing import NamedTuple

from hold_service.events import TransactionEventKind
from hold_service.models import HoldStatus


class HoldSignal(str, enum.Enum):
    TRANSACTION_AUTHORIZED = "TRANSACTION_AUTHORIZED"
    TRANSACTION_POSTED     = "TRANSACTION_POSTED"
    TRANSACTION_FAILED     = "TRANSACTION_FAILED"
    EXPIRY_SWEEP           = "EXPIRY_SWEEP"


class Transition(NamedTuple):
    status: HoldStatus
    changed: bool


# None marks a no-op. Every pair is listed so a new status or signal
# fails at import instead of silently falling through.
_TABLE: dict[tuple[HoldStatus, HoldSignal], HoldStatus | None] = {
    (HoldStatus.AUTHORIZED, HoldSignal.TRANSACTION_AUTHORIZED): HoldStatus.CAPTURED,
    (HoldStatus.AUTHORIZED, HoldSignal.TRANSACTION_POSTED):     HoldStatus.CAPTURED,
    (HoldStatus.AUTHORIZED, HoldSignal.TRANSACTION_FAILED):     HoldStatus.VOIDED,
    (HoldStatus.AUTHORIZED, HoldSignal.EXPIRY_SWEEP):           HoldStatus.EXPIRED,

    (HoldStatus.CAPTURED, HoldSignal.TRANSACTION_AUTHORIZED):   None,
    (HoldStatus.CAPTURED, HoldSignal.TRANSACTION_POSTED):       None,
    (HoldStatus.CAPTURED, HoldSignal.TRANSACTION_FAILED):       None,
    (HoldStatus.CAPTURED, HoldSignal.EXPIRY_SWEEP):             None,

    (HoldStatus.VOIDED, HoldSignal.TRANSACTION_AUTHORIZED):     HoldStatus.CAPTURED,
    (HoldStatus.VOIDED, HoldSignal.TRANSACTION_POSTED):         None,
    (HoldStatus.VOIDED, HoldSignal.TRANSACTION_FAILED):         None,
    (HoldStatus.VOIDED, HoldSignal.EXPIRY_SWEEP):               None,

    (HoldStatus.EXPIRED, HoldSignal.TRANSACTION_AUTHORIZED):    None,
    (HoldStatus.EXPIRED, HoldSignal.TRANSACTION_POSTED):        None,
    (HoldStatus.EXPIRED, HoldSignal.TRANSACTION_FAILED):        None,
    (HoldStatus.EXPIRED, HoldSignal.EXPIRY_SWEEP):              None,
}

_missing = set(itertools.product(HoldStatus, HoldSignal)) - set(_TABLE)
if _missing:
    raise RuntimeError(f"Hold lifecycle table is missing transitions: {sorted(_missing)}")

SIGNAL_BY_KIND = {
    TransactionEventKind.AUTHORIZED: HoldSignal.TRANSACTION_AUTHORIZED,
    TransactionEventKind.POSTED:     HoldSignal.TRANSACTION_POSTED,
    TransactionEventKind.FAILED:     HoldSignal.TRANSACTION_FAILED,
}


def transition(status: HoldStatus, signal: HoldSignal) -> Transition:
    """Return the status a hold moves to on ``signal`` and whether it changed.

    Raises ValueError for values outside HoldStatus / HoldSignal.
    """
    key = (HoldStatus(status), HoldSignal(signal))
    next_status = _TABLE[key]
    if next_status is None:
        return Transition(key[0], False)
    return Transition(next_status, True)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_expiry_due(expires_at: datetime, now: datetime) -> bool:
    return as_utc(expires_at) < as_utc(now)
