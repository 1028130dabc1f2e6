import enum
from typing import Any, Mapping

EVENT_TYPE_HEADER = "eventType"
KEY_HEADER        = "key"

HOLD_CREATED = "hold.created"
HOLD_EXPIRED = "hold.expired"
HOLD_VOIDED  = "hold.voided"

TRANSACTION_INITIATED  = "transaction.initiated"
TRANSACTION_AUTHORIZED = "transaction.authorized"
TRANSACTION_POSTED     = "transaction.posted"
TRANSACTION_FAILED     = "transaction.failed"


class TransactionEventKind(str, enum.Enum):
    AUTHORIZED = TRANSACTION_AUTHORIZED
    POSTED     = TRANSACTION_POSTED
    FAILED     = TRANSACTION_FAILED


def get_event_type(headers: Mapping[str, Any] | None) -> str | None:
    """Read the event type header, coercing non-string values to str."""
    if not headers:
        return None
    value = headers.get(EVENT_TYPE_HEADER)
    if value is None:
        return None
    if isinstance(value, bytes):
        return value.decode()
    return str(value)


def validate_event_type(headers: Mapping[str, Any] | None, expected: str | None) -> bool:
    if not expected or not expected.strip():
        return False
    return get_event_type(headers) == expected
