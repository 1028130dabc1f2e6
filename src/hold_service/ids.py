"""Identifiers and content digests used by the dedup ledger."""

import hashlib
import json
import uuid
from typing import Any

SUFFIX_LENGTH = 8


def generate_event_id(event_type: str, transaction_id: int, delivery_id: str | None = None) -> str:
    """Build ``<event_type>-<transaction_id>-<suffix>``.

    With a ``delivery_id`` from the transport the suffix is derived from it,
    so every redelivery of the same message maps to the same id. Without one
    the suffix is random and the id only dedups within a single delivery.
    """
    if delivery_id:
        suffix = hashlib.sha256(delivery_id.encode("utf-8")).hexdigest()[:SUFFIX_LENGTH]
    else:
        suffix = uuid.uuid4().hex[:SUFFIX_LENGTH]
    return f"{event_type}-{transaction_id}-{suffix}"


def canonical_json(data: Any) -> str:
    return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False, allow_nan=False)


def generate_payload_hash(payload: str) -> str:
    if payload is None:
        raise TypeError("payload must not be None")
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()
