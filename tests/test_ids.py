"""Tests for event id and payload hash helpers."""

import re

import pytest

from hold_service.ids import canonical_json, generate_event_id, generate_payload_hash


def test_event_id_has_type_transaction_and_random_suffix():
    first = generate_event_id("hold.created", 123)
    second = generate_event_id("hold.created", 123)

    assert first != second
    assert first.startswith("hold.created-123-")
    assert len(first) == len("hold.created-123-") + 8


def test_event_id_differs_by_type_and_transaction():
    assert generate_event_id("hold.created", 456).startswith("hold.created-456-")
    assert generate_event_id("hold.expired", 456).startswith("hold.expired-456-")
    assert generate_event_id("hold.voided", 111).startswith("hold.voided-111-")


def test_event_id_is_stable_for_a_delivery_id():
    first = generate_event_id("transaction.authorized", 7, delivery_id="msg-1")
    again = generate_event_id("transaction.authorized", 7, delivery_id="msg-1")
    other = generate_event_id("transaction.authorized", 7, delivery_id="msg-2")

    assert first == again
    assert first != other
    assert re.fullmatch(r"transaction\.authorized-7-[0-9a-f]{8}", first)


def test_payload_hash_is_consistent_sha256_hex():
    payload = '{"holdId":123,"transactionId":456}'
    assert generate_payload_hash(payload) == generate_payload_hash(payload)
    assert re.fullmatch(r"[a-f0-9]{64}", generate_payload_hash(payload))


def test_payload_hash_differs_for_different_payloads():
    assert generate_payload_hash('{"holdId":123}') != generate_payload_hash('{"holdId":789}')


def test_payload_hash_of_empty_payload():
    assert len(generate_payload_hash("")) == 64


def test_payload_hash_rejects_none():
    with pytest.raises(TypeError):
        generate_payload_hash(None)


def test_canonical_json_ignores_key_order():
    assert canonical_json({"b": 1, "a": 2}) == canonical_json({"a": 2, "b": 1}) == '{"a":2,"b":1}'


def test_canonical_json_rejects_nan():
    with pytest.raises(ValueError):
        canonical_json({"amount": float("nan")})
