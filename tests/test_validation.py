"""Field validators and ProposedBrandedToken parsing."""

from __future__ import annotations

import pytest

from bt_intercomm.chain.source import parse_log
from bt_intercomm.errors import EventValidationError, SubscriptionError
from bt_intercomm.models.events import ProposedBrandedToken
from bt_intercomm.validation import (
    is_address_valid,
    is_conversion_rate_valid,
    is_name_valid,
    is_symbol_valid,
    is_tx_hash_valid,
    is_uuid_valid,
)

from tests.factories import REQUESTER, TOKEN, make_event_args, make_log, make_uuid


@pytest.mark.parametrize(
    "value, expected",
    [
        (REQUESTER, True),
        ("0x" + "a" * 40, True),
        ("0x" + "a" * 39, False),
        ("a" * 42, False),
        ("0x" + "g" * 40, False),
        (None, False),
        (1234, False),
    ],
)
def test_is_address_valid(value, expected):
    assert is_address_valid(value) is expected


def test_uuid_and_tx_hash_are_bytes32():
    assert is_uuid_valid(make_uuid(1))
    assert is_tx_hash_valid("0x" + "F" * 64)
    assert not is_uuid_valid("0x" + "0" * 63)
    assert not is_uuid_valid(b"\x00" * 32)


@pytest.mark.parametrize(
    "value, expected",
    [(1, True), (10, True), ("42", True), (3.0, True), (0, False), (-1, False),
     (1.5, False), ("abc", False), (True, False), (None, False)],
)
def test_is_conversion_rate_valid(value, expected):
    assert is_conversion_rate_valid(value) is expected


def test_name_and_symbol():
    assert is_name_valid("Acme Coin")
    assert is_symbol_valid("ACM")
    assert not is_name_valid("!!!")
    assert not is_symbol_valid("  ")
    assert not is_symbol_valid(None)


# ── Payload parsing ──────────────────────────────────────────────


def test_from_event_args_normalises_uuid_bytes():
    payload = ProposedBrandedToken.from_event_args(make_event_args())
    assert payload.uuid == make_uuid(1)
    assert payload.conversion_rate == 10
    assert payload.requester == REQUESTER
    assert payload.token == TOKEN


def test_from_event_args_accepts_hex_uuid_and_string_rate():
    payload = ProposedBrandedToken.from_event_args(
        make_event_args(_uuid="0x" + make_uuid(0xAB)[2:].upper(), _conversionRate="7")
    )
    assert payload.uuid == make_uuid(0xAB)
    assert payload.conversion_rate == 7


@pytest.mark.parametrize(
    "override",
    [
        {"_conversionRate": 0},
        {"_requester": "0x1234"},
        {"_token": "not-an-address"},
        {"_uuid": "0x1234"},
        {"_symbol": ""},
    ],
)
def test_from_event_args_rejects_bad_fields(override):
    with pytest.raises(EventValidationError):
        ProposedBrandedToken.from_event_args(make_event_args(**override))


def test_from_event_args_missing_field():
    args = make_event_args()
    del args["_token"]
    with pytest.raises(EventValidationError, match="_token"):
        ProposedBrandedToken.from_event_args(args)


def test_validation_error_is_subscription_error():
    assert issubclass(EventValidationError, SubscriptionError)


# ── Log parsing ──────────────────────────────────────────────────


def test_parse_log_builds_chain_event():
    event = parse_log(make_log(block_number=321, log_index=3))
    assert event is not None
    assert event.block_number == 321
    assert event.log_index == 3
    assert event.identity == (321, 3, make_uuid(1))
    assert event.transaction_hash == "0x" + "cd" * 32


def test_parse_log_skips_malformed():
    assert parse_log(make_log(_requester="0xnope")) is None
    assert parse_log({"blockNumber": 5}) is None


def test_parse_log_skips_removed():
    entry = make_log()
    entry["removed"] = True
    assert parse_log(entry) is None
