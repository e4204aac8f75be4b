from decimal import Decimal

import pytest

from postbacks.core.errors import MalformedEvent
from postbacks.core.events import (
    ClickEvent,
    DepositEvent,
    ProfitEvent,
    RegistrationEvent,
    normalize_event_label,
    parse_amount,
    parse_event,
)
from postbacks.models.enums import EventTypeEnum


@pytest.mark.parametrize(
    "label, expected",
    [
        ("click", EventTypeEnum.CLICK),
        ("signup", EventTypeEnum.REGISTRATION),
        ("Register", EventTypeEnum.REGISTRATION),
        ("ftd", EventTypeEnum.DEPOSIT),
        ("first_deposit", EventTypeEnum.DEPOSIT),
        ("revenue", EventTypeEnum.PROFIT),
    ],
)
def test_label_aliases(label, expected):
    assert normalize_event_label(label) is expected


def test_unknown_label_is_malformed():
    with pytest.raises(MalformedEvent):
        normalize_event_label("withdrawal")


def test_click_needs_only_subid():
    event = parse_event("click", {"subid": "eadavid"})
    assert isinstance(event, ClickEvent)
    assert event.customer_id is None


def test_registration_requires_customer_id():
    with pytest.raises(MalformedEvent):
        parse_event("registration", {"subid": "eadavid"})
    event = parse_event("registration", {"subid": "eadavid", "customerId": "c1"})
    assert isinstance(event, RegistrationEvent)
    assert event.customer_id == "c1"


def test_deposit_requires_amount():
    with pytest.raises(MalformedEvent):
        parse_event("deposit", {"subid": "eadavid", "customer_id": "c1"})


def test_deposit_reads_amount_aliases_and_transaction_ref():
    event = parse_event(
        "deposit",
        {"subid": "eadavid", "customer_id": "c1", "amount": "150,50", "txid": "tx-9"},
    )
    assert isinstance(event, DepositEvent)
    assert event.amount == Decimal("150.50")
    assert event.transaction_ref == "tx-9"


def test_profit_event():
    event = parse_event("profit", {"subid": "eadavid", "customer_id": "c1", "value": "80"})
    assert isinstance(event, ProfitEvent)
    assert event.event_type is EventTypeEnum.PROFIT


def test_missing_subid_is_malformed():
    with pytest.raises(MalformedEvent):
        parse_event("click", {"subid": "  "})


@pytest.mark.parametrize("raw", ["abc", "-5", "NaN", "Infinity"])
def test_invalid_amounts(raw):
    with pytest.raises(MalformedEvent):
        parse_amount(raw)


def test_amount_beyond_storage_range_is_malformed():
    with pytest.raises(MalformedEvent):
        parse_amount("1e30")
    with pytest.raises(MalformedEvent):
        parse_amount("1000000000000")
    assert parse_amount("999999999999.99") == Decimal("999999999999.99")


def test_amount_is_rounded_half_even_to_cents():
    assert str(parse_amount("10.005")) == "10.00"
    assert str(parse_amount("10.015")) == "10.02"
    assert str(parse_amount("7")) == "7.00"
