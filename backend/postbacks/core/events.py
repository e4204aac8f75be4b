"""
Inbound postback events.

Houses report events with loosely named query parameters. ``parse_event``
turns them into one of four closed event variants, each carrying exactly
the fields its type requires, or raises ``MalformedEvent``.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation
from typing import Mapping, Union

from postbacks.core.errors import MalformedEvent
from postbacks.models.enums import EventTypeEnum


EVENT_LABEL_ALIASES: dict[str, EventTypeEnum] = {
    "click": EventTypeEnum.CLICK,
    "registration": EventTypeEnum.REGISTRATION,
    "register": EventTypeEnum.REGISTRATION,
    "signup": EventTypeEnum.REGISTRATION,
    "deposit": EventTypeEnum.DEPOSIT,
    "first_deposit": EventTypeEnum.DEPOSIT,
    "ftd": EventTypeEnum.DEPOSIT,
    "profit": EventTypeEnum.PROFIT,
    "revenue": EventTypeEnum.PROFIT,
}

_CUSTOMER_KEYS = ("customer_id", "customerId", "customerid")
_AMOUNT_KEYS = ("value", "amount")
_TRANSACTION_KEYS = ("transaction_id", "txid", "event_id")

CENT = Decimal("0.01")
MAX_AMOUNT = Decimal("999999999999.99")


@dataclass(frozen=True)
class ClickEvent:
    subid: str
    customer_id: str | None = None
    transaction_ref: str | None = None
    event_type: EventTypeEnum = EventTypeEnum.CLICK
    amount: Decimal | None = None


@dataclass(frozen=True)
class RegistrationEvent:
    subid: str
    customer_id: str
    transaction_ref: str | None = None
    event_type: EventTypeEnum = EventTypeEnum.REGISTRATION
    amount: Decimal | None = None


@dataclass(frozen=True)
class DepositEvent:
    subid: str
    customer_id: str
    amount: Decimal
    transaction_ref: str | None = None
    event_type: EventTypeEnum = EventTypeEnum.DEPOSIT


@dataclass(frozen=True)
class ProfitEvent:
    subid: str
    customer_id: str
    amount: Decimal
    transaction_ref: str | None = None
    event_type: EventTypeEnum = EventTypeEnum.PROFIT


PostbackEvent = Union[ClickEvent, RegistrationEvent, DepositEvent, ProfitEvent]


def normalize_event_label(label: str | None) -> EventTypeEnum:
    key = (label or "").strip().lower()
    try:
        return EVENT_LABEL_ALIASES[key]
    except KeyError:
        raise MalformedEvent(f"Unsupported event type '{label}'") from None


def _first(params: Mapping[str, str], keys: tuple[str, ...]) -> str | None:
    for key in keys:
        value = params.get(key)
        if value is None:
            continue
        value = str(value).strip()
        if value:
            return value
    return None


def parse_amount(raw: str | None) -> Decimal:
    if raw is None:
        raise MalformedEvent("amount is required for this event type")
    try:
        amount = Decimal(raw.replace(",", "."))
    except InvalidOperation:
        raise MalformedEvent(f"amount '{raw}' is not a decimal number") from None
    if not amount.is_finite():
        raise MalformedEvent(f"amount '{raw}' is not a decimal number")
    if amount < 0:
        raise MalformedEvent("amount must not be negative")
    # Stored as NUMERIC(14, 2).
    if amount > MAX_AMOUNT:
        raise MalformedEvent(f"amount '{raw}' exceeds {MAX_AMOUNT}")
    return amount.quantize(CENT, rounding=ROUND_HALF_EVEN)


def parse_event(event_label: str | None, params: Mapping[str, str]) -> PostbackEvent:
    event_type = normalize_event_label(event_label)
    subid = _first(params, ("subid",))
    customer_id = _first(params, _CUSTOMER_KEYS)
    transaction_ref = _first(params, _TRANSACTION_KEYS)

    if not subid:
        raise MalformedEvent("subid is required")

    if event_type is EventTypeEnum.CLICK:
        return ClickEvent(subid=subid, customer_id=customer_id, transaction_ref=transaction_ref)

    if not customer_id:
        raise MalformedEvent("customer_id is required for this event type")

    if event_type is EventTypeEnum.REGISTRATION:
        return RegistrationEvent(subid=subid, customer_id=customer_id, transaction_ref=transaction_ref)

    amount = parse_amount(_first(params, _AMOUNT_KEYS))
    if event_type is EventTypeEnum.DEPOSIT:
        return DepositEvent(
            subid=subid,
            customer_id=customer_id,
            amount=amount,
            transaction_ref=transaction_ref,
        )
    return ProfitEvent(
        subid=subid,
        customer_id=customer_id,
        amount=amount,
        transaction_ref=transaction_ref,
    )
