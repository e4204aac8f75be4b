from __future__ import annotations

import hmac
import secrets
from decimal import Decimal

from sqlalchemy.orm import Session

from postbacks.core.commission import ZERO, CommissionTerms
from postbacks.core.config import settings
from postbacks.core.errors import InvalidToken, UnknownHouse
from postbacks.crud.houses import get_house_by_identifier
from postbacks.models.enums import CommissionModelEnum, CpaTriggerEnum, EventTypeEnum
from postbacks.models.houses import BettingHouse


# Compared against when the house is unknown so both paths do the same work.
_DUMMY_TOKEN = secrets.token_urlsafe(32)


def generate_security_token() -> str:
    return f"hpb_{secrets.token_urlsafe(24)}"


def find_active_house(db: Session, identifier: str | None) -> BettingHouse | None:
    if not identifier:
        return None
    house = get_house_by_identifier(db, identifier=identifier.strip().lower())
    if not house or not house.is_active:
        return None
    return house


def verify_house_token(house: BettingHouse | None, provided: str | None) -> bool:
    expected = house.security_token if house is not None else _DUMMY_TOKEN
    matches = hmac.compare_digest(
        (provided or "").encode("utf-8"),
        (expected or "").encode("utf-8"),
    )
    return matches and house is not None and bool(provided)


def authenticate_house(db: Session, identifier: str | None, provided_token: str | None) -> BettingHouse:
    house = find_active_house(db, identifier)
    token_ok = verify_house_token(house, provided_token)
    if house is None:
        raise UnknownHouse()
    if not token_ok:
        raise InvalidToken()
    return house


def authenticate_by_token(db: Session, provided_token: str | None) -> BettingHouse:
    """Resolve the house from its token alone, for URLs that carry no house identifier."""
    token = (provided_token or "").strip()
    house = None
    if token:
        house = (
            db.query(BettingHouse)
            .filter(BettingHouse.security_token == token, BettingHouse.is_active.is_(True))
            .first()
        )
    if not verify_house_token(house, token):
        raise InvalidToken()
    return house


def _decimal(value) -> Decimal:
    if value is None:
        return ZERO
    return Decimal(str(value))


def commission_terms(house: BettingHouse) -> CommissionTerms:
    model = CommissionModelEnum(house.commission_model)
    trigger = CpaTriggerEnum(house.cpa_trigger or CpaTriggerEnum.REGISTRATION)
    min_deposit = _decimal(house.min_deposit) if house.min_deposit is not None else None
    if model is CommissionModelEnum.REVSHARE:
        return CommissionTerms(model=model, revshare_percent=_decimal(house.commission_value))
    if model is CommissionModelEnum.CPA:
        return CommissionTerms(
            model=model,
            cpa_amount=_decimal(house.commission_value),
            cpa_trigger=trigger,
            min_deposit=min_deposit,
        )
    return CommissionTerms(
        model=model,
        cpa_amount=_decimal(house.cpa_value),
        revshare_percent=_decimal(house.revshare_percent),
        cpa_trigger=trigger,
        min_deposit=min_deposit,
    )


def build_postback_urls(house: BettingHouse, base_url: str | None = None) -> dict[str, str]:
    base = (base_url or settings.POSTBACK_BASE_URL).rstrip("/")
    prefix = f"{base}/postback/{house.identifier}"
    token = house.security_token
    urls = {}
    for event_type in EventTypeEnum:
        url = f"{prefix}/{event_type.value}?token={token}&subid={{subid}}"
        if event_type is not EventTypeEnum.CLICK:
            url += "&customer_id={customer_id}"
        if event_type in (EventTypeEnum.DEPOSIT, EventTypeEnum.PROFIT):
            url += "&value={amount}&transaction_id={transaction_id}"
        urls[event_type.value] = url
    return urls
