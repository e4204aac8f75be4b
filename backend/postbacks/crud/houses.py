from __future__ import annotations

from decimal import Decimal

from sqlalchemy.orm import Session

from postbacks.models.enums import CommissionModelEnum, CpaTriggerEnum
from postbacks.models.houses import BettingHouse


def create_house(
    db: Session,
    *,
    name: str,
    identifier: str,
    security_token: str,
    commission_model: CommissionModelEnum,
    commission_value: Decimal | float | str = 0,
    cpa_value: Decimal | float | str | None = None,
    revshare_percent: Decimal | float | str | None = None,
    cpa_trigger: CpaTriggerEnum = CpaTriggerEnum.REGISTRATION,
    min_deposit: Decimal | float | str | None = None,
    base_url: str | None = None,
    is_active: bool = True,
) -> BettingHouse:
    house = BettingHouse(
        name=name,
        identifier=identifier.strip().lower(),
        security_token=security_token,
        commission_model=commission_model,
        commission_value=Decimal(str(commission_value)),
        cpa_value=Decimal(str(cpa_value)) if cpa_value is not None else None,
        revshare_percent=Decimal(str(revshare_percent)) if revshare_percent is not None else None,
        cpa_trigger=cpa_trigger,
        min_deposit=Decimal(str(min_deposit)) if min_deposit is not None else None,
        base_url=base_url,
        is_active=is_active,
    )
    db.add(house)
    db.commit()
    db.refresh(house)
    return house


def get_house(db: Session, *, house_id: int) -> BettingHouse | None:
    return db.query(BettingHouse).filter(BettingHouse.id == house_id).first()


def get_house_by_identifier(db: Session, *, identifier: str) -> BettingHouse | None:
    return db.query(BettingHouse).filter(BettingHouse.identifier == identifier).first()

