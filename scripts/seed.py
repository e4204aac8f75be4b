"""
Deterministic seed script for dev/demo environments.
"""

from __future__ import annotations

import os
import sys

from postbacks.core.db import SessionLocal, Base, engine
from postbacks.core.partners import build_postback_urls
from postbacks.crud.affiliates import create_affiliate, create_link, get_active_link, get_affiliate_by_username
from postbacks.crud.houses import create_house, get_house_by_identifier
from postbacks.models.enums import CommissionModelEnum, CpaTriggerEnum
import postbacks.models  # noqa: F401


def ensure_not_production():
    env = os.getenv("ENV", "").lower()
    allow_prod = os.getenv("ALLOW_SEED_PROD", "0").lower() in {"1", "true", "yes"}
    if env == "production" and not allow_prod:
        print("Refusing to seed in production. Set ALLOW_SEED_PROD=1 to override.", file=sys.stderr)
        sys.exit(1)


def get_or_create_house(db, identifier: str, **fields):
    house = get_house_by_identifier(db, identifier=identifier)
    if house:
        return house
    return create_house(db, identifier=identifier, **fields)


def get_or_create_affiliate(db, username: str, name: str):
    affiliate = get_affiliate_by_username(db, username=username)
    if affiliate:
        return affiliate
    return create_affiliate(db, username=username, name=name)


def get_or_create_link(db, affiliate, house, identifier: str):
    link = get_active_link(db, affiliate_id=affiliate.id, house_id=house.id)
    if link:
        return link
    return create_link(
        db,
        affiliate_id=affiliate.id,
        house_id=house.id,
        generated_identifier=identifier,
        generated_url=f"{house.base_url}?subid={identifier}" if house.base_url else None,
    )


def seed():
    ensure_not_production()
    Base.metadata.create_all(bind=engine)

    with SessionLocal() as db:
        # Houses, one per commission model
        bet_alpha = get_or_create_house(
            db,
            "betalpha",
            name="Bet Alpha",
            security_token="demo_token_betalpha",
            commission_model=CommissionModelEnum.REVSHARE,
            commission_value="25",
            base_url="https://betalpha.example/register",
        )
        lucky = get_or_create_house(
            db,
            "luckycasino",
            name="Lucky Casino",
            security_token="demo_token_luckycasino",
            commission_model=CommissionModelEnum.CPA,
            commission_value="50",
            cpa_trigger=CpaTriggerEnum.DEPOSIT,
            min_deposit="20",
            base_url="https://luckycasino.example/join",
        )
        mixed = get_or_create_house(
            db,
            "mixedbet",
            name="Mixed Bet",
            security_token="demo_token_mixedbet",
            commission_model=CommissionModelEnum.HYBRID,
            cpa_value="50",
            revshare_percent="20",
            base_url="https://mixedbet.example/signup",
        )

        # Affiliates and their tracking links
        eadavid = get_or_create_affiliate(db, "eadavid", "E. A. David")
        marta = get_or_create_affiliate(db, "marta", "Marta Silva")
        get_or_create_link(db, eadavid, bet_alpha, "eadavid_betalpha")
        get_or_create_link(db, eadavid, lucky, "eadavid_lucky")
        get_or_create_link(db, marta, mixed, "marta_mixed")

        for house in (bet_alpha, lucky, mixed):
            print(f"{house.name}:")
            for event_type, url in build_postback_urls(house).items():
                print(f"  {event_type}: {url}")
    print("Seed complete.")


if __name__ == "__main__":
    seed()
