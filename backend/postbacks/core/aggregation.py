"""
Running totals per affiliate and per house, plus the per-customer lead rollup.

Counters are only mutated by ``apply_conversion``, inside the same transaction
that creates the conversion. Applying a conversion twice is a no-op: the
``aggregate_applications`` row for a conversion id is inserted first and its
unique constraint rejects a second fold.

Windowed reads ("last 30 days") and lead rollups are live sums over the
conversion rows instead of counters.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from postbacks.core.commission import ZERO, quantize_money
from postbacks.core.time import utcnow
from postbacks.crud.conversions import list_conversions_for_customer
from postbacks.models.aggregates import AggregateApplication, AggregateCounter, LeadCpaAward
from postbacks.models.conversions import Conversion
from postbacks.models.enums import AggregateScopeEnum, EventTypeEnum


_COUNT_COLUMNS = {
    EventTypeEnum.CLICK: "clicks",
    EventTypeEnum.REGISTRATION: "registrations",
    EventTypeEnum.DEPOSIT: "deposits",
    EventTypeEnum.PROFIT: "profits",
}


@dataclass
class AggregateTotals:
    clicks: int = 0
    registrations: int = 0
    deposits: int = 0
    profits: int = 0
    commission_total: Decimal = ZERO
    amount_total: Decimal = ZERO

    @property
    def conversions(self) -> int:
        return self.clicks + self.registrations + self.deposits + self.profits

    def as_dict(self) -> dict:
        return {
            "clicks": self.clicks,
            "registrations": self.registrations,
            "deposits": self.deposits,
            "profits": self.profits,
            "conversions": self.conversions,
            "commission_total": self.commission_total,
            "amount_total": self.amount_total,
        }


@dataclass
class LeadRollup:
    customer_id: str
    totals: AggregateTotals
    affiliate_ids: list[int] = field(default_factory=list)
    house_ids: list[int] = field(default_factory=list)
    cpa_awarded_house_ids: list[int] = field(default_factory=list)
    first_seen_at: datetime | None = None
    last_seen_at: datetime | None = None
    timeline: list[Conversion] = field(default_factory=list)


def _money(value) -> Decimal:
    if value is None:
        return ZERO
    return quantize_money(Decimal(str(value)))


def _ensure_counter(db: Session, scope: AggregateScopeEnum, scope_id: int) -> None:
    exists = (
        db.query(AggregateCounter.id)
        .filter(AggregateCounter.scope == scope, AggregateCounter.scope_id == scope_id)
        .first()
    )
    if exists:
        return
    savepoint = db.begin_nested()
    try:
        db.add(AggregateCounter(scope=scope, scope_id=scope_id))
        db.flush()
    except IntegrityError:
        # A concurrent writer created it first.
        savepoint.rollback()
        return
    savepoint.commit()


def _increment(db: Session, scope: AggregateScopeEnum, scope_id: int, conversion: Conversion) -> None:
    _ensure_counter(db, scope, scope_id)
    count_column = getattr(AggregateCounter, _COUNT_COLUMNS[EventTypeEnum(conversion.event_type)])
    (
        db.query(AggregateCounter)
        .filter(AggregateCounter.scope == scope, AggregateCounter.scope_id == scope_id)
        .update(
            {
                count_column: count_column + 1,
                AggregateCounter.commission_total: AggregateCounter.commission_total
                + _money(conversion.commission),
                AggregateCounter.amount_total: AggregateCounter.amount_total + _money(conversion.amount),
                AggregateCounter.updated_at: utcnow(),
            },
            synchronize_session=False,
        )
    )


def apply_conversion(db: Session, conversion: Conversion) -> bool:
    """Fold a conversion into the counters. Returns False if already folded."""
    if conversion.id is None:
        raise ValueError("Conversion must be flushed before it is aggregated")
    savepoint = db.begin_nested()
    try:
        db.add(AggregateApplication(conversion_id=conversion.id))
        db.flush()
    except IntegrityError:
        savepoint.rollback()
        return False
    savepoint.commit()

    _increment(db, AggregateScopeEnum.AFFILIATE, conversion.affiliate_id, conversion)
    _increment(db, AggregateScopeEnum.HOUSE, conversion.house_id, conversion)
    return True


def _counter_totals(db: Session, scope: AggregateScopeEnum, scope_id: int) -> AggregateTotals:
    row = (
        db.query(AggregateCounter)
        .filter(AggregateCounter.scope == scope, AggregateCounter.scope_id == scope_id)
        .first()
    )
    if not row:
        return AggregateTotals()
    return AggregateTotals(
        clicks=int(row.clicks or 0),
        registrations=int(row.registrations or 0),
        deposits=int(row.deposits or 0),
        profits=int(row.profits or 0),
        commission_total=_money(row.commission_total),
        amount_total=_money(row.amount_total),
    )


def _live_totals(db: Session, *filters) -> AggregateTotals:
    rows = (
        db.query(
            Conversion.event_type,
            func.count(Conversion.id),
            func.coalesce(func.sum(Conversion.commission), 0),
            func.coalesce(func.sum(Conversion.amount), 0),
        )
        .filter(*filters)
        .group_by(Conversion.event_type)
        .all()
    )
    totals = AggregateTotals()
    commission = ZERO
    amount = ZERO
    for event_type, count, commission_sum, amount_sum in rows:
        setattr(totals, _COUNT_COLUMNS[EventTypeEnum(event_type)], int(count or 0))
        commission += _money(commission_sum)
        amount += _money(amount_sum)
    totals.commission_total = quantize_money(commission)
    totals.amount_total = quantize_money(amount)
    return totals


def window_start(days: int, *, now: datetime | None = None) -> datetime:
    return (now or utcnow()) - timedelta(days=days)


def totals_for_affiliate(db: Session, affiliate_id: int, *, since: datetime | None = None) -> AggregateTotals:
    if since is None:
        return _counter_totals(db, AggregateScopeEnum.AFFILIATE, affiliate_id)
    return _live_totals(db, Conversion.affiliate_id == affiliate_id, Conversion.converted_at >= since)


def totals_for_house(db: Session, house_id: int, *, since: datetime | None = None) -> AggregateTotals:
    if since is None:
        return _counter_totals(db, AggregateScopeEnum.HOUSE, house_id)
    return _live_totals(db, Conversion.house_id == house_id, Conversion.converted_at >= since)


def total_commission(db: Session, affiliate_id: int) -> Decimal:
    return totals_for_affiliate(db, affiliate_id).commission_total


def lead_rollup(db: Session, customer_id: str, *, since: datetime | None = None) -> LeadRollup:
    timeline = list_conversions_for_customer(db, customer_id=customer_id, since=since)
    totals = AggregateTotals()
    commission = ZERO
    amount = ZERO
    affiliate_ids: list[int] = []
    house_ids: list[int] = []
    for conversion in timeline:
        column = _COUNT_COLUMNS[EventTypeEnum(conversion.event_type)]
        setattr(totals, column, getattr(totals, column) + 1)
        commission += _money(conversion.commission)
        amount += _money(conversion.amount)
        if conversion.affiliate_id not in affiliate_ids:
            affiliate_ids.append(conversion.affiliate_id)
        if conversion.house_id not in house_ids:
            house_ids.append(conversion.house_id)
    totals.commission_total = quantize_money(commission)
    totals.amount_total = quantize_money(amount)

    awarded = (
        db.query(LeadCpaAward.house_id)
        .filter(LeadCpaAward.customer_id == customer_id)
        .distinct()
        .order_by(LeadCpaAward.house_id.asc())
        .all()
    )
    return LeadRollup(
        customer_id=customer_id,
        totals=totals,
        affiliate_ids=affiliate_ids,
        house_ids=house_ids,
        cpa_awarded_house_ids=[row[0] for row in awarded],
        first_seen_at=timeline[0].converted_at if timeline else None,
        last_seen_at=timeline[-1].converted_at if timeline else None,
        timeline=timeline,
    )


def has_cpa_award(db: Session, *, house_id: int, affiliate_id: int, customer_id: str) -> bool:
    return (
        db.query(LeadCpaAward.id)
        .filter(
            LeadCpaAward.house_id == house_id,
            LeadCpaAward.affiliate_id == affiliate_id,
            LeadCpaAward.customer_id == customer_id,
        )
        .first()
        is not None
    )


def claim_cpa_award(db: Session, *, house_id: int, customer_id: str, affiliate_id: int) -> LeadCpaAward | None:
    """Atomically claim the CPA award for this affiliate-customer pair at a house.

    Returns the award row, or None when the affiliate was already paid for
    this customer.
    """
    if has_cpa_award(db, house_id=house_id, affiliate_id=affiliate_id, customer_id=customer_id):
        return None
    award = LeadCpaAward(house_id=house_id, customer_id=customer_id, affiliate_id=affiliate_id)
    savepoint = db.begin_nested()
    try:
        db.add(award)
        db.flush()
    except IntegrityError:
        savepoint.rollback()
        return None
    savepoint.commit()
    return award
