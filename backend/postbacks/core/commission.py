# Commission formulas. Everything here is pure: the caller passes the
# house's snapshotted terms, the event type and amount, and whether the
# affiliate was already paid the one-time CPA for this customer at this house.

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_EVEN, Decimal

from postbacks.models.enums import CommissionModelEnum, CpaTriggerEnum, EventTypeEnum


CENT = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")

REVSHARE_EVENTS = {EventTypeEnum.DEPOSIT, EventTypeEnum.PROFIT}


def quantize_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_EVEN)


@dataclass(frozen=True)
class CommissionTerms:
    model: CommissionModelEnum
    cpa_amount: Decimal = ZERO
    revshare_percent: Decimal = ZERO
    cpa_trigger: CpaTriggerEnum = CpaTriggerEnum.REGISTRATION
    min_deposit: Decimal | None = None

    @classmethod
    def revshare(cls, percent) -> "CommissionTerms":
        return cls(model=CommissionModelEnum.REVSHARE, revshare_percent=Decimal(str(percent)))

    @classmethod
    def cpa(cls, amount, *, trigger=CpaTriggerEnum.REGISTRATION, min_deposit=None) -> "CommissionTerms":
        return cls(
            model=CommissionModelEnum.CPA,
            cpa_amount=Decimal(str(amount)),
            cpa_trigger=trigger,
            min_deposit=Decimal(str(min_deposit)) if min_deposit is not None else None,
        )

    @classmethod
    def hybrid(cls, cpa_amount, percent, *, trigger=CpaTriggerEnum.REGISTRATION, min_deposit=None) -> "CommissionTerms":
        return cls(
            model=CommissionModelEnum.HYBRID,
            cpa_amount=Decimal(str(cpa_amount)),
            revshare_percent=Decimal(str(percent)),
            cpa_trigger=trigger,
            min_deposit=Decimal(str(min_deposit)) if min_deposit is not None else None,
        )

    @property
    def has_cpa(self) -> bool:
        return self.model in (CommissionModelEnum.CPA, CommissionModelEnum.HYBRID)

    @property
    def has_revshare(self) -> bool:
        return self.model in (CommissionModelEnum.REVSHARE, CommissionModelEnum.HYBRID)


@dataclass(frozen=True)
class CommissionResult:
    cpa: Decimal
    revshare: Decimal

    @property
    def total(self) -> Decimal:
        return quantize_money(self.cpa + self.revshare)


def qualifies_for_cpa(terms: CommissionTerms, event_type: EventTypeEnum, amount: Decimal | None) -> bool:
    """True when this event is the house's CPA trigger and meets its threshold."""
    if not terms.has_cpa:
        return False
    if terms.cpa_trigger is CpaTriggerEnum.REGISTRATION:
        return event_type is EventTypeEnum.REGISTRATION
    if event_type is not EventTypeEnum.DEPOSIT:
        return False
    if terms.min_deposit is not None and (amount is None or amount < terms.min_deposit):
        return False
    return True


def compute_commission(
    terms: CommissionTerms,
    event_type: EventTypeEnum,
    amount: Decimal | None = None,
    *,
    cpa_already_awarded: bool = False,
) -> CommissionResult:
    cpa = ZERO
    if not cpa_already_awarded and qualifies_for_cpa(terms, event_type, amount):
        cpa = quantize_money(terms.cpa_amount)

    revshare = ZERO
    if terms.has_revshare and event_type in REVSHARE_EVENTS and amount is not None:
        revshare = quantize_money(amount * (terms.revshare_percent / HUNDRED))

    return CommissionResult(cpa=cpa, revshare=revshare)


def compute(
    model: CommissionModelEnum,
    config_value,
    event_type: EventTypeEnum,
    amount: Decimal | None = None,
) -> Decimal:
    """Single-value form for RevShare and CPA, first award assumed."""
    value = Decimal(str(config_value))
    if model is CommissionModelEnum.REVSHARE:
        terms = CommissionTerms(model=model, revshare_percent=value)
    elif model is CommissionModelEnum.CPA:
        terms = CommissionTerms(model=model, cpa_amount=value)
    else:
        raise ValueError("Hybrid terms need both a CPA amount and a percentage")
    return compute_commission(terms, event_type, amount).total
