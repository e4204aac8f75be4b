from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel


class TotalsRead(BaseModel):
    clicks: int
    registrations: int
    deposits: int
    profits: int
    conversions: int
    commission_total: Decimal
    amount_total: Decimal


class AffiliateTotalsRead(BaseModel):
    affiliate_id: int
    window_days: Optional[int] = None
    totals: TotalsRead


class HouseTotalsRead(BaseModel):
    house_id: int
    window_days: Optional[int] = None
    totals: TotalsRead


class ConversionRead(BaseModel):
    id: int
    affiliate_id: int
    house_id: int
    link_id: Optional[int] = None
    customer_id: Optional[str] = None
    event_type: str
    amount: Optional[Decimal] = None
    commission: Decimal
    cpa_commission: Decimal
    revshare_commission: Decimal
    commission_model: str
    transaction_ref: Optional[str] = None
    status: str
    converted_at: datetime


class LeadRollupRead(BaseModel):
    customer_id: str
    totals: TotalsRead
    affiliate_ids: list[int]
    house_ids: list[int]
    cpa_awarded_house_ids: list[int]
    first_seen_at: Optional[datetime] = None
    last_seen_at: Optional[datetime] = None
    timeline: list[ConversionRead]
