from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from postbacks.api.dependencies import require_admin_key
from postbacks.core.aggregation import (
    AggregateTotals,
    lead_rollup,
    totals_for_affiliate,
    totals_for_house,
    window_start,
)
from postbacks.core.config import settings
from postbacks.core.db import get_db
from postbacks.core.partners import build_postback_urls
from postbacks.crud.affiliates import get_affiliate
from postbacks.crud.conversions import list_recent_conversions
from postbacks.crud.houses import get_house
from postbacks.crud.postback_logs import list_postback_logs
from postbacks.schemas.postbacks import PostbackLogRead, PostbackUrlsRead
from postbacks.schemas.reports import (
    AffiliateTotalsRead,
    ConversionRead,
    HouseTotalsRead,
    LeadRollupRead,
    TotalsRead,
)


router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin_key)])


def _totals_read(totals: AggregateTotals) -> TotalsRead:
    return TotalsRead(**totals.as_dict())


def _conversion_read(conversion) -> ConversionRead:
    return ConversionRead(
        id=conversion.id,
        affiliate_id=conversion.affiliate_id,
        house_id=conversion.house_id,
        link_id=conversion.link_id,
        customer_id=conversion.customer_id,
        event_type=conversion.event_type.value,
        amount=conversion.amount,
        commission=conversion.commission,
        cpa_commission=conversion.cpa_commission,
        revshare_commission=conversion.revshare_commission,
        commission_model=conversion.commission_model.value,
        transaction_ref=conversion.transaction_ref,
        status=conversion.status.value,
        converted_at=conversion.converted_at,
    )


def _log_read(entry) -> PostbackLogRead:
    return PostbackLogRead(
        id=entry.id,
        house_id=entry.house_id,
        event_label=entry.event_label,
        reason=entry.reason,
        message=entry.message,
        subid=entry.subid,
        customer_id=entry.customer_id,
        amount=entry.amount,
        raw_query=entry.raw_query,
        request_id=entry.request_id,
        created_at=entry.created_at,
    )


@router.get("/reports/affiliates/{affiliate_id}/totals", response_model=AffiliateTotalsRead)
def affiliate_totals(
    affiliate_id: int,
    days: int | None = Query(default=None, gt=0, le=3650),
    db: Session = Depends(get_db),
):
    if not get_affiliate(db, affiliate_id=affiliate_id):
        raise HTTPException(status_code=404, detail="Affiliate not found")
    since = window_start(days) if days else None
    totals = totals_for_affiliate(db, affiliate_id, since=since)
    return AffiliateTotalsRead(affiliate_id=affiliate_id, window_days=days, totals=_totals_read(totals))


@router.get("/reports/houses/{house_id}/totals", response_model=HouseTotalsRead)
def house_totals(
    house_id: int,
    days: int | None = Query(default=None, gt=0, le=3650),
    db: Session = Depends(get_db),
):
    if not get_house(db, house_id=house_id):
        raise HTTPException(status_code=404, detail="House not found")
    since = window_start(days) if days else None
    totals = totals_for_house(db, house_id, since=since)
    return HouseTotalsRead(house_id=house_id, window_days=days, totals=_totals_read(totals))


@router.get("/reports/leads/{customer_id}", response_model=LeadRollupRead)
def lead_report(
    customer_id: str,
    days: int | None = Query(default=None, gt=0, le=3650),
    db: Session = Depends(get_db),
):
    rollup = lead_rollup(db, customer_id, since=window_start(days) if days else None)
    if not rollup.timeline:
        raise HTTPException(status_code=404, detail="Lead not found")
    return LeadRollupRead(
        customer_id=rollup.customer_id,
        totals=_totals_read(rollup.totals),
        affiliate_ids=rollup.affiliate_ids,
        house_ids=rollup.house_ids,
        cpa_awarded_house_ids=rollup.cpa_awarded_house_ids,
        first_seen_at=rollup.first_seen_at,
        last_seen_at=rollup.last_seen_at,
        timeline=[_conversion_read(conversion) for conversion in rollup.timeline],
    )


@router.get("/reports/conversions/recent", response_model=list[ConversionRead])
def recent_conversions(
    house_id: int | None = None,
    affiliate_id: int | None = None,
    limit: int | None = Query(default=None, gt=0, le=500),
    db: Session = Depends(get_db),
):
    conversions = list_recent_conversions(
        db,
        limit=limit or settings.RECENT_CONVERSIONS_LIMIT,
        house_id=house_id,
        affiliate_id=affiliate_id,
    )
    return [_conversion_read(conversion) for conversion in conversions]


@router.get("/postbacks/rejections", response_model=list[PostbackLogRead])
def postback_rejections(
    house_id: int | None = None,
    reason: str | None = None,
    limit: int | None = Query(default=None, gt=0, le=1000),
    db: Session = Depends(get_db),
):
    entries = list_postback_logs(
        db,
        limit=limit or settings.REJECTION_LOG_LIMIT,
        house_id=house_id,
        reason=reason,
    )
    return [_log_read(entry) for entry in entries]


@router.get("/houses/{house_id}/postback-urls", response_model=PostbackUrlsRead)
def house_postback_urls(house_id: int, db: Session = Depends(get_db)):
    house = get_house(db, house_id=house_id)
    if not house:
        raise HTTPException(status_code=404, detail="House not found")
    return PostbackUrlsRead(
        house_id=house.id,
        identifier=house.identifier,
        urls=build_postback_urls(house),
    )
