from __future__ import annotations

from datetime import datetime

from sqlalchemy.orm import Session

from postbacks.models.conversions import Conversion


def list_recent_conversions(
    db: Session,
    *,
    limit: int,
    house_id: int | None = None,
    affiliate_id: int | None = None,
) -> list[Conversion]:
    query = db.query(Conversion)
    if house_id is not None:
        query = query.filter(Conversion.house_id == house_id)
    if affiliate_id is not None:
        query = query.filter(Conversion.affiliate_id == affiliate_id)
    return query.order_by(Conversion.converted_at.desc(), Conversion.id.desc()).limit(limit).all()


def list_conversions_for_customer(
    db: Session,
    *,
    customer_id: str,
    since: datetime | None = None,
) -> list[Conversion]:
    query = db.query(Conversion).filter(Conversion.customer_id == customer_id)
    if since is not None:
        query = query.filter(Conversion.converted_at >= since)
    return query.order_by(Conversion.converted_at.asc(), Conversion.id.asc()).all()
