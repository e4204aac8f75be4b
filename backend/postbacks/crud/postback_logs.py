from __future__ import annotations

from sqlalchemy.orm import Session

from postbacks.models.postback_logs import PostbackLog


def create_postback_log(
    db: Session,
    *,
    house_id: int,
    event_label: str,
    reason: str,
    message: str | None = None,
    subid: str | None = None,
    customer_id: str | None = None,
    amount: str | None = None,
    raw_query: str | None = None,
    request_id: str | None = None,
) -> PostbackLog:
    entry = PostbackLog(
        house_id=house_id,
        event_label=event_label,
        reason=reason,
        message=message,
        subid=subid,
        customer_id=customer_id,
        amount=amount,
        raw_query=raw_query,
        request_id=request_id,
    )
    db.add(entry)
    db.commit()
    db.refresh(entry)
    return entry


def list_postback_logs(
    db: Session,
    *,
    limit: int,
    house_id: int | None = None,
    reason: str | None = None,
) -> list[PostbackLog]:
    query = db.query(PostbackLog)
    if house_id is not None:
        query = query.filter(PostbackLog.house_id == house_id)
    if reason:
        query = query.filter(PostbackLog.reason == reason)
    return query.order_by(PostbackLog.created_at.desc(), PostbackLog.id.desc()).limit(limit).all()
