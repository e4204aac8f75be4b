"""
Postback ingestion pipeline.

``handle_postback`` takes one inbound callback from a betting house through
received -> validated -> attributed -> deduped-or-new -> committed. Every
validation failure is terminal and returns before anything is written.
The reservation, conversion, CPA award and aggregate updates share one
database transaction; if any of them fails the whole unit rolls back,
which also releases the fingerprint reservation so the house's retry is
processed normally.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from time import monotonic
from typing import Mapping

from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from postbacks.core.aggregation import apply_conversion, claim_cpa_award
from postbacks.core.attribution import resolve_link
from postbacks.core.commission import compute_commission, qualifies_for_cpa
from postbacks.core.db import apply_statement_timeout
from postbacks.core.errors import PostbackError, TransientStoreFailure
from postbacks.core.events import EVENT_LABEL_ALIASES, PostbackEvent, parse_event
from postbacks.core.idempotency import bind_conversion, compute_fingerprint, reserve
from postbacks.core.logging import get_structured_logger
from postbacks.core.metrics import record_commission, record_postback
from postbacks.core.partners import authenticate_by_token, authenticate_house, commission_terms
from postbacks.core.time import utcnow
from postbacks.core.tracing import trace_span
from postbacks.crud.postback_logs import create_postback_log
from postbacks.models.affiliates import AffiliateLink
from postbacks.models.conversions import Conversion
from postbacks.models.houses import BettingHouse


logger = get_structured_logger("postback_logger")

# Rejections that get a postback_logs row. Only written once the house
# has authenticated.
AUDITED_REASONS = {"malformed_event", "unresolved_affiliate", "transient_store_failure"}


@dataclass(frozen=True)
class IngestResult:
    accepted: bool
    conversion_id: int | None = None
    duplicate: bool = False
    commission: Decimal | None = None
    error: PostbackError | None = None

    @property
    def reason(self) -> str | None:
        return self.error.code if self.error else None

    def to_payload(self) -> dict:
        if not self.accepted:
            return self.error.to_payload() if self.error else {"accepted": False}
        return {
            "accepted": True,
            "conversion_id": self.conversion_id,
            "duplicate": self.duplicate,
        }


@dataclass
class _Context:
    house_identifier: str | None
    event_label: str | None
    params: Mapping[str, str]
    raw_query: str | None
    request_id: str | None
    house_id: int | None = None

    @property
    def canonical_event(self) -> str | None:
        canonical = EVENT_LABEL_ALIASES.get((self.event_label or "").strip().lower())
        return canonical.value if canonical else self.event_label


def handle_postback(
    db: Session,
    *,
    house_identifier: str | None,
    event_label: str | None,
    params: Mapping[str, str],
    raw_query: str | None = None,
    request_id: str | None = None,
    received_at: datetime | None = None,
) -> IngestResult:
    start = monotonic()
    ctx = _Context(
        house_identifier=house_identifier,
        event_label=event_label,
        params=params,
        raw_query=raw_query,
        request_id=request_id,
    )
    try:
        with trace_span("postback.ingest", house=house_identifier, event_label=event_label):
            result = _process(db, ctx, received_at or utcnow())
    except PostbackError as exc:
        _record_rejection(db, ctx, exc)
        record_postback(
            event_type=ctx.canonical_event,
            outcome=exc.code,
            duration_ms=(monotonic() - start) * 1000.0,
        )
        return IngestResult(accepted=False, error=exc)

    record_postback(
        event_type=ctx.canonical_event,
        outcome="duplicate" if result.duplicate else "accepted",
        duration_ms=(monotonic() - start) * 1000.0,
    )
    return result


def _process(db: Session, ctx: _Context, received_at: datetime) -> IngestResult:
    try:
        apply_statement_timeout(db)
        token = ctx.params.get("token")
        if ctx.house_identifier:
            house = authenticate_house(db, ctx.house_identifier, token)
        else:
            house = authenticate_by_token(db, token)
    except DBAPIError as exc:
        db.rollback()
        raise TransientStoreFailure() from exc
    ctx.house_id = house.id

    event = parse_event(ctx.event_label, ctx.params)

    try:
        link = resolve_link(db, house_id=house.id, subid=event.subid)
    except DBAPIError as exc:
        db.rollback()
        raise TransientStoreFailure() from exc

    fingerprint = compute_fingerprint(house_id=house.id, event=event, received_at=received_at)
    return _commit_conversion(db, house=house, link=link, event=event, fingerprint=fingerprint, received_at=received_at)


def _commit_conversion(
    db: Session,
    *,
    house: BettingHouse,
    link: AffiliateLink,
    event: PostbackEvent,
    fingerprint: str,
    received_at: datetime,
) -> IngestResult:
    # Snapshot the house's terms now; later config edits never touch this conversion.
    terms = commission_terms(house)
    house_id = house.id
    try:
        reservation = reserve(db, fingerprint=fingerprint, house_id=house_id, event_type=event.event_type)
        if not reservation.new:
            existing_id = reservation.existing_conversion_id
            if existing_id is None:
                existing = db.query(Conversion.id).filter(Conversion.fingerprint == fingerprint).first()
                existing_id = existing[0] if existing else None
            db.rollback()
            if existing_id is None:
                # Reserved by a transaction that has not committed yet.
                raise TransientStoreFailure("Event is being processed, retry later")
            logger.info(
                "postback.duplicate",
                extra={"house_id": house_id, "conversion_id": existing_id, "event_type": event.event_type.value},
            )
            return IngestResult(accepted=True, conversion_id=existing_id, duplicate=True)

        award = None
        if event.customer_id and qualifies_for_cpa(terms, event.event_type, event.amount):
            award = claim_cpa_award(
                db,
                house_id=house_id,
                customer_id=event.customer_id,
                affiliate_id=link.affiliate_id,
            )
        commission = compute_commission(
            terms,
            event.event_type,
            event.amount,
            cpa_already_awarded=award is None,
        )

        conversion = Conversion(
            affiliate_id=link.affiliate_id,
            house_id=house_id,
            link_id=link.id,
            customer_id=event.customer_id,
            event_type=event.event_type,
            amount=event.amount,
            commission=commission.total,
            cpa_commission=commission.cpa,
            revshare_commission=commission.revshare,
            commission_model=terms.model,
            transaction_ref=event.transaction_ref,
            fingerprint=fingerprint,
            converted_at=received_at,
        )
        db.add(conversion)
        db.flush()
        if award is not None:
            award.conversion_id = conversion.id
        bind_conversion(db, reservation, conversion.id)
        apply_conversion(db, conversion)
        db.commit()
    except DBAPIError as exc:
        db.rollback()
        raise TransientStoreFailure() from exc
    except Exception:
        db.rollback()
        raise

    conversion_id = conversion.id
    record_commission(house_id=house_id, model=terms.model.value, amount=commission.total)
    logger.info(
        "postback.accepted",
        extra={
            "house_id": house_id,
            "affiliate_id": link.affiliate_id,
            "conversion_id": conversion_id,
            "event_type": event.event_type.value,
            "customer_id": event.customer_id,
            "commission": str(commission.total),
        },
    )
    return IngestResult(accepted=True, conversion_id=conversion_id, commission=commission.total)


def _record_rejection(db: Session, ctx: _Context, exc: PostbackError) -> None:
    params = ctx.params
    subid = params.get("subid")
    customer_id = params.get("customer_id") or params.get("customerId")
    amount = params.get("value") or params.get("amount")
    log = logger.error if exc.retryable else logger.warning
    log(
        "postback.rejected",
        extra={
            "house": ctx.house_identifier,
            "event_label": ctx.event_label,
            "subid": subid,
            "customer_id": customer_id,
            "reason": exc.code,
            "detail": exc.message,
            "request_id": ctx.request_id,
        },
    )
    if ctx.house_id is None or exc.code not in AUDITED_REASONS:
        return
    house_id = ctx.house_id
    try:
        db.rollback()
        # SET LOCAL ended with the rolled back transaction.
        apply_statement_timeout(db)
        create_postback_log(
            db,
            house_id=house_id,
            event_label=ctx.event_label or "",
            reason=exc.code,
            message=exc.message,
            subid=subid,
            customer_id=customer_id,
            amount=amount,
            raw_query=ctx.raw_query,
            request_id=ctx.request_id,
        )
    except DBAPIError:
        db.rollback()
        logger.exception(
            "postback.audit_write_failed",
            extra={"house_id": house_id, "reason": exc.code, "request_id": ctx.request_id},
        )


__all__ = ["IngestResult", "handle_postback"]
