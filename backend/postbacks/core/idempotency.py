# Dedup ledger for postbacks. A reservation is an INSERT against a unique
# fingerprint column inside the caller's transaction: the losing writer
# gets an IntegrityError (Postgres blocks it until the winner commits) and
# reads the winner's conversion instead. Rolling back the transaction is
# what releases a reservation.

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from postbacks.core.config import settings
from postbacks.core.events import PostbackEvent
from postbacks.models.enums import EventTypeEnum
from postbacks.models.idempotency import PostbackFingerprint


@dataclass(frozen=True)
class Reservation:
    new: bool
    fingerprint: str
    record: PostbackFingerprint | None = None
    existing_conversion_id: int | None = None


def click_bucket(received_at: datetime, bucket_seconds: int | None = None) -> int:
    width = bucket_seconds or settings.POSTBACK_CLICK_BUCKET_SECONDS
    if received_at.tzinfo is None:
        received_at = received_at.replace(tzinfo=timezone.utc)
    return int(received_at.timestamp()) // width


def compute_fingerprint(
    *,
    house_id: int,
    event: PostbackEvent,
    received_at: datetime | None = None,
    bucket_seconds: int | None = None,
) -> str:
    parts = [
        str(house_id),
        event.event_type.value,
        event.customer_id or "",
        event.subid,
        event.transaction_ref or "",
    ]
    if event.event_type is EventTypeEnum.CLICK:
        if received_at is None:
            raise ValueError("received_at is required for click fingerprints")
        parts.append(str(click_bucket(received_at, bucket_seconds)))
    # Unit separator keeps ("a", "bc") and ("ab", "c") apart.
    return hashlib.sha256("\x1f".join(parts).encode("utf-8")).hexdigest()


def find_reservation(db: Session, fingerprint: str) -> PostbackFingerprint | None:
    return db.query(PostbackFingerprint).filter(PostbackFingerprint.fingerprint == fingerprint).first()


def reserve(db: Session, *, fingerprint: str, house_id: int, event_type: EventTypeEnum) -> Reservation:
    record = PostbackFingerprint(
        fingerprint=fingerprint,
        house_id=house_id,
        event_type=event_type.value,
    )
    savepoint = db.begin_nested()
    try:
        db.add(record)
        db.flush()
    except IntegrityError:
        savepoint.rollback()
        existing = find_reservation(db, fingerprint)
        return Reservation(
            new=False,
            fingerprint=fingerprint,
            existing_conversion_id=existing.conversion_id if existing else None,
        )
    savepoint.commit()
    return Reservation(new=True, fingerprint=fingerprint, record=record)


def bind_conversion(db: Session, reservation: Reservation, conversion_id: int) -> None:
    if reservation.record is None:
        raise ValueError("Only a new reservation can be bound")
    reservation.record.conversion_id = conversion_id
    db.flush()
