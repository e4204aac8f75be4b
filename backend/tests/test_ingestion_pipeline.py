import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from uuid import uuid4

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import sessionmaker

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ["SKIP_MIGRATIONS"] = "1"

import pytest  # noqa: E402

from postbacks.core import ingestion as ingestion_module  # noqa: E402
from postbacks.core.aggregation import total_commission, totals_for_affiliate  # noqa: E402
from postbacks.core.db import Base, build_engine  # noqa: E402
from postbacks.core.ingestion import handle_postback  # noqa: E402
from postbacks.models.aggregates import LeadCpaAward  # noqa: E402
from postbacks.models.conversions import Conversion  # noqa: E402
from postbacks.models.enums import CommissionModelEnum, CpaTriggerEnum, EventTypeEnum  # noqa: E402
from postbacks.models.houses import BettingHouse  # noqa: E402
from postbacks.models.idempotency import PostbackFingerprint  # noqa: E402
from postbacks.models.postback_logs import PostbackLog  # noqa: E402
import postbacks.models  # noqa: E402,F401
from tests.factories import make_affiliate, make_house, make_link  # noqa: E402


def _setup_db(db_url: str):
    engine = build_engine(db_url)
    SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    Base.metadata.create_all(bind=engine)
    return SessionLocal


def _setup_house(SessionLocal, *, subid="eadavid", **house_fields):
    with SessionLocal() as db:
        house = make_house(db, **house_fields)
        affiliate = make_affiliate(db)
        make_link(db, affiliate=affiliate, house=house, identifier=subid)
        return house.identifier, house.security_token, house.id, affiliate.id


def _send(SessionLocal, identifier, event_label, **params):
    with SessionLocal() as db:
        return handle_postback(db, house_identifier=identifier, event_label=event_label, params=params)


def test_eadavid_revshare_scenario():
    SessionLocal = _setup_db(f"sqlite:///./ingest_scenario_{uuid4().hex}.db")
    identifier, token, _house_id, affiliate_id = _setup_house(SessionLocal, commission_value="25")

    click = _send(SessionLocal, identifier, "click", token=token, subid="eadavid")
    registration = _send(SessionLocal, identifier, "registration", token=token, subid="eadavid", customer_id="12345")
    deposit = _send(
        SessionLocal, identifier, "deposit", token=token, subid="eadavid", customer_id="12345", value="200.00"
    )
    replay = _send(
        SessionLocal, identifier, "deposit", token=token, subid="eadavid", customer_id="12345", value="200.00"
    )

    assert click.accepted and registration.accepted and deposit.accepted
    assert click.commission == Decimal("0.00")
    assert registration.commission == Decimal("0.00")
    assert deposit.commission == Decimal("50.00")
    assert replay.accepted is True
    assert replay.duplicate is True
    assert replay.conversion_id == deposit.conversion_id

    with SessionLocal() as db:
        totals = totals_for_affiliate(db, affiliate_id)
        assert db.query(Conversion).count() == 3
    assert totals.deposits == 1
    assert totals.commission_total == Decimal("50.00")


def test_identical_postback_n_times_creates_one_conversion():
    SessionLocal = _setup_db(f"sqlite:///./ingest_idem_{uuid4().hex}.db")
    identifier, token, _house_id, affiliate_id = _setup_house(SessionLocal)

    results = [
        _send(SessionLocal, identifier, "register", token=token, subid="eadavid", customer_id="c-1")
        for _ in range(5)
    ]

    assert all(result.accepted for result in results)
    assert len({result.conversion_id for result in results}) == 1
    assert [result.duplicate for result in results] == [False, True, True, True, True]
    with SessionLocal() as db:
        assert db.query(Conversion).count() == 1
        assert totals_for_affiliate(db, affiliate_id).registrations == 1


def test_token_for_one_house_is_rejected_by_another():
    SessionLocal = _setup_db(f"sqlite:///./ingest_tokens_{uuid4().hex}.db")
    house_a, token_a, _a_id, _ = _setup_house(SessionLocal)
    house_b, token_b, _b_id, _ = _setup_house(SessionLocal)

    wrong_a = _send(SessionLocal, house_a, "click", token=token_b, subid="eadavid")
    wrong_b = _send(SessionLocal, house_b, "click", token=token_a, subid="eadavid")
    right = _send(SessionLocal, house_a, "click", token=token_a, subid="eadavid")

    assert wrong_a.reason == "invalid_token"
    assert wrong_b.reason == "invalid_token"
    assert right.accepted is True
    with SessionLocal() as db:
        assert db.query(Conversion).count() == 1
        # Unauthenticated rejections leave no rows behind.
        assert db.query(PostbackLog).count() == 0


def test_unknown_and_inactive_house_rejected():
    SessionLocal = _setup_db(f"sqlite:///./ingest_unknown_{uuid4().hex}.db")
    identifier, token, _house_id, _ = _setup_house(SessionLocal, is_active=False)

    inactive = _send(SessionLocal, identifier, "click", token=token, subid="eadavid")
    missing = _send(SessionLocal, "nosuchhouse", "click", token=token, subid="eadavid")

    assert inactive.reason == "unknown_house"
    assert missing.reason == "unknown_house"
    assert missing.error.status_code == 404


def test_token_alone_identifies_house():
    SessionLocal = _setup_db(f"sqlite:///./ingest_token_only_{uuid4().hex}.db")
    _identifier, token, _house_id, _ = _setup_house(SessionLocal)

    accepted = _send(SessionLocal, None, "click", token=token, subid="eadavid")
    rejected = _send(SessionLocal, None, "click", token="not-a-token", subid="eadavid")

    assert accepted.accepted is True
    assert rejected.reason == "invalid_token"


def test_unresolved_affiliate_creates_nothing_and_is_audited():
    SessionLocal = _setup_db(f"sqlite:///./ingest_unresolved_{uuid4().hex}.db")
    identifier, token, house_id, _ = _setup_house(SessionLocal)

    result = _send(SessionLocal, identifier, "deposit", token=token, subid="stranger", customer_id="c1", value="10")

    assert result.accepted is False
    assert result.reason == "unresolved_affiliate"
    with SessionLocal() as db:
        assert db.query(Conversion).count() == 0
        assert db.query(PostbackFingerprint).count() == 0
        assert totals_for_affiliate(db, 1).conversions == 0
        log = db.query(PostbackLog).one()
        assert log.house_id == house_id
        assert log.reason == "unresolved_affiliate"
        assert log.subid == "stranger"
        assert log.amount == "10"


def test_malformed_event_is_audited():
    SessionLocal = _setup_db(f"sqlite:///./ingest_malformed_{uuid4().hex}.db")
    identifier, token, _house_id, _ = _setup_house(SessionLocal)

    result = _send(SessionLocal, identifier, "deposit", token=token, subid="eadavid", customer_id="c1")

    assert result.reason == "malformed_event"
    with SessionLocal() as db:
        assert db.query(PostbackLog).filter(PostbackLog.reason == "malformed_event").count() == 1


def test_cpa_on_deposit_awarded_once_per_customer():
    SessionLocal = _setup_db(f"sqlite:///./ingest_cpa_{uuid4().hex}.db")
    identifier, token, house_id, _ = _setup_house(
        SessionLocal,
        model=CommissionModelEnum.CPA,
        commission_value="50",
        cpa_trigger=CpaTriggerEnum.DEPOSIT,
    )

    first = _send(
        SessionLocal, identifier, "deposit", token=token, subid="eadavid", customer_id="c1", value="100", txid="t1"
    )
    second = _send(
        SessionLocal, identifier, "deposit", token=token, subid="eadavid", customer_id="c1", value="100", txid="t2"
    )

    assert first.commission == Decimal("50.00")
    assert second.accepted is True
    assert second.duplicate is False
    assert second.commission == Decimal("0.00")
    with SessionLocal() as db:
        assert db.query(Conversion).count() == 2
        award = db.query(LeadCpaAward).one()
        assert award.house_id == house_id
        assert award.conversion_id == first.conversion_id


def test_cpa_deposit_below_minimum_does_not_consume_award():
    SessionLocal = _setup_db(f"sqlite:///./ingest_min_deposit_{uuid4().hex}.db")
    identifier, token, _house_id, _ = _setup_house(
        SessionLocal,
        model=CommissionModelEnum.CPA,
        commission_value="50",
        cpa_trigger=CpaTriggerEnum.DEPOSIT,
        min_deposit="20",
    )

    small = _send(
        SessionLocal, identifier, "deposit", token=token, subid="eadavid", customer_id="c1", value="5", txid="t1"
    )
    qualifying = _send(
        SessionLocal, identifier, "deposit", token=token, subid="eadavid", customer_id="c1", value="25", txid="t2"
    )

    assert small.commission == Decimal("0.00")
    assert qualifying.commission == Decimal("50.00")


def test_hybrid_registration_then_deposit():
    SessionLocal = _setup_db(f"sqlite:///./ingest_hybrid_{uuid4().hex}.db")
    identifier, token, _house_id, affiliate_id = _setup_house(
        SessionLocal,
        model=CommissionModelEnum.HYBRID,
        cpa_value="50",
        revshare_percent="10",
    )

    registration = _send(SessionLocal, identifier, "registration", token=token, subid="eadavid", customer_id="c9")
    deposit = _send(
        SessionLocal, identifier, "deposit", token=token, subid="eadavid", customer_id="c9", value="200.00"
    )

    assert registration.commission == Decimal("50.00")
    assert deposit.commission == Decimal("20.00")
    with SessionLocal() as db:
        assert total_commission(db, affiliate_id) == Decimal("70.00")


def test_store_failure_rolls_back_and_retry_succeeds(monkeypatch):
    SessionLocal = _setup_db(f"sqlite:///./ingest_rollback_{uuid4().hex}.db")
    identifier, token, _house_id, affiliate_id = _setup_house(SessionLocal)

    def _broken_apply(_db, _conversion):
        raise OperationalError("UPDATE aggregate_counters", {}, Exception("database is locked"))

    monkeypatch.setattr(ingestion_module, "apply_conversion", _broken_apply)
    failed = _send(
        SessionLocal, identifier, "deposit", token=token, subid="eadavid", customer_id="c1", value="40", txid="t1"
    )

    assert failed.accepted is False
    assert failed.reason == "transient_store_failure"
    assert failed.error.retryable is True
    with SessionLocal() as db:
        assert db.query(Conversion).count() == 0
        assert db.query(PostbackFingerprint).count() == 0
        assert db.query(PostbackLog).filter(PostbackLog.reason == "transient_store_failure").count() == 1

    monkeypatch.undo()
    retried = _send(
        SessionLocal, identifier, "deposit", token=token, subid="eadavid", customer_id="c1", value="40", txid="t1"
    )

    assert retried.accepted is True
    assert retried.duplicate is False
    with SessionLocal() as db:
        assert total_commission(db, affiliate_id) == Decimal("10.00")


def test_aggregate_matches_conversion_sum_with_duplicates():
    SessionLocal = _setup_db(f"sqlite:///./ingest_consistency_{uuid4().hex}.db")
    identifier, token, _house_id, affiliate_id = _setup_house(SessionLocal, commission_value="30")

    for index in range(4):
        for _ in range(2):
            _send(
                SessionLocal,
                identifier,
                "revenue",
                token=token,
                subid="eadavid",
                customer_id=f"c{index}",
                value=f"{(index + 1) * 33.33:.2f}",
                event_id=f"e{index}",
            )

    with SessionLocal() as db:
        rows = db.query(Conversion).filter(Conversion.affiliate_id == affiliate_id).all()
        expected = sum((row.commission for row in rows), Decimal("0.00"))
        assert len(rows) == 4
        assert all(row.event_type is EventTypeEnum.PROFIT for row in rows)
        assert total_commission(db, affiliate_id) == expected


def test_cpa_paid_to_each_affiliate_that_brings_the_customer():
    SessionLocal = _setup_db(f"sqlite:///./ingest_cpa_pairs_{uuid4().hex}.db")
    identifier, token, house_id, first_affiliate_id = _setup_house(
        SessionLocal, subid="one", model=CommissionModelEnum.CPA, commission_value="50"
    )
    with SessionLocal() as db:
        house = db.get(BettingHouse, house_id)
        second = make_affiliate(db)
        make_link(db, affiliate=second, house=house, identifier="two")
        second_affiliate_id = second.id

    via_one = _send(SessionLocal, identifier, "registration", token=token, subid="one", customer_id="c1")
    via_two = _send(SessionLocal, identifier, "registration", token=token, subid="two", customer_id="c1")
    again_two = _send(
        SessionLocal, identifier, "registration", token=token, subid="two", customer_id="c1", event_id="r2"
    )

    assert via_one.commission == Decimal("50.00")
    assert via_two.commission == Decimal("50.00")
    assert again_two.accepted is True
    assert again_two.commission == Decimal("0.00")
    with SessionLocal() as db:
        assert total_commission(db, first_affiliate_id) == Decimal("50.00")
        assert total_commission(db, second_affiliate_id) == Decimal("50.00")
        assert db.query(LeadCpaAward).count() == 2


def test_oversized_amount_is_malformed_and_writes_nothing():
    SessionLocal = _setup_db(f"sqlite:///./ingest_huge_{uuid4().hex}.db")
    identifier, token, _house_id, affiliate_id = _setup_house(SessionLocal, commission_value="25")

    result = _send(
        SessionLocal, identifier, "deposit", token=token, subid="eadavid", customer_id="c1", value="1e30"
    )

    assert result.accepted is False
    assert result.reason == "malformed_event"
    assert result.error.retryable is False
    with SessionLocal() as db:
        assert db.query(Conversion).count() == 0
        assert totals_for_affiliate(db, affiliate_id).conversions == 0


def test_sub_cent_amount_is_stored_rounded_and_totals_agree():
    SessionLocal = _setup_db(f"sqlite:///./ingest_cents_{uuid4().hex}.db")
    identifier, token, _house_id, affiliate_id = _setup_house(SessionLocal, commission_value="25")

    result = _send(
        SessionLocal, identifier, "deposit", token=token, subid="eadavid", customer_id="c1", value="10.005"
    )

    assert result.accepted is True
    assert result.commission == Decimal("2.50")
    with SessionLocal() as db:
        conversion = db.get(Conversion, result.conversion_id)
        assert conversion.amount == Decimal("10.00")
        assert totals_for_affiliate(db, affiliate_id).amount_total == Decimal("10.00")


def test_concurrent_identical_postbacks_all_succeed_once():
    SessionLocal = _setup_db(f"sqlite:///./ingest_race_{uuid4().hex}.db")
    identifier, token, _house_id, affiliate_id = _setup_house(SessionLocal, commission_value="25")
    start = threading.Barrier(8)

    def _race(_index):
        start.wait()
        return _send(
            SessionLocal, identifier, "deposit", token=token, subid="eadavid", customer_id="c1", value="40", txid="t1"
        )

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(_race, range(8)))

    assert all(result.accepted for result in results), [result.reason for result in results]
    assert len({result.conversion_id for result in results}) == 1
    assert sum(1 for result in results if not result.duplicate) == 1
    with SessionLocal() as db:
        assert db.query(Conversion).count() == 1
        assert total_commission(db, affiliate_id) == Decimal("10.00")


def test_concurrent_distinct_postbacks_keep_totals_consistent():
    SessionLocal = _setup_db(f"sqlite:///./ingest_parallel_{uuid4().hex}.db")
    identifier, token, _house_id, affiliate_id = _setup_house(SessionLocal, commission_value="10")

    def _deposit(index):
        return _send(
            SessionLocal,
            identifier,
            "deposit",
            token=token,
            subid="eadavid",
            customer_id=f"c{index % 3}",
            value=f"{index + 1}0.00",
            txid=f"t{index}",
        )

    with ThreadPoolExecutor(max_workers=6) as pool:
        results = list(pool.map(_deposit, range(12)))

    assert all(result.accepted and not result.duplicate for result in results)
    with SessionLocal() as db:
        rows = db.query(Conversion).all()
        totals = totals_for_affiliate(db, affiliate_id)
    assert len(rows) == 12
    assert totals.deposits == 12
    assert totals.commission_total == sum((row.commission for row in rows), Decimal("0.00"))
    assert totals.amount_total == sum((row.amount for row in rows), Decimal("0.00"))


def test_houses_cannot_share_a_token():
    SessionLocal = _setup_db(f"sqlite:///./ingest_shared_token_{uuid4().hex}.db")
    with SessionLocal() as db:
        make_house(db, token="shared-token")
        with pytest.raises(IntegrityError):
            make_house(db, token="shared-token")
        db.rollback()
        assert db.query(BettingHouse).count() == 1


def test_audit_write_reapplies_statement_timeout(monkeypatch):
    SessionLocal = _setup_db(f"sqlite:///./ingest_audit_timeout_{uuid4().hex}.db")
    identifier, token, _house_id, _ = _setup_house(SessionLocal)
    calls = []
    real_apply = ingestion_module.apply_statement_timeout

    def _tracking_apply(db):
        calls.append(db)
        real_apply(db)

    monkeypatch.setattr(ingestion_module, "apply_statement_timeout", _tracking_apply)
    result = _send(SessionLocal, identifier, "deposit", token=token, subid="stranger", customer_id="c1", value="10")

    assert result.reason == "unresolved_affiliate"
    assert len(calls) == 2
    with SessionLocal() as db:
        assert db.query(PostbackLog).count() == 1


def test_rejection_log_carries_context(caplog):
    SessionLocal = _setup_db(f"sqlite:///./ingest_reject_log_{uuid4().hex}.db")
    identifier, token, _house_id, _ = _setup_house(SessionLocal)
    logger = logging.getLogger("postback_logger")
    logger.addHandler(caplog.handler)
    try:
        _send(SessionLocal, identifier, "deposit", token=token, subid="stranger", customer_id="c7", value="10")
    finally:
        logger.removeHandler(caplog.handler)

    records = [r for r in caplog.records if r.getMessage() == "postback.rejected"]
    assert records
    entry = records[-1]
    assert getattr(entry, "house", None) == identifier
    assert getattr(entry, "subid", None) == "stranger"
    assert getattr(entry, "customer_id", None) == "c7"
    assert getattr(entry, "reason", None) == "unresolved_affiliate"
