from sqlalchemy import Column, DateTime, Enum, ForeignKey, Index, Integer, Numeric, String, UniqueConstraint

from postbacks.core.db import Base
from postbacks.core.time import utcnow
from postbacks.models.enums import AggregateScopeEnum, enum_values
from postbacks.models.mixins import CreatedAtMixin


class AggregateCounter(Base):
    __tablename__ = "aggregate_counters"
    __table_args__ = (
        UniqueConstraint("scope", "scope_id", name="uq_aggregate_counters_scope"),
    )

    id = Column(Integer, primary_key=True, index=True)
    scope = Column(
        Enum(
            AggregateScopeEnum,
            name="aggregate_scope_enum",
            native_enum=False,
            validate_strings=True,
            values_callable=enum_values,
        ),
        nullable=False,
    )
    scope_id = Column(Integer, nullable=False)
    clicks = Column(Integer, nullable=False, default=0)
    registrations = Column(Integer, nullable=False, default=0)
    deposits = Column(Integer, nullable=False, default=0)
    profits = Column(Integer, nullable=False, default=0)
    commission_total = Column(Numeric(16, 2), nullable=False, default=0)
    amount_total = Column(Numeric(16, 2), nullable=False, default=0)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)


class AggregateApplication(CreatedAtMixin, Base):
    """Conversions already folded into the counters."""

    __tablename__ = "aggregate_applications"
    __table_args__ = (
        UniqueConstraint("conversion_id", name="uq_aggregate_applications_conversion"),
    )

    id = Column(Integer, primary_key=True, index=True)
    conversion_id = Column(Integer, ForeignKey("conversions.id", ondelete="CASCADE"), nullable=False)


class LeadCpaAward(CreatedAtMixin, Base):
    """At most one CPA award per affiliate-customer pair at a house."""

    __tablename__ = "lead_cpa_awards"
    __table_args__ = (
        UniqueConstraint(
            "house_id", "affiliate_id", "customer_id", name="uq_lead_cpa_awards_house_affiliate_customer"
        ),
        Index("ix_lead_cpa_awards_affiliate", "affiliate_id"),
    )

    id = Column(Integer, primary_key=True, index=True)
    house_id = Column(Integer, ForeignKey("betting_houses.id", ondelete="RESTRICT"), nullable=False)
    customer_id = Column(String, nullable=False)
    affiliate_id = Column(Integer, ForeignKey("affiliates.id", ondelete="RESTRICT"), nullable=False)
    conversion_id = Column(Integer, ForeignKey("conversions.id", ondelete="SET NULL"), nullable=True)
