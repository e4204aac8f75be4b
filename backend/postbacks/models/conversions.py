from sqlalchemy import Column, DateTime, Enum, ForeignKey, Index, Integer, Numeric, String, UniqueConstraint

from postbacks.core.db import Base
from postbacks.core.time import utcnow
from postbacks.models.enums import (
    CommissionModelEnum,
    ConversionStatusEnum,
    EventTypeEnum,
    enum_values,
)
from postbacks.models.mixins import TimestampMixin


class Conversion(TimestampMixin, Base):
    """One attributed business event reported by a house.

    Commission values are snapshotted at conversion time and never
    recomputed. Only ``status`` changes after creation.
    """

    __tablename__ = "conversions"
    __table_args__ = (
        UniqueConstraint("fingerprint", name="uq_conversions_fingerprint"),
        Index("ix_conversions_affiliate_converted", "affiliate_id", "converted_at"),
        Index("ix_conversions_house_converted", "house_id", "converted_at"),
        Index("ix_conversions_house_customer", "house_id", "customer_id"),
        Index("ix_conversions_customer", "customer_id"),
    )

    id = Column(Integer, primary_key=True, index=True)
    affiliate_id = Column(Integer, ForeignKey("affiliates.id", ondelete="RESTRICT"), nullable=False)
    house_id = Column(Integer, ForeignKey("betting_houses.id", ondelete="RESTRICT"), nullable=False)
    link_id = Column(Integer, ForeignKey("affiliate_links.id", ondelete="RESTRICT"), nullable=False)
    customer_id = Column(String, nullable=True)
    event_type = Column(
        Enum(
            EventTypeEnum,
            name="conversion_event_type_enum",
            native_enum=False,
            validate_strings=True,
            values_callable=enum_values,
        ),
        nullable=False,
    )
    amount = Column(Numeric(14, 2), nullable=True)
    commission = Column(Numeric(14, 2), nullable=False, default=0)
    cpa_commission = Column(Numeric(14, 2), nullable=False, default=0)
    revshare_commission = Column(Numeric(14, 2), nullable=False, default=0)
    commission_model = Column(
        Enum(
            CommissionModelEnum,
            name="conversion_commission_model_enum",
            native_enum=False,
            validate_strings=True,
            values_callable=enum_values,
        ),
        nullable=False,
    )
    transaction_ref = Column(String, nullable=True)
    fingerprint = Column(String(64), nullable=False)
    status = Column(
        Enum(
            ConversionStatusEnum,
            name="conversion_status_enum",
            native_enum=False,
            validate_strings=True,
            values_callable=enum_values,
        ),
        nullable=False,
        default=ConversionStatusEnum.PENDING,
    )
    converted_at = Column(DateTime, nullable=False, default=utcnow)
