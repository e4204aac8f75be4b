from sqlalchemy import Boolean, Column, Enum, Index, Integer, Numeric, String, UniqueConstraint

from postbacks.core.db import Base
from postbacks.models.enums import CommissionModelEnum, CpaTriggerEnum, enum_values
from postbacks.models.mixins import TimestampMixin


class BettingHouse(TimestampMixin, Base):
    """A partner platform that sends postbacks.

    ``commission_value`` is a percentage for RevShare and a fixed amount for
    CPA. Hybrid houses use ``cpa_value`` and ``revshare_percent`` instead.
    Houses are deactivated, never deleted, once conversions reference them.
    """

    __tablename__ = "betting_houses"
    __table_args__ = (
        UniqueConstraint("identifier", name="uq_betting_houses_identifier"),
        UniqueConstraint("security_token", name="uq_betting_houses_security_token"),
        Index("ix_betting_houses_active", "is_active"),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    identifier = Column(String, nullable=False)
    base_url = Column(String, nullable=True)
    security_token = Column(String, nullable=False)
    commission_model = Column(
        Enum(
            CommissionModelEnum,
            name="commission_model_enum",
            native_enum=False,
            validate_strings=True,
            values_callable=enum_values,
        ),
        nullable=False,
        default=CommissionModelEnum.REVSHARE,
    )
    commission_value = Column(Numeric(12, 2), nullable=False, default=0)
    cpa_value = Column(Numeric(12, 2), nullable=True)
    revshare_percent = Column(Numeric(5, 2), nullable=True)
    cpa_trigger = Column(
        Enum(
            CpaTriggerEnum,
            name="cpa_trigger_enum",
            native_enum=False,
            validate_strings=True,
            values_callable=enum_values,
        ),
        nullable=False,
        default=CpaTriggerEnum.REGISTRATION,
    )
    min_deposit = Column(Numeric(12, 2), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
