from enum import Enum

# Stored as strings (native enums disabled for easier evolution).


class CommissionModelEnum(str, Enum):
    REVSHARE = "revshare"
    CPA = "cpa"
    HYBRID = "hybrid"


class CpaTriggerEnum(str, Enum):
    # Which event earns the one-time CPA amount for a customer.
    REGISTRATION = "registration"
    DEPOSIT = "deposit"


class EventTypeEnum(str, Enum):
    CLICK = "click"
    REGISTRATION = "registration"
    DEPOSIT = "deposit"
    PROFIT = "profit"


class ConversionStatusEnum(str, Enum):
    # Owned by the payments workflow after creation.
    PENDING = "pending"
    APPROVED = "approved"
    PAID = "paid"
    REJECTED = "rejected"


class AggregateScopeEnum(str, Enum):
    AFFILIATE = "affiliate"
    HOUSE = "house"


def enum_values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]
