from sqlalchemy import Column, ForeignKey, Index, Integer, String, Text

from postbacks.core.db import Base
from postbacks.models.mixins import CreatedAtMixin


class PostbackLog(CreatedAtMixin, Base):
    """Rejected or failed postbacks from authenticated houses, kept for disputes."""

    __tablename__ = "postback_logs"
    __table_args__ = (
        Index("ix_postback_logs_house_created", "house_id", "created_at"),
        Index("ix_postback_logs_reason", "reason"),
    )

    id = Column(Integer, primary_key=True, index=True)
    house_id = Column(Integer, ForeignKey("betting_houses.id", ondelete="RESTRICT"), nullable=False)
    event_label = Column(String, nullable=False)
    subid = Column(String, nullable=True)
    customer_id = Column(String, nullable=True)
    amount = Column(String, nullable=True)
    reason = Column(String, nullable=False)
    message = Column(Text, nullable=True)
    raw_query = Column(Text, nullable=True)
    request_id = Column(String, nullable=True)
