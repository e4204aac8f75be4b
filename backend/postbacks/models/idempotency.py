from sqlalchemy import Column, ForeignKey, Integer, String, UniqueConstraint

from postbacks.core.db import Base
from postbacks.models.mixins import CreatedAtMixin


class PostbackFingerprint(CreatedAtMixin, Base):
    """Dedup ledger row. The unique fingerprint is the reservation itself."""

    __tablename__ = "postback_fingerprints"
    __table_args__ = (UniqueConstraint("fingerprint", name="uq_postback_fingerprints_fingerprint"),)

    id = Column(Integer, primary_key=True, index=True)
    fingerprint = Column(String(64), nullable=False)
    house_id = Column(Integer, ForeignKey("betting_houses.id", ondelete="RESTRICT"), nullable=False)
    event_type = Column(String, nullable=False)
    conversion_id = Column(Integer, ForeignKey("conversions.id", ondelete="SET NULL"), nullable=True)
