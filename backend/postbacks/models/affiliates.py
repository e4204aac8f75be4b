from sqlalchemy import Boolean, Column, ForeignKey, Index, Integer, String, UniqueConstraint, text
from sqlalchemy.orm import relationship

from postbacks.core.db import Base
from postbacks.models.mixins import TimestampMixin


class Affiliate(TimestampMixin, Base):
    __tablename__ = "affiliates"
    __table_args__ = (UniqueConstraint("username", name="uq_affiliates_username"),)

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, nullable=False)
    name = Column(String, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    links = relationship("AffiliateLink", back_populates="affiliate")


class AffiliateLink(TimestampMixin, Base):
    """Tracking link of one affiliate at one house.

    ``generated_identifier`` is the subid the house echoes back in postbacks.
    An affiliate holds at most one active link per house.
    """

    __tablename__ = "affiliate_links"
    __table_args__ = (
        Index(
            "uq_affiliate_links_active_affiliate_house",
            "affiliate_id",
            "house_id",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
        Index("ix_affiliate_links_house_identifier", "house_id", "generated_identifier"),
    )

    id = Column(Integer, primary_key=True, index=True)
    affiliate_id = Column(Integer, ForeignKey("affiliates.id", ondelete="RESTRICT"), nullable=False)
    house_id = Column(Integer, ForeignKey("betting_houses.id", ondelete="RESTRICT"), nullable=False)
    generated_identifier = Column(String, nullable=False)
    generated_url = Column(String, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    affiliate = relationship("Affiliate", back_populates="links")
