from __future__ import annotations

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint, CheckConstraint
from .base import Base
from ..utils.dates import utcnow


class DriverRating(Base):
    __tablename__ = "driver_ratings"
    __table_args__ = (
        # one rating per order per customer
        UniqueConstraint("order_id", "customer_id", name="uq_driver_ratings_order_customer"),
        CheckConstraint("rating BETWEEN 1 AND 5", name="ck_driver_ratings_range"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    driver_id   = Column(Integer, ForeignKey("drivers.id", ondelete="CASCADE"), nullable=False, index=True)
    order_id    = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    customer_id = Column(Integer, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)

    rating  = Column(Integer, nullable=False)
    comment = Column(String(1000), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
