from __future__ import annotations

import enum

from sqlalchemy import Column, Integer, String, Float, Enum, DateTime, ForeignKey
from .base import Base
from ..utils.dates import utcnow


class TransactionType(str, enum.Enum):
    DRIVER_PAYOUT = "driver_payout"
    PLATFORM_FEE  = "platform_fee"


class FinancialTransaction(Base):
    __tablename__ = "financial_transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id  = Column(Integer, ForeignKey("orders.id", ondelete="SET NULL"), nullable=True, index=True)
    # empty for platform fees
    driver_id = Column(Integer, ForeignKey("drivers.id", ondelete="SET NULL"), nullable=True, index=True)

    amount = Column(Float, nullable=False)
    transaction_type = Column(Enum(TransactionType), nullable=False)
    status = Column(String(32), nullable=False, default="completed")

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class DriverPaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID    = "paid"
    FAILED  = "failed"


class DriverPayment(Base):
    """Subscription payment attempts made by drivers."""
    __tablename__ = "driver_payments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    driver_id = Column(Integer, ForeignKey("drivers.id", ondelete="CASCADE"), nullable=False, index=True)
    order_number = Column(String(100), unique=True, nullable=False)
    transaction_no = Column(String(100), nullable=True)

    plan   = Column(String(50), nullable=False)
    amount = Column(Float, nullable=False)
    status = Column(Enum(DriverPaymentStatus), nullable=False, default=DriverPaymentStatus.PENDING)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
