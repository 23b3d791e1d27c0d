from __future__ import annotations

import enum

from sqlalchemy import (
    Column, Integer, String, Float, Enum, DateTime, ForeignKey, JSON, Index
)
from .base import Base
from ..utils.dates import utcnow


class OrderStatus(str, enum.Enum):
    PENDING    = "pending"
    AVAILABLE  = "available"
    PICKED_UP  = "picked_up"
    IN_TRANSIT = "in_transit"
    APPROACHING = "approaching"
    COMPLETED  = "completed"
    CANCELLED  = "cancelled"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID    = "paid"


FINISHED_STATUSES = (OrderStatus.COMPLETED, OrderStatus.CANCELLED)


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, autoincrement=True)

    customer_id = Column(Integer, ForeignKey("profiles.id"), nullable=False, index=True)
    # null until a driver claims the order
    driver_id   = Column(Integer, ForeignKey("drivers.id"), nullable=True, index=True)

    pickup_location  = Column(JSON, nullable=False)
    dropoff_location = Column(JSON, nullable=False)
    package_details  = Column(String(1000), nullable=True)
    notes            = Column(String(1000), nullable=True)

    price           = Column(Float, nullable=True)
    commission_rate = Column(Float, nullable=True)
    driver_payout   = Column(Float, nullable=True)
    payment_status  = Column(Enum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING)
    payment_method  = Column(String(50), nullable=True)

    estimated_distance = Column(Float, nullable=True)   # meters
    estimated_duration = Column(Float, nullable=True)   # minutes
    driver_location    = Column(JSON, nullable=True)

    status = Column(Enum(OrderStatus), nullable=False, default=OrderStatus.AVAILABLE)

    actual_pickup_time   = Column(DateTime(timezone=True), nullable=True)
    actual_delivery_time = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


Index("ix_orders_status", Order.status)
