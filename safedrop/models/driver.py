from __future__ import annotations

import enum

from sqlalchemy import (
    Column, Integer, Boolean, String, Float, DateTime, Enum, ForeignKey, JSON, Index
)
from .base import Base
from ..utils.dates import utcnow


class DriverStatus(str, enum.Enum):
    PENDING  = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    FROZEN   = "frozen"


class SubscriptionStatus(str, enum.Enum):
    INACTIVE  = "inactive"
    ACTIVE    = "active"
    EXPIRED   = "expired"
    CANCELLED = "cancelled"


class Driver(Base):
    __tablename__ = "drivers"

    id = Column(Integer, ForeignKey("profiles.id", ondelete="CASCADE"), primary_key=True)

    # moderation
    status           = Column(Enum(DriverStatus), nullable=False, default=DriverStatus.PENDING)
    rejection_reason = Column(String(500), nullable=True)
    rejection_count  = Column(Integer, nullable=False, default=0)

    # documents
    national_id    = Column(String(50), nullable=False, default="")
    license_number = Column(String(50), nullable=False, default="")
    license_image  = Column(String(500), nullable=True)
    vehicle_info   = Column(JSON, nullable=False, default=dict)

    rating       = Column(Float, nullable=True)
    is_available = Column(Boolean, nullable=False, default=False)
    location     = Column(JSON, nullable=True)

    # paid subscription gating availability
    subscription_status     = Column(Enum(SubscriptionStatus), nullable=False, default=SubscriptionStatus.INACTIVE)
    subscription_plan       = Column(String(50), nullable=True)
    subscription_expires_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


Index("ix_drivers_status", Driver.status)
