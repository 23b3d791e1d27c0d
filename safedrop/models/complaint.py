from __future__ import annotations

import enum

from sqlalchemy import Column, Integer, String, Enum, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from .base import Base
from ..utils.dates import utcnow


class ComplaintStatus(str, enum.Enum):
    PENDING    = "pending"
    PROCESSING = "processing"
    RESOLVED   = "resolved"


class Complaint(Base):
    __tablename__ = "complaints"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id  = Column(Integer, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="SET NULL"), nullable=True)

    subject     = Column(String(255), nullable=False)
    description = Column(String(4000), nullable=False)
    status      = Column(Enum(ComplaintStatus), nullable=False, default=ComplaintStatus.PENDING)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    responses = relationship("ComplaintResponse", back_populates="complaint", cascade="all, delete-orphan")


class ComplaintResponse(Base):
    __tablename__ = "complaint_responses"

    id = Column(Integer, primary_key=True, autoincrement=True)
    complaint_id = Column(Integer, ForeignKey("complaints.id", ondelete="CASCADE"), nullable=False, index=True)
    admin_id = Column(Integer, nullable=True)
    response = Column(String(4000), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    complaint = relationship("Complaint", back_populates="responses")
