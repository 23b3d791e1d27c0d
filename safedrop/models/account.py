from __future__ import annotations

from sqlalchemy import Column, Integer, String, DateTime, JSON
from .base import Base
from ..utils.dates import utcnow


class Account(Base):
    """Login identity; the profile row is derived from user_metadata."""
    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)

    # user_type, first_name, last_name, phone captured at signup
    user_metadata = Column(JSON, nullable=False, default=dict)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    last_sign_in_at = Column(DateTime(timezone=True), nullable=True)
