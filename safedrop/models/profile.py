from __future__ import annotations

import enum

from sqlalchemy import Column, Integer, String, Enum, DateTime, ForeignKey, UniqueConstraint
from .base import Base
from ..utils.dates import utcnow


class UserType(str, enum.Enum):
    CUSTOMER = "customer"
    DRIVER   = "driver"
    ADMIN    = "admin"


class ProfileStatus(str, enum.Enum):
    ACTIVE    = "active"
    SUSPENDED = "suspended"
    BANNED    = "banned"


class Profile(Base):
    __tablename__ = "profiles"

    id = Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), primary_key=True)

    first_name = Column(String(120), nullable=False, default="")
    last_name  = Column(String(120), nullable=False, default="")
    phone      = Column(String(50), nullable=False, default="")
    email      = Column(String(255), nullable=True)
    address    = Column(String(500), nullable=True)
    profile_image = Column(String(500), nullable=True)

    user_type = Column(Enum(UserType), nullable=False, index=True)
    status    = Column(Enum(ProfileStatus), nullable=False, default=ProfileStatus.ACTIVE)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    @property
    def display_name(self) -> str:
        name = f"{self.first_name or ''} {self.last_name or ''}".strip()
        return name or (self.email or f"ID {self.id}")


class UserRole(Base):
    __tablename__ = "user_roles"
    __table_args__ = (
        UniqueConstraint("user_id", "role", name="uq_user_roles_user_role"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(String(32), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
