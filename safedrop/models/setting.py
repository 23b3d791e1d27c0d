from sqlalchemy import Column, String, DateTime, JSON
from .base import Base
from ..utils.dates import utcnow


class SystemSetting(Base):
    __tablename__ = "system_settings"

    key = Column(String(100), primary_key=True)
    value = Column(JSON, nullable=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
