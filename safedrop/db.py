from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from .config import settings
from .models.base import Base

# ---------- Engine / Session ----------
DATABASE_URL = settings.DATABASE_URL

# SQLite and PostgreSQL (or anything else SQLAlchemy supports)
if DATABASE_URL and DATABASE_URL.startswith("sqlite"):
    # in-memory sqlite must share one connection between threads
    in_memory = DATABASE_URL in ("sqlite://", "sqlite:///:memory:")
    engine = create_engine(
        DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool if in_memory else None,
        future=True,
    )
else:
    engine = create_engine(
        DATABASE_URL,
        pool_pre_ping=True,
        future=True,
    )

SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    expire_on_commit=False,
    future=True,
)


def init_db(bind=None) -> None:
    """Register every model on Base.metadata and create missing tables."""
    from . import models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)


# ---------- Dependency ----------
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
