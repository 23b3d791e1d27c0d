import os

# configure before the package reads its settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ADMIN_PASSWORD"] = "admin-secret"
os.environ.pop("FUNCTIONS_URL", None)

import datetime as dt

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from safedrop.db import get_db
from safedrop.main import app
from safedrop.models.base import Base
from safedrop.models.account import Account
from safedrop.models.driver import Driver, DriverStatus, SubscriptionStatus
from safedrop.models.order import Order, OrderStatus
from safedrop.models.profile import Profile, UserType
from safedrop.utils.dates import utcnow
from safedrop.utils.security import hash_password

PASSWORD = "secret123"
# one bcrypt hash per run; hashing per user makes the suite slow
_PASSWORD_HASH = hash_password(PASSWORD)


@pytest.fixture
def session_factory(tmp_path):
    """
    File-backed SQLite per test, so separate sessions see each other's
    commits the way separate requests do.
    """
    engine = create_engine(
        f"sqlite:///{tmp_path / 'safedrop.db'}",
        connect_args={"check_same_thread": False},
        future=True,
    )
    from safedrop import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False, future=True)
    yield factory
    engine.dispose()


@pytest.fixture
def db(session_factory):
    s = session_factory()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def app_client(session_factory):
    """Returns a factory so one test can drive several signed-in users."""

    def override_get_db():
        s = session_factory()
        try:
            yield s
        finally:
            s.close()

    app.dependency_overrides[get_db] = override_get_db
    clients = []

    def make():
        c = TestClient(app)
        clients.append(c)
        return c

    yield make
    for c in clients:
        c.close()
    app.dependency_overrides.clear()


@pytest.fixture
def client(app_client):
    return app_client()


# ---------- factories ----------

_seq = {"n": 0}


def _next_email(prefix: str) -> str:
    _seq["n"] += 1
    return f"{prefix}{_seq['n']}@example.com"


def make_account(db, user_type: UserType, email: str | None = None) -> Account:
    email = email or _next_email(user_type.value)
    account = Account(
        email=email,
        password_hash=_PASSWORD_HASH,
        user_metadata={"user_type": user_type.value, "first_name": "Test", "last_name": user_type.value.title(),
                       "phone": "+966500000000"},
    )
    db.add(account)
    db.flush()
    db.add(Profile(
        id=account.id,
        first_name="Test",
        last_name=user_type.value.title(),
        phone="+966500000000",
        email=email,
        user_type=user_type,
    ))
    db.commit()
    return account


def make_customer(db) -> Account:
    return make_account(db, UserType.CUSTOMER)


def make_driver(
    db,
    status: DriverStatus = DriverStatus.APPROVED,
    rejection_count: int = 0,
    rejection_reason: str | None = None,
    subscribed_days: int | None = None,
    is_available: bool = False,
) -> Driver:
    account = make_account(db, UserType.DRIVER)
    d = Driver(
        id=account.id,
        status=status,
        rejection_count=rejection_count,
        rejection_reason=rejection_reason,
        national_id="1234567890",
        license_number="LIC-1",
        vehicle_info={"type": "car", "plate": "ABC 123"},
        is_available=is_available,
    )
    if subscribed_days is not None:
        d.subscription_status = SubscriptionStatus.ACTIVE
        d.subscription_plan = "monthly"
        d.subscription_expires_at = utcnow() + dt.timedelta(days=subscribed_days)
    db.add(d)
    db.commit()
    return d


def make_order(db, customer_id: int, price: float = 50.0, **fields) -> Order:
    o = Order(
        customer_id=customer_id,
        pickup_location={"address": "King Fahd Rd, Riyadh", "details": ""},
        dropoff_location={"address": "Olaya St, Riyadh", "details": ""},
        price=price,
        commission_rate=fields.pop("commission_rate", 0.2),
        status=fields.pop("status", OrderStatus.AVAILABLE),
        **fields,
    )
    db.add(o)
    db.commit()
    return o


def login(client, email: str, password: str = PASSWORD):
    return client.post("/api/auth/login", json={"email": email, "password": password})
