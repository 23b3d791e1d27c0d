import pytest

from sqlalchemy import select

from safedrop.exceptions import FunctionCallError
from safedrop.models.driver import DriverStatus, SubscriptionStatus
from safedrop.models.finance import DriverPayment, DriverPaymentStatus
from safedrop.services import driver as driver_service
from safedrop.services import functions

from conftest import make_driver


@pytest.fixture
def calls(monkeypatch):
    """Records outbound function calls and answers like the payment functions do."""
    seen = []

    def fake_invoke(name, body):
        seen.append((name, body))
        if name == "create-driver-subscription":
            return {"url": "https://pay.example.com/checkout/" + body["orderNumber"]}
        if name == "verify-driver-payment":
            return {"subscriptionActive": True}
        raise AssertionError(name)

    monkeypatch.setattr(driver_service, "invoke_function", fake_invoke)
    return seen


def test_start_and_verify_subscription(db, calls):
    d = make_driver(db)

    started = driver_service.start_subscription(db, d.id, "monthly")
    assert started["url"].endswith(started["order_number"])
    assert calls[0][0] == "create-driver-subscription"
    assert calls[0][1]["amount"] == 69.0

    out = driver_service.verify_subscription_payment(db, d.id, started["order_number"], "TX-1")
    assert out["subscription_active"] is True
    assert out["subscription"]["plan"] == "monthly"
    assert d.subscription_status == SubscriptionStatus.ACTIVE

    payment = db.execute(select(DriverPayment)).scalar_one()
    assert payment.status == DriverPaymentStatus.PAID
    assert payment.transaction_no == "TX-1"

    # subscription now lets the driver go online
    assert driver_service.set_availability(db, d.id, True).is_available is True


def test_verify_twice_does_not_call_again(db, calls):
    d = make_driver(db)
    started = driver_service.start_subscription(db, d.id, "yearly")
    driver_service.verify_subscription_payment(db, d.id, started["order_number"])
    driver_service.verify_subscription_payment(db, d.id, started["order_number"])
    assert [name for name, _ in calls].count("verify-driver-payment") == 1


def test_unknown_plan(db, calls):
    d = make_driver(db)
    with pytest.raises(ValueError):
        driver_service.start_subscription(db, d.id, "weekly")
    assert calls == []


def test_pending_driver_cannot_subscribe(db, calls):
    d = make_driver(db, status=DriverStatus.PENDING)
    with pytest.raises(PermissionError):
        driver_service.start_subscription(db, d.id, "monthly")


def test_unknown_payment(db, calls):
    d = make_driver(db)
    with pytest.raises(LookupError):
        driver_service.verify_subscription_payment(db, d.id, "SUB-nope")


def test_invoke_without_endpoint_raises(monkeypatch):
    monkeypatch.setattr(functions.settings, "FUNCTIONS_URL", None)
    with pytest.raises(FunctionCallError):
        functions.invoke_function("verify-driver-payment", {})
