"""
Order acceptance: one conditional update decides the winner.
"""
import pytest

from safedrop.exceptions import ClaimInProgress, OrderUnavailable
from safedrop.models.driver import DriverStatus
from safedrop.models.order import Order, OrderStatus
from safedrop.services import orders as order_service

from conftest import make_customer, make_driver, make_order


def test_claim_available_order(db):
    customer = make_customer(db)
    driver = make_driver(db)
    o = make_order(db, customer.id)

    claimed = order_service.claim_order(db, driver.id, o.id)

    assert claimed.driver_id == driver.id
    assert claimed.status == OrderStatus.PICKED_UP
    assert claimed.actual_pickup_time is not None


def test_claim_of_taken_order_fails_without_mutation(db):
    customer = make_customer(db)
    first = make_driver(db)
    second = make_driver(db)
    o = make_order(db, customer.id, driver_id=first.id, status=OrderStatus.PICKED_UP)

    with pytest.raises(OrderUnavailable):
        order_service.claim_order(db, second.id, o.id)

    db.expire_all()
    fresh = db.get(Order, o.id)
    assert fresh.driver_id == first.id
    assert fresh.status == OrderStatus.PICKED_UP


def test_claim_with_driver_set_but_status_available_fails(db):
    customer = make_customer(db)
    first = make_driver(db)
    second = make_driver(db)
    o = make_order(db, customer.id, driver_id=first.id, status=OrderStatus.AVAILABLE)

    with pytest.raises(OrderUnavailable):
        order_service.claim_order(db, second.id, o.id)
    db.expire_all()
    assert db.get(Order, o.id).driver_id == first.id


def test_two_claims_exactly_one_wins(session_factory):
    setup = session_factory()
    customer = make_customer(setup)
    d1 = make_driver(setup)
    d2 = make_driver(setup)
    order_id = make_order(setup, customer.id).id
    setup.close()

    s1, s2 = session_factory(), session_factory()
    try:
        # both drivers saw the order as available
        assert s1.get(Order, order_id).status == OrderStatus.AVAILABLE
        assert s2.get(Order, order_id).status == OrderStatus.AVAILABLE

        outcomes = []
        for session, driver_id in ((s1, d1.id), (s2, d2.id)):
            try:
                order_service.claim_order(session, driver_id, order_id)
                outcomes.append(driver_id)
            except OrderUnavailable:
                outcomes.append(None)

        assert outcomes == [d1.id, None]
    finally:
        s1.close()
        s2.close()

    check = session_factory()
    assert check.get(Order, order_id).driver_id == d1.id
    check.close()


def test_claim_in_flight_is_rejected(db, monkeypatch):
    customer = make_customer(db)
    driver = make_driver(db)
    o = make_order(db, customer.id)
    monkeypatch.setattr(order_service, "_claims_in_flight", {driver.id})

    with pytest.raises(ClaimInProgress):
        order_service.claim_order(db, driver.id, o.id)
    db.expire_all()
    assert db.get(Order, o.id).driver_id is None


def test_claim_requires_signed_in_driver(db):
    customer = make_customer(db)
    o = make_order(db, customer.id)
    with pytest.raises(PermissionError):
        order_service.claim_order(db, None, o.id)


def test_pending_driver_cannot_claim(db):
    customer = make_customer(db)
    driver = make_driver(db, status=DriverStatus.PENDING)
    o = make_order(db, customer.id)
    with pytest.raises(PermissionError):
        order_service.claim_order(db, driver.id, o.id)


def test_claim_of_missing_order_is_lookup_error(db):
    driver = make_driver(db)
    with pytest.raises(LookupError):
        order_service.claim_order(db, driver.id, 9999)


def test_in_flight_marker_is_released(db):
    customer = make_customer(db)
    driver = make_driver(db)
    o = make_order(db, customer.id, status=OrderStatus.CANCELLED)
    with pytest.raises(OrderUnavailable):
        order_service.claim_order(db, driver.id, o.id)
    assert driver.id not in order_service._claims_in_flight
