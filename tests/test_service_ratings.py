import pytest

from safedrop.models.driver import Driver
from safedrop.models.order import OrderStatus
from safedrop.services import ratings as rating_service

from conftest import make_customer, make_driver, make_order


def _delivered(db, customer, driver):
    return make_order(db, customer.id, driver_id=driver.id, status=OrderStatus.COMPLETED)


def test_rating_updates_driver_average(db):
    customer = make_customer(db)
    d = make_driver(db)
    first, second = _delivered(db, customer, d), _delivered(db, customer, d)

    r = rating_service.rate_order(db, customer.id, first.id, 5, "  Careful with the parcel ")
    assert r.driver_id == d.id
    assert r.comment == "Careful with the parcel"
    rating_service.rate_order(db, customer.id, second.id, 4)

    db.expire_all()
    assert db.get(Driver, d.id).rating == 4.5


def test_order_can_be_rated_once(db):
    customer = make_customer(db)
    d = make_driver(db)
    o = _delivered(db, customer, d)
    rating_service.rate_order(db, customer.id, o.id, 3)
    with pytest.raises(ValueError, match="already rated"):
        rating_service.rate_order(db, customer.id, o.id, 5)

    db.expire_all()
    assert db.get(Driver, d.id).rating == 3.0
    assert len(rating_service.list_driver_ratings(db, d.id)) == 1


def test_only_completed_own_orders(db):
    customer = make_customer(db)
    stranger = make_customer(db)
    d = make_driver(db)
    running = make_order(db, customer.id, driver_id=d.id, status=OrderStatus.IN_TRANSIT)
    done = _delivered(db, customer, d)

    with pytest.raises(ValueError):
        rating_service.rate_order(db, customer.id, running.id, 5)
    with pytest.raises(PermissionError):
        rating_service.rate_order(db, stranger.id, done.id, 5)
    with pytest.raises(LookupError):
        rating_service.rate_order(db, customer.id, 9999, 5)


@pytest.mark.parametrize("bad", [0, 6, 4.5, "5", True, None])
def test_rating_must_be_one_to_five(db, bad):
    customer = make_customer(db)
    o = _delivered(db, customer, make_driver(db))
    with pytest.raises(ValueError):
        rating_service.rate_order(db, customer.id, o.id, bad)


def test_unrated_orders_list(db):
    customer = make_customer(db)
    d = make_driver(db)
    rated = _delivered(db, customer, d)
    open_one = _delivered(db, customer, d)
    make_order(db, customer.id, driver_id=d.id, status=OrderStatus.APPROACHING)
    make_order(db, customer.id, status=OrderStatus.COMPLETED)

    rating_service.rate_order(db, customer.id, rated.id, 4)
    assert [o.id for o in rating_service.list_unrated_orders(db, customer.id)] == [open_one.id]
