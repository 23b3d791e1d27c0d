import datetime as dt

import pytest

from safedrop.exceptions import SubscriptionRequired
from safedrop.models.driver import Driver, DriverStatus, SubscriptionStatus
from safedrop.services import driver as driver_service
from safedrop.utils.dates import utcnow

from conftest import make_driver


def test_go_online_without_subscription_hits_paywall(db):
    d = make_driver(db)
    with pytest.raises(SubscriptionRequired):
        driver_service.set_availability(db, d.id, True)
    db.expire_all()
    assert db.get(Driver, d.id).is_available is False


def test_go_online_with_expired_subscription_hits_paywall(db):
    d = make_driver(db, subscribed_days=-1)
    with pytest.raises(SubscriptionRequired):
        driver_service.set_availability(db, d.id, True)
    db.expire_all()
    fresh = db.get(Driver, d.id)
    assert fresh.is_available is False
    assert fresh.subscription_status == SubscriptionStatus.EXPIRED


def test_unapproved_driver_cannot_go_online(db):
    d = make_driver(db, status=DriverStatus.PENDING, subscribed_days=30)
    with pytest.raises(PermissionError):
        driver_service.set_availability(db, d.id, True)
    db.expire_all()
    assert db.get(Driver, d.id).is_available is False


def test_toggle_off_then_on(db):
    d = make_driver(db, subscribed_days=30, is_available=True)

    off = driver_service.set_availability(db, d.id, False)
    assert off.is_available is False

    on = driver_service.set_availability(db, d.id, True)
    assert on.is_available is True


def test_going_offline_is_always_allowed(db):
    d = make_driver(db, status=DriverStatus.FROZEN, is_available=True)
    assert driver_service.set_availability(db, d.id, False).is_available is False


def test_subscription_checked_against_given_time(db):
    d = make_driver(db, subscribed_days=10)
    later = utcnow() + dt.timedelta(days=11)
    with pytest.raises(SubscriptionRequired):
        driver_service.set_availability(db, d.id, True, now=later)


def test_refresh_turns_off_lapsed_driver(db):
    d = make_driver(db, subscribed_days=-2, is_available=True)
    driver_service.refresh_subscription(db, d)
    assert d.subscription_status == SubscriptionStatus.EXPIRED
    assert d.is_available is False


@pytest.mark.parametrize("before, after", [(True, False), (False, True)])
def test_failed_write_leaves_availability_unchanged(session_factory, monkeypatch, before, after):
    db = session_factory()
    d = make_driver(db, subscribed_days=30, is_available=before)

    def broken_commit():
        raise RuntimeError("database went away")

    monkeypatch.setattr(db, "commit", broken_commit)
    with pytest.raises(RuntimeError):
        driver_service.set_availability(db, d.id, after)

    assert db.get(Driver, d.id).is_available is before
    db.close()

    check = session_factory()
    assert check.get(Driver, d.id).is_available is before
    check.close()
