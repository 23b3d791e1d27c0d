import pytest

from safedrop.models.driver import Driver, DriverStatus
from safedrop.models.order import OrderStatus

from conftest import login, make_customer, make_driver, make_order


@pytest.fixture
def admin(app_client):
    c = app_client()
    assert c.post("/api/auth/admin-login", json={"password": "admin-secret"}).status_code == 200
    return c


def test_non_admin_is_forbidden(client, db):
    customer = make_customer(db)
    login(client, customer.email)
    assert client.get("/api/admin/drivers").status_code == 403


def test_pending_drivers_list_and_approve(admin, db):
    pending = make_driver(db, status=DriverStatus.PENDING)
    make_driver(db, status=DriverStatus.APPROVED)

    items = admin.get("/api/admin/drivers", params={"status": "pending"}).json()["items"]
    assert [x["id"] for x in items] == [pending.id]

    r = admin.post(f"/api/admin/drivers/{pending.id}/approve")
    assert r.json()["status"] == "approved"
    assert admin.get(f"/api/admin/drivers/{pending.id}").json()["driver"]["status"] == "approved"
    assert admin.post("/api/admin/drivers/99999/approve").status_code == 404


def test_reject_and_freeze(admin, db):
    d = make_driver(db, status=DriverStatus.PENDING, rejection_count=2)
    assert admin.post(f"/api/admin/drivers/{d.id}/reject", json={"reason": ""}).status_code == 400

    r = admin.post(f"/api/admin/drivers/{d.id}/reject", json={"reason": "Fake documents"})
    assert r.status_code == 200
    assert r.json()["status"] == "frozen"

    assert admin.post(f"/api/admin/drivers/{d.id}/unfreeze").json()["status"] == "pending"


def test_explicit_freeze(admin, db):
    d = make_driver(db, subscribed_days=30, is_available=True)
    assert admin.post(f"/api/admin/drivers/{d.id}/freeze", json={"reason": "Complaints"}).json()["status"] == "frozen"
    db.expire_all()
    assert db.get(Driver, d.id).is_available is False


def test_delete_rejected(admin, db):
    make_driver(db, status=DriverStatus.REJECTED)
    make_driver(db, status=DriverStatus.REJECTED)
    assert admin.post("/api/admin/drivers/delete-rejected").json()["deleted"] == 2


def test_user_status_and_customers(admin, db):
    customer = make_customer(db)
    r = admin.post(f"/api/admin/users/{customer.id}/status", json={"status": "banned"})
    assert r.json()["user"]["status"] == "banned"
    assert admin.post(f"/api/admin/users/{customer.id}/status", json={"status": "gone"}).status_code == 400

    found = admin.get("/api/admin/customers", params={"search": customer.email}).json()["items"]
    assert [x["id"] for x in found] == [customer.id]


def test_banned_user_loses_access(app_client, admin, db):
    customer = make_customer(db)
    c = app_client()
    login(c, customer.email)
    admin.post(f"/api/admin/users/{customer.id}/status", json={"status": "banned"})
    assert c.get("/api/orders/mine").status_code == 403


def test_orders_stats_and_finance(admin, db):
    customer = make_customer(db)
    d = make_driver(db)
    make_order(db, customer.id)
    make_order(db, customer.id, driver_id=d.id, status=OrderStatus.IN_TRANSIT)

    assert len(admin.get("/api/admin/orders", params={"status": "available"}).json()["items"]) == 1
    stats = admin.get("/api/admin/stats").json()
    assert stats["orders"] == 2
    assert stats["customers"] == 1
    assert stats["orders_by_status"]["in_transit"] == 1

    finance = admin.get("/api/admin/finance", params={"period": "week"}).json()
    assert finance["total_revenue"] == 0.0
    assert admin.get("/api/admin/finance", params={"period": "century"}).status_code == 400


def test_settings_roundtrip(admin):
    assert admin.get("/api/admin/settings").json()["settings"]["commission_rate"] == 0.2
    r = admin.put("/api/admin/settings", json={"commission_rate": 25, "base_fare": 12})
    assert r.json()["settings"]["commission_rate"] == 0.25
    assert admin.put("/api/admin/settings", json={"commission_rate": 150}).status_code == 400


def test_complaint_lifecycle(app_client, admin, db):
    customer = make_customer(db)
    o = make_order(db, customer.id)
    c = app_client()
    login(c, customer.email)

    created = c.post("/api/complaints", json={
        "subject": "Late delivery", "description": "Package arrived two hours late", "order_id": o.id,
    })
    assert created.status_code == 201
    cid = created.json()["complaint"]["id"]

    assert [x["id"] for x in admin.get("/api/admin/complaints", params={"status": "pending"}).json()["items"]] == [cid]
    admin.post(f"/api/admin/complaints/{cid}/process")
    resolved = admin.post(f"/api/admin/complaints/{cid}/resolve", json={"response": "Refund issued"}).json()
    assert resolved["complaint"]["status"] == "resolved"
    assert resolved["complaint"]["responses"][0]["response"] == "Refund issued"
    assert admin.post(f"/api/admin/complaints/{cid}/resolve").status_code == 400

    mine = c.get("/api/complaints/mine").json()["items"]
    assert mine[0]["status"] == "resolved"
