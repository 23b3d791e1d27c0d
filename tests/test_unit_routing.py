from safedrop.models.driver import DriverStatus
from safedrop.routing import guard, match_route
from safedrop.services.roles import AdminRole, CustomerRole, DriverRole


def test_match_route_with_parameter():
    assert match_route("/admin/driver-details/42") == ("/admin/driver-details/:id", "admin")
    assert match_route("/nowhere") is None


def test_public_pages_are_open():
    assert guard("/pricing", None)["allowed"] is True
    assert guard("/pricing", CustomerRole())["allowed"] is True


def test_signed_out_user_is_sent_to_login():
    r = guard("/customer/orders", None)
    assert r == {"allowed": False, "redirect": "/login", "route": "/customer/orders"}
    assert guard("/admin/finance", None)["redirect"] == "/admin"


def test_signed_in_user_skips_login_page():
    r = guard("/login", CustomerRole())
    assert r["allowed"] is False
    assert r["redirect"] == "/customer/dashboard"


def test_wrong_role_goes_to_own_dashboard():
    r = guard("/admin/orders", CustomerRole())
    assert r["redirect"] == "/customer/dashboard"
    assert guard("/customer/billing", AdminRole())["redirect"] == "/admin/dashboard"


def test_pending_driver_only_reaches_waiting_pages():
    pending = DriverRole(status=DriverStatus.PENDING)
    assert guard("/driver/pending-approval", pending)["allowed"] is True
    assert guard("/driver/profile", pending)["allowed"] is True
    r = guard("/driver/dashboard", pending)
    assert r["allowed"] is False
    assert r["redirect"] == "/driver/pending-approval"


def test_approved_driver_reaches_dashboard():
    assert guard("/driver/orders", DriverRole(status=DriverStatus.APPROVED))["allowed"] is True


def test_unknown_path_is_allowed():
    assert guard("/does-not-exist", None) == {"allowed": True, "redirect": None, "route": None}
