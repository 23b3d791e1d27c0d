"""
Page routing surface.

Fixed table of client paths and the audience allowed to open them. The
guard answers "may this role open this path, and if not where should it
go", which is what the protected-route wrappers of the web client ask.
"""
from __future__ import annotations

import re
from typing import Optional

from .models.driver import DriverStatus
from .services.roles import Role, AdminRole, CustomerRole, DriverRole

PUBLIC = "public"
GUEST = "guest"          # only when signed out (login/register)
ADMIN = "admin"
CUSTOMER = "customer"
DRIVER = "driver"        # approved drivers only
DRIVER_ANY = "driver_any"

ROUTES: list[tuple[str, str]] = [
    ("/", PUBLIC),
    ("/about", PUBLIC),
    ("/contact", PUBLIC),
    ("/services", PUBLIC),
    ("/terms", PUBLIC),
    ("/privacy", PUBLIC),
    ("/pricing", PUBLIC),
    ("/driver-terms", PUBLIC),
    ("/login", GUEST),
    ("/register", GUEST),
    ("/register/customer", GUEST),
    ("/register/driver", GUEST),
    ("/forgot-password", GUEST),
    ("/reset-password", GUEST),
    ("/admin", GUEST),
    ("/admin/dashboard", ADMIN),
    ("/admin/customers", ADMIN),
    ("/admin/driver-verification", ADMIN),
    ("/admin/driver-details/:id", ADMIN),
    ("/admin/finance", ADMIN),
    ("/admin/orders", ADMIN),
    ("/admin/complaints", ADMIN),
    ("/admin/settings", ADMIN),
    ("/customer/dashboard", CUSTOMER),
    ("/customer/create-order", CUSTOMER),
    ("/customer/orders", CUSTOMER),
    ("/customer/billing", CUSTOMER),
    ("/customer/profile", CUSTOMER),
    ("/customer/support", CUSTOMER),
    ("/customer/feedback", CUSTOMER),
    ("/customer/logout", CUSTOMER),
    ("/driver/pending-approval", DRIVER_ANY),
    ("/driver/profile", DRIVER_ANY),
    ("/driver/support", DRIVER_ANY),
    ("/driver/dashboard", DRIVER),
    ("/driver/orders", DRIVER),
    ("/driver/ratings", DRIVER),
    ("/driver/earnings", DRIVER),
    ("/driver/notifications", DRIVER),
    ("/driver/settings", DRIVER),
    ("/driver/payment-success", DRIVER),
]


def _compile(pattern: str) -> re.Pattern:
    return re.compile("^" + re.sub(r":[a-zA-Z_]+", r"[^/]+", pattern) + "/?$")


_COMPILED = [(_compile(p), p, audience) for p, audience in ROUTES]


def match_route(path: str) -> Optional[tuple[str, str]]:
    path = (path or "/").split("?", 1)[0]
    for rx, pattern, audience in _COMPILED:
        if rx.match(path):
            return pattern, audience
    return None


def guard(path: str, role: Optional[Role]) -> dict:
    """
    Returns {"allowed": bool, "redirect": str | None, "route": pattern | None}.
    Unknown paths are allowed through (the client shows its 404 page).
    """
    found = match_route(path)
    if found is None:
        return {"allowed": True, "redirect": None, "route": None}
    pattern, audience = found

    def deny(target: str) -> dict:
        return {"allowed": False, "redirect": target, "route": pattern}

    ok = {"allowed": True, "redirect": None, "route": pattern}

    if audience == PUBLIC:
        return ok
    if audience == GUEST:
        return ok if role is None else deny(role.redirect)
    if role is None:
        return deny("/admin" if audience == ADMIN else "/login")

    if audience == ADMIN:
        return ok if isinstance(role, AdminRole) else deny(role.redirect)
    if audience == CUSTOMER:
        return ok if isinstance(role, CustomerRole) else deny(role.redirect)
    if audience == DRIVER_ANY:
        return ok if isinstance(role, DriverRole) else deny(role.redirect)
    if audience == DRIVER:
        if isinstance(role, DriverRole) and role.status == DriverStatus.APPROVED:
            return ok
        return deny(role.redirect)
    return deny("/login")
