from __future__ import annotations

import datetime as dt
import logging
import uuid
from typing import Any, Dict, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..config import settings
from ..exceptions import SubscriptionRequired, FunctionCallError
from ..models.driver import Driver, DriverStatus, SubscriptionStatus
from ..models.finance import DriverPayment, DriverPaymentStatus
from ..models.order import Order, FINISHED_STATUSES
from ..models.profile import Profile
from ..utils.dates import utcnow, as_utc
from .functions import invoke_function
from .system_settings import get_setting

logger = logging.getLogger(__name__)

REAPPLY_PATH = "/driver/profile"
DOCUMENT_FIELDS = ("national_id", "license_number", "license_image", "vehicle_info")


def get_driver(db: Session, driver_id: int) -> Driver:
    d = db.get(Driver, driver_id)
    if not d:
        raise LookupError("Driver not found")
    return d


# ---------- status gate ----------

def driver_status_view(driver: Driver, max_rejections: Optional[int] = None) -> Dict[str, Any]:
    """
    Exactly one of four views per status:
      pending  -> wait screen
      approved -> dashboard
      rejected -> reason + reapply while the counter is below the limit, else locked
      frozen   -> locked, contact support
    """
    limit = settings.MAX_REJECTIONS if max_rejections is None else max_rejections
    status = DriverStatus(driver.status)
    count = driver.rejection_count or 0
    base = {
        "status": status.value,
        "rejection_count": count,
        "rejection_reason": None,
        "can_reapply": False,
        "support_email": None,
    }

    if status == DriverStatus.PENDING:
        return {**base, "view": "pending", "redirect": "/driver/pending-approval"}
    if status == DriverStatus.APPROVED:
        return {**base, "view": "approved", "redirect": "/driver/dashboard"}
    if status == DriverStatus.REJECTED and count < limit:
        return {
            **base,
            "view": "rejected",
            "redirect": None,
            "rejection_reason": driver.rejection_reason,
            "can_reapply": True,
        }
    if status in (DriverStatus.REJECTED, DriverStatus.FROZEN):
        return {
            **base,
            "view": "locked",
            "redirect": None,
            "rejection_reason": driver.rejection_reason,
            "support_email": settings.SUPPORT_EMAIL,
        }
    raise ValueError(f"Unknown driver status: {driver.status!r}")


def reapply(db: Session, driver_id: int) -> Dict[str, Any]:
    """
    Re-checks the stored row instead of any client counter, bumps
    rejection_count, reopens the application and sends the driver to the
    profile form.
    """
    d = get_driver(db, driver_id)
    view = driver_status_view(d)
    if not view["can_reapply"]:
        raise PermissionError("Reapplication is not available for this account")

    d.rejection_count = (d.rejection_count or 0) + 1
    d.status = DriverStatus.PENDING
    d.rejection_reason = None
    d.is_available = False
    db.commit()
    db.refresh(d)
    return {"redirect": REAPPLY_PATH, "rejection_count": d.rejection_count}


def submit_profile(db: Session, driver_id: int, payload: Dict[str, Any]) -> Driver:
    """
    Profile/document update. Any document change sends the driver back to moderation.
    """
    d = get_driver(db, driver_id)
    if d.status == DriverStatus.FROZEN:
        raise PermissionError("Account is frozen, contact support")
    if d.status == DriverStatus.REJECTED:
        raise PermissionError("Application was rejected, reapply first")

    p = db.get(Profile, driver_id)
    if p is not None:
        for field in ("first_name", "last_name", "phone"):
            if field in payload:
                value = (payload.get(field) or "").strip()
                if not value:
                    raise ValueError(f"{field} must not be empty")
                setattr(p, field, value)
        for field in ("address", "profile_image"):
            if field in payload:
                setattr(p, field, (payload.get(field) or "").strip() or None)

    docs_changed = False
    for field in DOCUMENT_FIELDS:
        if field not in payload:
            continue
        value = payload.get(field)
        if field == "vehicle_info":
            if not isinstance(value, dict):
                raise ValueError("vehicle_info must be an object")
        else:
            value = (value or "").strip() or None
            if field != "license_image" and not value:
                raise ValueError(f"{field} must not be empty")
        if getattr(d, field) != value:
            setattr(d, field, value)
            docs_changed = True

    if docs_changed:
        d.status = DriverStatus.PENDING
        d.rejection_reason = None
        d.is_available = False

    db.commit()
    db.refresh(d)
    return d


# ---------- subscription / availability ----------

def has_active_subscription(driver: Driver, now: Optional[dt.datetime] = None) -> bool:
    now = now or utcnow()
    expires = as_utc(driver.subscription_expires_at)
    return (
        driver.subscription_status == SubscriptionStatus.ACTIVE
        and expires is not None
        and expires > now
    )


def refresh_subscription(db: Session, driver: Driver, now: Optional[dt.datetime] = None) -> Driver:
    """Flip a lapsed active subscription to expired (checked at read time)."""
    now = now or utcnow()
    if driver.subscription_status == SubscriptionStatus.ACTIVE and not has_active_subscription(driver, now):
        driver.subscription_status = SubscriptionStatus.EXPIRED
        if driver.is_available:
            driver.is_available = False
        db.commit()
        db.refresh(driver)
    return driver


def set_availability(db: Session, driver_id: int, value: bool, now: Optional[dt.datetime] = None) -> Driver:
    """
    Turning off is always allowed. Turning on re-reads the row and requires
    approval plus a live subscription; otherwise nothing is written.
    """
    now = now or utcnow()
    d = get_driver(db, driver_id)

    if value:
        if d.status != DriverStatus.APPROVED:
            raise PermissionError("Only approved drivers can go online")
        refresh_subscription(db, d, now)
        if not has_active_subscription(d, now):
            raise SubscriptionRequired()

    try:
        d.is_available = bool(value)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(d)
    return d


def _plan(db: Session, plan: str) -> Dict[str, Any]:
    plans = get_setting(db, "subscription_plans") or {}
    if plan not in plans:
        raise ValueError(f"Unknown plan: {plan}")
    return plans[plan]


def start_subscription(db: Session, driver_id: int, plan: str) -> Dict[str, Any]:
    """
    Ask the external payment function for a checkout URL and record a pending payment.
    """
    d = get_driver(db, driver_id)
    if d.status != DriverStatus.APPROVED:
        raise PermissionError("Only approved drivers can subscribe")
    info = _plan(db, plan)

    order_number = f"SUB-{driver_id}-{uuid.uuid4().hex[:12]}"
    data = invoke_function("create-driver-subscription", {
        "driverId": driver_id,
        "plan": plan,
        "amount": float(info["amount"]),
        "orderNumber": order_number,
    })
    url = data.get("url") or data.get("paymentUrl")
    if not url:
        raise FunctionCallError("Payment provider did not return a redirect URL")

    db.add(DriverPayment(
        driver_id=d.id,
        order_number=order_number,
        plan=plan,
        amount=float(info["amount"]),
        status=DriverPaymentStatus.PENDING,
    ))
    db.commit()
    return {"url": url, "order_number": order_number}


def verify_subscription_payment(
    db: Session,
    driver_id: int,
    order_number: str,
    transaction_no: Optional[str] = None,
    now: Optional[dt.datetime] = None,
) -> Dict[str, Any]:
    now = now or utcnow()
    if not order_number:
        raise ValueError("orderNumber is required")
    payment = db.execute(
        select(DriverPayment).where(
            DriverPayment.order_number == order_number,
            DriverPayment.driver_id == driver_id,
        )
    ).scalar_one_or_none()
    if payment is None:
        raise LookupError("Payment not found")

    d = get_driver(db, driver_id)
    if payment.status == DriverPaymentStatus.PAID:
        return {"subscription_active": has_active_subscription(d, now), "subscription": _subscription_public(d)}

    data = invoke_function("verify-driver-payment", {
        "orderNumber": order_number,
        "transactionNo": transaction_no,
        "driverId": driver_id,
    })
    if not data.get("subscriptionActive"):
        return {"subscription_active": False, "subscription": _subscription_public(d)}

    days = int(_plan(db, payment.plan)["days"])
    # extend from the current expiry when still running
    start = as_utc(d.subscription_expires_at) if has_active_subscription(d, now) else now
    d.subscription_status = SubscriptionStatus.ACTIVE
    d.subscription_plan = payment.plan
    d.subscription_expires_at = start + dt.timedelta(days=days)
    payment.status = DriverPaymentStatus.PAID
    payment.transaction_no = transaction_no
    db.commit()
    db.refresh(d)
    logger.info("subscription %s activated for driver %s until %s", payment.plan, d.id, d.subscription_expires_at)
    return {"subscription_active": True, "subscription": _subscription_public(d)}


def _subscription_public(d: Driver) -> Dict[str, Any]:
    expires = as_utc(d.subscription_expires_at)
    return {
        "status": SubscriptionStatus(d.subscription_status).value,
        "plan": d.subscription_plan,
        "expires_at": expires.isoformat() if expires else None,
    }


# ---------- location ----------

def update_location(db: Session, driver_id: int, lat: float, lng: float) -> Driver:
    """Store the driver position and mirror it onto the driver's running orders."""
    if not (-90 <= lat <= 90 and -180 <= lng <= 180):
        raise ValueError("Invalid coordinates")
    d = get_driver(db, driver_id)
    point = {"lat": lat, "lng": lng, "updated_at": utcnow().isoformat()}
    d.location = point
    db.execute(
        update(Order)
        .where(Order.driver_id == driver_id, Order.status.not_in(FINISHED_STATUSES))
        .values(driver_location=point)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    db.refresh(d)
    return d


def driver_to_public(d: Driver, now: Optional[dt.datetime] = None) -> Dict[str, Any]:
    return {
        "id": d.id,
        "status": DriverStatus(d.status).value,
        "rejection_reason": d.rejection_reason,
        "rejection_count": d.rejection_count or 0,
        "national_id": d.national_id,
        "license_number": d.license_number,
        "license_image": d.license_image,
        "vehicle_info": d.vehicle_info or {},
        "rating": d.rating,
        "is_available": bool(d.is_available),
        "location": d.location,
        "subscription": _subscription_public(d),
        "subscription_active": has_active_subscription(d, now),
    }
