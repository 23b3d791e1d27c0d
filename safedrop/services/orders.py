from __future__ import annotations

import logging
import math
import threading
from typing import Any, Dict, List, Literal, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..exceptions import OrderUnavailable, ClaimInProgress
from ..models.driver import Driver, DriverStatus
from ..models.finance import FinancialTransaction, TransactionType
from ..models.order import Order, OrderStatus, PaymentStatus, FINISHED_STATUSES
from ..models.profile import Profile, UserType
from ..utils.dates import utcnow, iso
from .system_settings import get_setting

logger = logging.getLogger(__name__)

DEFAULT_PAYOUT_COMMISSION = 0.1

DriverTab = Literal["available", "current", "history"]

# badge colour per status for list screens
STATUS_BADGES: Dict[OrderStatus, Dict[str, str]] = {
    OrderStatus.PENDING:     {"label": "Pending", "color": "yellow"},
    OrderStatus.AVAILABLE:   {"label": "Available", "color": "blue"},
    OrderStatus.PICKED_UP:   {"label": "Picked up", "color": "indigo"},
    OrderStatus.IN_TRANSIT:  {"label": "In transit", "color": "purple"},
    OrderStatus.APPROACHING: {"label": "Approaching", "color": "orange"},
    OrderStatus.COMPLETED:   {"label": "Completed", "color": "green"},
    OrderStatus.CANCELLED:   {"label": "Cancelled", "color": "red"},
}

_ALLOWED_TRANSITIONS = {
    OrderStatus.PICKED_UP: {OrderStatus.IN_TRANSIT, OrderStatus.APPROACHING, OrderStatus.CANCELLED},
    OrderStatus.IN_TRANSIT: {OrderStatus.APPROACHING, OrderStatus.COMPLETED, OrderStatus.CANCELLED},
    OrderStatus.APPROACHING: {OrderStatus.COMPLETED, OrderStatus.CANCELLED},
}

# drivers with an accept request in flight (per process)
_claims_in_flight: set[int] = set()
_claims_lock = threading.Lock()


def status_badge(status) -> Dict[str, str]:
    s = OrderStatus(status)
    return {"status": s.value, **STATUS_BADGES[s]}


def estimate_cost(db: Session, distance_m: float) -> float:
    """
    Minimum acceptable price for a distance in meters:
    per_km_rate * km + base_fare, floored to halalas.
    """
    if distance_m is None or distance_m < 0:
        raise ValueError("distance must be a non-negative number of meters")
    per_km = float(get_setting(db, "per_km_rate"))
    base = float(get_setting(db, "base_fare"))
    cost = (distance_m / 1000.0) * per_km + base
    return math.floor(cost * 100) / 100


def estimate_duration_minutes(distance_m: float) -> float:
    # 2 minutes per km, 15 minutes minimum
    return max(15.0, (distance_m / 1000.0) * 2)


def get_order(db: Session, order_id: int) -> Order:
    o = db.get(Order, order_id)
    if not o:
        raise LookupError("Order not found")
    return o


# ---------- customer side ----------

def _location(payload: Dict[str, Any], key: str) -> Dict[str, Any]:
    raw = payload.get(key)
    if isinstance(raw, str):
        raw = {"address": raw}
    if not isinstance(raw, dict) or not (raw.get("address") or "").strip():
        raise ValueError(f"{key} with an address is required")
    return {"address": raw["address"].strip(), "details": (raw.get("details") or "").strip()}


def create_order(db: Session, customer_id: int, payload: Dict[str, Any]) -> Order:
    p = db.get(Profile, customer_id)
    if p is None or p.user_type != UserType.CUSTOMER:
        raise PermissionError("Only customers can create orders")

    pickup = _location(payload, "pickup_location")
    dropoff = _location(payload, "dropoff_location")

    distance = payload.get("estimated_distance")
    distance = float(distance) if distance not in (None, "") else None
    price = payload.get("price")
    price = float(price) if price not in (None, "") else None
    if price is None and distance is not None:
        price = estimate_cost(db, distance)
    if price is None or price <= 0:
        raise ValueError("Calculate the cost first (price or estimated_distance)")

    o = Order(
        customer_id=customer_id,
        pickup_location=pickup,
        dropoff_location=dropoff,
        package_details=(payload.get("package_details") or None),
        notes=(payload.get("notes") or None),
        price=price,
        commission_rate=float(get_setting(db, "commission_rate")),
        payment_status=PaymentStatus.PENDING,
        payment_method=(payload.get("payment_method") or None),
        estimated_distance=distance,
        estimated_duration=estimate_duration_minutes(distance) if distance is not None else None,
        status=OrderStatus.AVAILABLE,
    )
    db.add(o)
    db.commit()
    db.refresh(o)
    logger.info("order %s created by customer %s (%.2f)", o.id, customer_id, price)
    return o


def list_customer_orders(db: Session, customer_id: int) -> Dict[str, List[Order]]:
    rows = db.execute(
        select(Order).where(Order.customer_id == customer_id).order_by(Order.id.desc())
    ).scalars().all()
    return {
        "active": [o for o in rows if o.status not in FINISHED_STATUSES],
        "history": [o for o in rows if o.status in FINISHED_STATUSES],
    }


def cancel_order(db: Session, customer_id: int, order_id: int) -> Order:
    o = get_order(db, order_id)
    if o.customer_id != customer_id:
        raise PermissionError("You can only cancel your own orders")
    if o.status in FINISHED_STATUSES:
        raise ValueError("Order is already finished")

    o.status = OrderStatus.CANCELLED
    db.commit()
    db.refresh(o)
    return o


def confirm_receipt(db: Session, customer_id: int, order_id: int) -> Order:
    """
    Customer confirms delivery: order completed and paid, driver payout
    computed and the payout / platform fee transactions written.

    The paid flag is flipped by one conditional UPDATE, so only the first
    of two concurrent confirmations writes transactions.
    """
    o = get_order(db, order_id)
    if o.customer_id != customer_id:
        raise PermissionError("You can only confirm your own orders")
    if o.driver_id is None:
        raise ValueError("Order has no driver yet")

    rate = o.commission_rate if o.commission_rate is not None else DEFAULT_PAYOUT_COMMISSION
    price = float(o.price or 0)
    payout = round(price * (1 - rate), 2)
    fee = round(price * rate, 2)
    driver_id = o.driver_id
    now = utcnow()

    result = db.execute(
        update(Order)
        .where(
            Order.id == order_id,
            Order.customer_id == customer_id,
            Order.driver_id == driver_id,
            Order.payment_status == PaymentStatus.PENDING,
            Order.status != OrderStatus.CANCELLED,
        )
        .values(
            status=OrderStatus.COMPLETED,
            payment_status=PaymentStatus.PAID,
            actual_delivery_time=o.actual_delivery_time or now,
            driver_payout=payout,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        db.refresh(o)
        if o.status == OrderStatus.CANCELLED:
            raise ValueError("Order was cancelled")
        raise ValueError("Receipt was already confirmed")

    db.add(FinancialTransaction(
        driver_id=driver_id,
        order_id=order_id,
        amount=payout,
        transaction_type=TransactionType.DRIVER_PAYOUT,
        status="completed",
    ))
    db.add(FinancialTransaction(
        order_id=order_id,
        amount=fee,
        transaction_type=TransactionType.PLATFORM_FEE,
        status="completed",
    ))
    db.commit()
    db.refresh(o)
    logger.info("order %s paid: payout %.2f, fee %.2f", order_id, payout, fee)
    return o


# ---------- driver side ----------

def ensure_approved_driver(db: Session, driver_id: int) -> Driver:
    d = db.get(Driver, driver_id)
    if d is None:
        raise PermissionError("Driver profile not found")
    if d.status != DriverStatus.APPROVED:
        raise PermissionError("Driver account is not approved")
    return d


def list_driver_orders(db: Session, driver_id: int, tab: DriverTab = "available", limit: int = 50) -> List[Order]:
    q = select(Order)
    if tab == "available":
        q = q.where(Order.status == OrderStatus.AVAILABLE, Order.driver_id.is_(None))
    elif tab == "current":
        q = q.where(Order.driver_id == driver_id, Order.status.not_in(FINISHED_STATUSES))
    elif tab == "history":
        q = q.where(Order.driver_id == driver_id, Order.status.in_(FINISHED_STATUSES))
    else:
        raise ValueError(f"Unknown tab: {tab}")
    return db.execute(q.order_by(Order.id.desc()).limit(limit)).scalars().all()


def claim_order(db: Session, driver_id: Optional[int], order_id: int) -> Order:
    """
    Attach the driver to an available, unclaimed order.

    One conditional UPDATE does the check and the write; the affected row
    count tells whether this driver won. Nothing is written on failure.
    """
    if not driver_id:
        raise PermissionError("Sign in as a driver to accept orders")

    with _claims_lock:
        if driver_id in _claims_in_flight:
            raise ClaimInProgress()
        _claims_in_flight.add(driver_id)

    try:
        ensure_approved_driver(db, driver_id)
        result = db.execute(
            update(Order)
            .where(
                Order.id == order_id,
                Order.status == OrderStatus.AVAILABLE,
                Order.driver_id.is_(None),
            )
            .values(
                driver_id=driver_id,
                status=OrderStatus.PICKED_UP,
                actual_pickup_time=utcnow(),
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.rollback()
            if db.get(Order, order_id) is None:
                raise LookupError("Order not found")
            raise OrderUnavailable()
        db.commit()
    finally:
        with _claims_lock:
            _claims_in_flight.discard(driver_id)

    o = db.get(Order, order_id)
    db.refresh(o)
    logger.info("order %s claimed by driver %s", order_id, driver_id)
    return o


def advance_status(db: Session, driver_id: int, order_id: int, raw_status: str) -> Order:
    o = get_order(db, order_id)
    if o.driver_id != driver_id:
        raise PermissionError("You can only update orders assigned to you")

    try:
        to_status = OrderStatus((raw_status or "").strip().lower())
    except ValueError:
        raise ValueError("Unknown status")

    allowed = _ALLOWED_TRANSITIONS.get(o.status, set())
    if to_status not in allowed:
        raise ValueError(f"Cannot move order from {o.status.value} to {to_status.value}")

    o.status = to_status
    if to_status == OrderStatus.COMPLETED:
        o.actual_delivery_time = utcnow()
    db.commit()
    db.refresh(o)
    return o


def order_to_public(o: Order) -> Dict[str, Any]:
    status = OrderStatus(o.status)
    return {
        "id": o.id,
        "status": status.value,
        "badge": STATUS_BADGES[status],
        "customer_id": o.customer_id,
        "driver_id": o.driver_id,
        "pickup_location": o.pickup_location,
        "dropoff_location": o.dropoff_location,
        "package_details": o.package_details,
        "notes": o.notes,
        "price": o.price,
        "commission_rate": o.commission_rate,
        "driver_payout": o.driver_payout,
        "payment_status": PaymentStatus(o.payment_status).value,
        "estimated_distance": o.estimated_distance,
        "estimated_duration": o.estimated_duration,
        "driver_location": o.driver_location,
        "actual_pickup_time": iso(o.actual_pickup_time),
        "actual_delivery_time": iso(o.actual_delivery_time),
        "created_at": iso(o.created_at),
        "updated_at": iso(o.updated_at),
    }
