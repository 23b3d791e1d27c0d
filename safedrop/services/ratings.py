from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..models.driver import Driver
from ..models.order import Order, OrderStatus
from ..models.rating import DriverRating
from ..utils.dates import iso
from .orders import get_order

logger = logging.getLogger(__name__)


def _stars(raw: Any) -> int:
    # JSON bools are ints in Python; refuse them
    if isinstance(raw, bool) or not isinstance(raw, (int, float)) or raw != int(raw):
        raise ValueError("rating must be a whole number from 1 to 5")
    value = int(raw)
    if not 1 <= value <= 5:
        raise ValueError("rating must be a whole number from 1 to 5")
    return value


def _refresh_driver_rating(db: Session, driver_id: int) -> Optional[float]:
    avg = db.execute(
        select(func.avg(DriverRating.rating)).where(DriverRating.driver_id == driver_id)
    ).scalar()
    d = db.get(Driver, driver_id)
    if d is not None:
        d.rating = round(float(avg), 2) if avg is not None else None
        return d.rating
    return None


def rate_order(db: Session, customer_id: int, order_id: int, rating: Any,
               comment: Optional[str] = None) -> DriverRating:
    """
    Customer feedback on a completed delivery. One rating per order;
    the driver's average is recomputed in the same transaction.
    """
    stars = _stars(rating)
    o = get_order(db, order_id)
    if o.customer_id != customer_id:
        raise PermissionError("You can only rate your own orders")
    if o.status != OrderStatus.COMPLETED or o.driver_id is None:
        raise ValueError("Only completed deliveries can be rated")

    r = DriverRating(
        driver_id=o.driver_id,
        order_id=o.id,
        customer_id=customer_id,
        rating=stars,
        comment=(comment or "").strip() or None,
    )
    db.add(r)
    try:
        db.flush()
    except IntegrityError as e:
        db.rollback()
        raise ValueError("You have already rated this order") from e

    avg = _refresh_driver_rating(db, o.driver_id)
    db.commit()
    db.refresh(r)
    logger.info("order %s rated %s by customer %s (driver %s now %s)", o.id, stars, customer_id, o.driver_id, avg)
    return r


def list_unrated_orders(db: Session, customer_id: int) -> List[Order]:
    rated = select(DriverRating.order_id).where(DriverRating.customer_id == customer_id)
    return db.execute(
        select(Order)
        .where(
            Order.customer_id == customer_id,
            Order.status == OrderStatus.COMPLETED,
            Order.driver_id.is_not(None),
            Order.id.not_in(rated),
        )
        .order_by(Order.id.desc())
    ).scalars().all()


def list_driver_ratings(db: Session, driver_id: int) -> List[DriverRating]:
    return db.execute(
        select(DriverRating)
        .where(DriverRating.driver_id == driver_id)
        .order_by(DriverRating.created_at.desc(), DriverRating.id.desc())
    ).scalars().all()


def rating_to_public(r: DriverRating, order: Optional[Order] = None) -> Dict[str, Any]:
    out = {
        "id": r.id,
        "order_id": r.order_id,
        "driver_id": r.driver_id,
        "rating": r.rating,
        "comment": r.comment,
        "created_at": iso(r.created_at),
    }
    if order is not None:
        out["pickup_location"] = order.pickup_location
        out["dropoff_location"] = order.dropoff_location
    return out
