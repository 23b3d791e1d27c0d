from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update, delete, func
from sqlalchemy.orm import Session

from ..config import settings
from ..models.account import Account
from ..models.driver import Driver, DriverStatus
from ..models.order import Order, OrderStatus
from ..models.profile import Profile, ProfileStatus, UserType

logger = logging.getLogger(__name__)


def _one_row(result, what: str) -> None:
    if result.rowcount != 1:
        raise LookupError(f"{what} not found")


# ---------- drivers ----------

def list_drivers(db: Session, status: Optional[str] = None) -> List[tuple[Driver, Profile]]:
    q = select(Driver, Profile).join(Profile, Profile.id == Driver.id)
    if status:
        q = q.where(Driver.status == DriverStatus(status))
    return db.execute(q.order_by(Driver.created_at.desc())).all()


def driver_details(db: Session, driver_id: int) -> tuple[Driver, Profile]:
    row = db.execute(
        select(Driver, Profile).join(Profile, Profile.id == Driver.id).where(Driver.id == driver_id)
    ).first()
    if not row:
        raise LookupError("Driver not found")
    return row


def approve_driver(db: Session, driver_id: int) -> Driver:
    res = db.execute(
        update(Driver)
        .where(Driver.id == driver_id)
        .values(status=DriverStatus.APPROVED, rejection_reason=None)
        .execution_options(synchronize_session=False)
    )
    _one_row(res, "Driver")
    db.commit()
    logger.info("driver %s approved", driver_id)
    return _fresh(db, driver_id)


def reject_driver(db: Session, driver_id: int, reason: str) -> Driver:
    """
    Reject with a reason. Once the driver has used up the allowed
    reapplications the rejection freezes the account instead.
    """
    reason = (reason or "").strip()
    if not reason:
        raise ValueError("A rejection reason is required")

    d = db.get(Driver, driver_id)
    if d is None:
        raise LookupError("Driver not found")
    if d.status == DriverStatus.FROZEN:
        raise ValueError("Driver account is frozen")

    used = d.rejection_count or 0
    next_status = DriverStatus.FROZEN if used >= settings.MAX_REJECTIONS else DriverStatus.REJECTED
    # keyed on the counter we read so a concurrent reapply is not overwritten
    res = db.execute(
        update(Driver)
        .where(
            Driver.id == driver_id,
            Driver.rejection_count == used,
            Driver.status != DriverStatus.FROZEN,
        )
        .values(status=next_status, rejection_reason=reason, is_available=False)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        db.rollback()
        raise ValueError("Driver record changed meanwhile, reload and retry")
    db.commit()
    d = _fresh(db, driver_id)
    logger.info("driver %s %s (rejections used: %s)", driver_id, d.status.value, d.rejection_count)
    return d


def freeze_driver(db: Session, driver_id: int, reason: Optional[str] = None) -> Driver:
    res = db.execute(
        update(Driver)
        .where(Driver.id == driver_id)
        .values(status=DriverStatus.FROZEN, is_available=False,
                rejection_reason=(reason or "").strip() or None)
        .execution_options(synchronize_session=False)
    )
    _one_row(res, "Driver")
    db.commit()
    return _fresh(db, driver_id)


def unfreeze_driver(db: Session, driver_id: int) -> Driver:
    """Back to moderation with a clean counter."""
    res = db.execute(
        update(Driver)
        .where(Driver.id == driver_id, Driver.status == DriverStatus.FROZEN)
        .values(status=DriverStatus.PENDING, rejection_count=0, rejection_reason=None)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        db.rollback()
        if db.get(Driver, driver_id) is None:
            raise LookupError("Driver not found")
        raise ValueError("Driver is not frozen")
    db.commit()
    return _fresh(db, driver_id)


def delete_rejected_applications(db: Session) -> int:
    """
    Remove rejected drivers together with their profile and account.
    Drivers that already carried orders are kept for the order history.
    """
    has_orders = select(Order.id).where(Order.driver_id == Driver.id).exists()
    ids = db.execute(
        select(Driver.id).where(Driver.status == DriverStatus.REJECTED, ~has_orders)
    ).scalars().all()
    if not ids:
        return 0
    db.execute(delete(Driver).where(Driver.id.in_(ids)).execution_options(synchronize_session=False))
    db.execute(delete(Profile).where(Profile.id.in_(ids)).execution_options(synchronize_session=False))
    db.execute(delete(Account).where(Account.id.in_(ids)).execution_options(synchronize_session=False))
    db.commit()
    db.expunge_all()
    logger.info("deleted %s rejected driver applications", len(ids))
    return len(ids)


def _fresh(db: Session, driver_id: int) -> Driver:
    d = db.get(Driver, driver_id)
    db.refresh(d)
    return d


# ---------- users ----------

def set_user_status(db: Session, user_id: int, status: str) -> Profile:
    new_status = ProfileStatus(status)
    res = db.execute(
        update(Profile)
        .where(Profile.id == user_id, Profile.user_type != UserType.ADMIN)
        .values(status=new_status)
        .execution_options(synchronize_session=False)
    )
    _one_row(res, "User")
    if new_status != ProfileStatus.ACTIVE:
        # suspended / banned drivers drop out of the available pool
        db.execute(
            update(Driver).where(Driver.id == user_id).values(is_available=False)
            .execution_options(synchronize_session=False)
        )
    db.commit()
    p = db.get(Profile, user_id)
    db.refresh(p)
    return p


def list_customers(db: Session, search: Optional[str] = None) -> List[Profile]:
    q = select(Profile).where(Profile.user_type == UserType.CUSTOMER)
    if search:
        like = f"%{search.strip()}%"
        q = q.where(
            Profile.first_name.ilike(like) | Profile.last_name.ilike(like)
            | Profile.email.ilike(like) | Profile.phone.ilike(like)
        )
    return db.execute(q.order_by(Profile.created_at.desc())).scalars().all()


# ---------- orders / stats ----------

def list_orders(db: Session, status: Optional[str] = None, limit: int = 100) -> List[Order]:
    q = select(Order)
    if status:
        q = q.where(Order.status == OrderStatus(status))
    return db.execute(q.order_by(Order.id.desc()).limit(limit)).scalars().all()


def stats(db: Session) -> Dict[str, Any]:
    customers = db.execute(
        select(func.count(Profile.id)).where(Profile.user_type == UserType.CUSTOMER)
    ).scalar_one()
    drivers = db.execute(select(func.count(Driver.id))).scalar_one()
    pending = db.execute(
        select(func.count(Driver.id)).where(Driver.status == DriverStatus.PENDING)
    ).scalar_one()
    orders = db.execute(select(func.count(Order.id))).scalar_one()
    by_status = dict(db.execute(select(Order.status, func.count(Order.id)).group_by(Order.status)).all())
    return {
        "customers": int(customers),
        "drivers": int(drivers),
        "pending_drivers": int(pending),
        "orders": int(orders),
        "orders_by_status": {OrderStatus(k).value: int(v) for k, v in by_status.items()},
    }
