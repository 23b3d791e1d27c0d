from __future__ import annotations

import datetime as dt
from typing import Any, Dict, Literal, Optional

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from ..models.finance import FinancialTransaction, TransactionType
from ..models.order import Order, OrderStatus, PaymentStatus
from ..utils.dates import utcnow

Period = Literal["day", "week", "month", "year", "all"]

_PERIOD_DAYS = {"day": 1, "week": 7, "month": 30, "year": 365}


def period_start(period: Period, now: Optional[dt.datetime] = None) -> Optional[dt.datetime]:
    if period == "all":
        return None
    if period not in _PERIOD_DAYS:
        raise ValueError(f"Unknown period: {period}")
    return (now or utcnow()) - dt.timedelta(days=_PERIOD_DAYS[period])


def _sum_transactions(db: Session, kind: TransactionType, since, driver_id: Optional[int] = None) -> float:
    q = select(func.coalesce(func.sum(FinancialTransaction.amount), 0.0)).where(
        FinancialTransaction.transaction_type == kind,
        FinancialTransaction.status == "completed",
    )
    if since is not None:
        q = q.where(FinancialTransaction.created_at >= since)
    if driver_id is not None:
        q = q.where(FinancialTransaction.driver_id == driver_id)
    return round(float(db.execute(q).scalar_one()), 2)


def financial_summary(db: Session, period: Period = "month", now: Optional[dt.datetime] = None) -> Dict[str, Any]:
    """
    Admin finance card: revenue of paid orders, commissions kept by the
    platform and what went to drivers.
    """
    since = period_start(period, now)
    q = select(func.coalesce(func.sum(Order.price), 0.0)).where(Order.payment_status == PaymentStatus.PAID)
    if since is not None:
        q = q.where(Order.actual_delivery_time >= since)
    revenue = round(float(db.execute(q).scalar_one()), 2)

    commissions = _sum_transactions(db, TransactionType.PLATFORM_FEE, since)
    driver_profit = _sum_transactions(db, TransactionType.DRIVER_PAYOUT, since)
    return {
        "period": period,
        "total_revenue": revenue,
        "commissions": commissions,
        "platform_profit": commissions,
        "driver_profit": driver_profit,
    }


def driver_earnings(db: Session, driver_id: int, period: Period = "all", now: Optional[dt.datetime] = None) -> Dict[str, Any]:
    since = period_start(period, now)
    q = select(func.count(Order.id)).where(Order.driver_id == driver_id, Order.status == OrderStatus.COMPLETED)
    if since is not None:
        q = q.where(Order.actual_delivery_time >= since)
    completed = int(db.execute(q).scalar_one())
    return {
        "period": period,
        "completed_orders": completed,
        "earnings": _sum_transactions(db, TransactionType.DRIVER_PAYOUT, since, driver_id=driver_id),
    }


def customer_billing(db: Session, customer_id: int) -> Dict[str, Any]:
    paid = select(func.count(Order.id), func.coalesce(func.sum(Order.price), 0.0)).where(
        Order.customer_id == customer_id, Order.payment_status == PaymentStatus.PAID
    )
    count, total = db.execute(paid).one()
    pending = select(func.coalesce(func.sum(Order.price), 0.0)).where(
        Order.customer_id == customer_id,
        Order.payment_status == PaymentStatus.PENDING,
        Order.status != OrderStatus.CANCELLED,
    )
    return {
        "paid_orders": int(count),
        "total_paid": round(float(total), 2),
        "outstanding": round(float(db.execute(pending).scalar_one()), 2),
    }
