# safedrop/routers/orders.py
from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from ..db import get_db
from ..deps import SERVICE_ERRORS, http_error, require_customer, require_driver, get_current_account, get_current_role
from ..models.account import Account
from ..models.profile import Profile, UserType
from ..realtime import hub
from ..services import orders as order_service
from ..services import finance as finance_service
from ..services import ratings as rating_service
from ..services.roles import AdminRole, Role

router = APIRouter(tags=["orders"])


# ---------- pricing ----------

@router.get("/api/orders/estimate")
def api_estimate(distance_m: float = Query(..., ge=0), db: Session = Depends(get_db)):
    try:
        cost = order_service.estimate_cost(db, distance_m)
    except SERVICE_ERRORS as e:
        raise http_error(e)
    return {
        "ok": True,
        "distance_m": distance_m,
        "price": cost,
        "estimated_duration": order_service.estimate_duration_minutes(distance_m),
    }


# ---------- customer ----------

@router.post("/api/orders", status_code=status.HTTP_201_CREATED)
def api_create_order(
    payload: dict,
    background_tasks: BackgroundTasks,
    account: Account = Depends(require_customer),
    db: Session = Depends(get_db),
):
    try:
        o = order_service.create_order(db, account.id, payload)
    except SERVICE_ERRORS as e:
        db.rollback()
        raise http_error(e)
    background_tasks.add_task(hub.publish, "order_created", {"order_id": o.id, "price": o.price})
    return {"ok": True, "order": order_service.order_to_public(o), "message": "Order created"}


@router.get("/api/orders/mine")
def api_my_orders(account: Account = Depends(require_customer), db: Session = Depends(get_db)):
    lists = order_service.list_customer_orders(db, account.id)
    return {
        "ok": True,
        "active": [order_service.order_to_public(o) for o in lists["active"]],
        "history": [order_service.order_to_public(o) for o in lists["history"]],
    }


@router.get("/api/orders/billing")
def api_billing(account: Account = Depends(require_customer), db: Session = Depends(get_db)):
    return {"ok": True, **finance_service.customer_billing(db, account.id)}


@router.post("/api/orders/{order_id}/cancel")
def api_cancel_order(
    order_id: int,
    background_tasks: BackgroundTasks,
    account: Account = Depends(require_customer),
    db: Session = Depends(get_db),
):
    try:
        o = order_service.cancel_order(db, account.id, order_id)
    except SERVICE_ERRORS as e:
        db.rollback()
        raise http_error(e)
    background_tasks.add_task(hub.publish, "order_status", {"order_id": o.id, "status": o.status.value},
                              to=(o.customer_id, o.driver_id))
    return {"ok": True, "order": order_service.order_to_public(o), "message": "Order cancelled"}


@router.post("/api/orders/{order_id}/confirm-receipt")
def api_confirm_receipt(
    order_id: int,
    background_tasks: BackgroundTasks,
    account: Account = Depends(require_customer),
    db: Session = Depends(get_db),
):
    try:
        o = order_service.confirm_receipt(db, account.id, order_id)
    except SERVICE_ERRORS as e:
        db.rollback()
        raise http_error(e)
    background_tasks.add_task(hub.publish, "order_status", {"order_id": o.id, "status": o.status.value},
                              to=(o.customer_id, o.driver_id))
    return {"ok": True, "order": order_service.order_to_public(o), "message": "Receipt confirmed, thank you"}


# ---------- feedback ----------

@router.get("/api/orders/unrated")
def api_unrated_orders(account: Account = Depends(require_customer), db: Session = Depends(get_db)):
    rows = rating_service.list_unrated_orders(db, account.id)
    return {"ok": True, "items": [order_service.order_to_public(o) for o in rows]}


@router.post("/api/orders/{order_id}/rating", status_code=status.HTTP_201_CREATED)
def api_rate_order(
    order_id: int,
    payload: dict,
    background_tasks: BackgroundTasks,
    account: Account = Depends(require_customer),
    db: Session = Depends(get_db),
):
    try:
        r = rating_service.rate_order(db, account.id, order_id, payload.get("rating"), payload.get("comment"))
    except SERVICE_ERRORS as e:
        db.rollback()
        raise http_error(e)
    background_tasks.add_task(hub.publish, "driver_rated", {"order_id": r.order_id, "rating": r.rating},
                              to=(r.driver_id,))
    return {"ok": True, "rating": rating_service.rating_to_public(r), "message": "Thank you for your feedback"}


# ---------- driver ----------

@router.get("/api/driver/orders")
def api_driver_orders(
    tab: Literal["available", "current", "history"] = Query("available"),
    limit: int = Query(50, ge=1, le=200),
    account: Account = Depends(require_driver),
    db: Session = Depends(get_db),
):
    try:
        if tab == "available":
            # the open pool is for approved drivers only
            order_service.ensure_approved_driver(db, account.id)
        rows = order_service.list_driver_orders(db, account.id, tab, limit)
    except SERVICE_ERRORS as e:
        raise http_error(e)
    return {"ok": True, "tab": tab, "items": [order_service.order_to_public(o) for o in rows]}


@router.post("/api/driver/orders/{order_id}/accept")
def api_accept_order(
    order_id: int,
    background_tasks: BackgroundTasks,
    account: Account = Depends(require_driver),
    db: Session = Depends(get_db),
):
    try:
        o = order_service.claim_order(db, account.id, order_id)
    except SERVICE_ERRORS as e:
        db.rollback()
        raise http_error(e)
    background_tasks.add_task(hub.publish, "order_claimed", {"order_id": o.id, "driver_id": o.driver_id})
    return {
        "ok": True,
        "order": order_service.order_to_public(o),
        "switch_tab": "current",
        "message": "Order accepted",
    }


@router.post("/api/driver/orders/{order_id}/status")
def api_advance_status(
    order_id: int,
    payload: dict,
    background_tasks: BackgroundTasks,
    account: Account = Depends(require_driver),
    db: Session = Depends(get_db),
):
    try:
        o = order_service.advance_status(db, account.id, order_id, payload.get("status"))
    except SERVICE_ERRORS as e:
        db.rollback()
        raise http_error(e)
    background_tasks.add_task(hub.publish, "order_status", {"order_id": o.id, "status": o.status.value},
                              to=(o.customer_id, o.driver_id))
    return {"ok": True, "order": order_service.order_to_public(o), "badge": order_service.status_badge(o.status)}


# ---------- shared ----------

@router.get("/api/orders/{order_id}")
def api_order_detail(order_id: int, account: Account = Depends(get_current_account), db: Session = Depends(get_db)):
    try:
        o = order_service.get_order(db, order_id)
    except SERVICE_ERRORS as e:
        raise http_error(e)
    p = db.get(Profile, account.id)
    is_admin = p is not None and p.user_type == UserType.ADMIN
    if not is_admin and account.id not in (o.customer_id, o.driver_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not your order")
    return {"ok": True, "order": order_service.order_to_public(o)}


# ---------- real-time stream (SSE) ----------

@router.get("/api/events/stream")
def events_stream(account: Account = Depends(get_current_account), role: Role = Depends(get_current_role)):
    """Signed-in clients only; each one gets the events addressed to it."""
    account_id, is_admin = account.id, isinstance(role, AdminRole)

    async def gen():
        yield ": ok\n\n"
        async for msg in hub.subscribe(account_id, is_admin):
            yield msg
    return StreamingResponse(gen(), media_type="text/event-stream")
