# safedrop/routers/driver.py
from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..config import settings
from ..db import get_db
from ..deps import SERVICE_ERRORS, http_error, require_driver, cache_role
from ..models.account import Account
from ..models.order import Order
from ..models.profile import Profile
from ..realtime import hub
from ..services import driver as driver_service
from ..services import finance as finance_service
from ..services import orders as order_service
from ..services import ratings as rating_service
from ..services.roles import DriverRole

router = APIRouter(prefix="/api/driver", tags=["driver"])


# ---------- profile / status ----------

@router.get("/me")
def api_driver_me(account: Account = Depends(require_driver), db: Session = Depends(get_db)):
    try:
        d = driver_service.get_driver(db, account.id)
        driver_service.refresh_subscription(db, d)
    except SERVICE_ERRORS as e:
        raise http_error(e)
    p = db.get(Profile, account.id)
    return {
        "ok": True,
        "profile": {
            "first_name": p.first_name if p else None,
            "last_name": p.last_name if p else None,
            "phone": p.phone if p else None,
            "email": account.email,
            "address": p.address if p else None,
            "profile_image": p.profile_image if p else None,
        },
        "driver": driver_service.driver_to_public(d),
    }


@router.get("/status")
def api_driver_status(request: Request, account: Account = Depends(require_driver), db: Session = Depends(get_db)):
    """
    Status gate read from the table; also refreshes the cached session role and
    the driverRejectionCount hint cookie.
    """
    try:
        d = driver_service.get_driver(db, account.id)
        view = driver_service.driver_status_view(d)
    except SERVICE_ERRORS as e:
        raise http_error(e)
    cache_role(request, account, DriverRole(status=d.status))
    resp = JSONResponse({"ok": True, **view})
    resp.set_cookie("driverRejectionCount", str(view["rejection_count"]), samesite=settings.COOKIE_SAMESITE)
    return resp


@router.post("/reapply")
def api_driver_reapply(
    request: Request,
    background_tasks: BackgroundTasks,
    account: Account = Depends(require_driver),
    db: Session = Depends(get_db),
):
    try:
        out = driver_service.reapply(db, account.id)
    except SERVICE_ERRORS as e:
        db.rollback()
        raise http_error(e)
    d = driver_service.get_driver(db, account.id)
    cache_role(request, account, DriverRole(status=d.status))
    background_tasks.add_task(hub.publish, "driver_reapplied", {"driver_id": account.id}, to=(account.id,))
    resp = JSONResponse({"ok": True, **out, "message": "Update your details and submit them for review"})
    resp.set_cookie("driverRejectionCount", str(out["rejection_count"]), samesite=settings.COOKIE_SAMESITE)
    return resp


@router.post("/profile")
def api_driver_profile(
    payload: dict,
    request: Request,
    background_tasks: BackgroundTasks,
    account: Account = Depends(require_driver),
    db: Session = Depends(get_db),
):
    try:
        d = driver_service.submit_profile(db, account.id, payload)
    except SERVICE_ERRORS as e:
        db.rollback()
        raise http_error(e)
    cache_role(request, account, DriverRole(status=d.status))
    background_tasks.add_task(hub.publish, "driver_profile_updated", {"driver_id": d.id, "status": d.status.value},
                              to=(d.id,))
    return {"ok": True, "status": d.status.value, "message": "Profile saved"}


# ---------- availability / subscription ----------

@router.post("/availability")
def api_driver_availability(
    payload: dict,
    background_tasks: BackgroundTasks,
    account: Account = Depends(require_driver),
    db: Session = Depends(get_db),
):
    value = payload.get("is_available")
    if not isinstance(value, bool):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="is_available must be true or false")
    try:
        d = driver_service.set_availability(db, account.id, value)
    except SERVICE_ERRORS as e:
        db.rollback()
        raise http_error(e)
    background_tasks.add_task(hub.publish, "driver_availability_changed",
                              {"driver_id": d.id, "is_available": d.is_available}, to=(d.id,))
    return {
        "ok": True,
        "is_available": d.is_available,
        "message": "You are now available for orders" if d.is_available else "You are now offline",
    }


@router.get("/subscription")
def api_driver_subscription(account: Account = Depends(require_driver), db: Session = Depends(get_db)):
    try:
        d = driver_service.refresh_subscription(db, driver_service.get_driver(db, account.id))
    except SERVICE_ERRORS as e:
        raise http_error(e)
    public = driver_service.driver_to_public(d)
    return {"ok": True, "active": public["subscription_active"], "subscription": public["subscription"]}


@router.post("/subscription")
def api_driver_subscribe(payload: dict, account: Account = Depends(require_driver), db: Session = Depends(get_db)):
    try:
        out = driver_service.start_subscription(db, account.id, (payload.get("plan") or "monthly").lower())
    except SERVICE_ERRORS as e:
        db.rollback()
        raise http_error(e)
    return {"ok": True, **out}


@router.post("/subscription/verify")
def api_driver_verify_payment(payload: dict, account: Account = Depends(require_driver), db: Session = Depends(get_db)):
    try:
        out = driver_service.verify_subscription_payment(
            db, account.id, payload.get("orderNumber") or payload.get("order_number"),
            payload.get("transactionNo") or payload.get("transaction_no"),
        )
    except SERVICE_ERRORS as e:
        db.rollback()
        raise http_error(e)
    return {"ok": True, **out}


# ---------- location / earnings ----------

@router.post("/location")
def api_driver_location(
    payload: dict,
    background_tasks: BackgroundTasks,
    account: Account = Depends(require_driver),
    db: Session = Depends(get_db),
):
    if payload.get("lat") is None or payload.get("lng") is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="lat and lng are required")
    try:
        d = driver_service.update_location(db, account.id, float(payload["lat"]), float(payload["lng"]))
    except SERVICE_ERRORS as e:
        db.rollback()
        raise http_error(e)
    # coordinates go to the customers whose parcels this driver carries
    watchers = [o.customer_id for o in order_service.list_driver_orders(db, d.id, "current")]
    background_tasks.add_task(hub.publish, "driver_location", {"driver_id": d.id, **d.location}, to=watchers)
    return {"ok": True, "location": d.location}


@router.get("/earnings")
def api_driver_earnings(
    period: str = Query("all"),
    account: Account = Depends(require_driver),
    db: Session = Depends(get_db),
):
    try:
        return {"ok": True, **finance_service.driver_earnings(db, account.id, period)}
    except SERVICE_ERRORS as e:
        raise http_error(e)


@router.get("/ratings")
def api_driver_ratings(account: Account = Depends(require_driver), db: Session = Depends(get_db)):
    try:
        d = driver_service.get_driver(db, account.id)
    except SERVICE_ERRORS as e:
        raise http_error(e)
    rows = rating_service.list_driver_ratings(db, account.id)
    orders = {o.id: o for o in (db.get(Order, r.order_id) for r in rows) if o is not None}
    return {
        "ok": True,
        "average": d.rating,
        "count": len(rows),
        "items": [rating_service.rating_to_public(r, orders.get(r.order_id)) for r in rows],
    }
