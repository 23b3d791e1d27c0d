# safedrop/routers/admin.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from ..db import get_db
from ..deps import SERVICE_ERRORS, http_error, require_admin
from ..models.account import Account
from ..models.driver import Driver
from ..models.profile import Profile
from ..realtime import hub
from ..services import admin as admin_service
from ..services import complaints as complaint_service
from ..services import finance as finance_service
from ..services import orders as order_service
from ..services import system_settings
from ..services.driver import driver_to_public
from ..utils.dates import iso

router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_admin)])


def _driver_row(d: Driver, p: Profile) -> dict:
    return {
        **driver_to_public(d),
        "name": p.display_name,
        "email": p.email,
        "phone": p.phone,
        "created_at": iso(d.created_at),
    }


def _profile_row(p: Profile) -> dict:
    return {
        "id": p.id,
        "name": p.display_name,
        "email": p.email,
        "phone": p.phone,
        "address": p.address,
        "user_type": p.user_type.value,
        "status": p.status.value,
        "created_at": iso(p.created_at),
    }


# ---------- drivers ----------

@router.get("/drivers")
def api_admin_drivers(status: Optional[str] = Query(None), db: Session = Depends(get_db)):
    try:
        rows = admin_service.list_drivers(db, status)
    except SERVICE_ERRORS as e:
        raise http_error(e)
    return {"ok": True, "items": [_driver_row(d, p) for d, p in rows]}


@router.get("/drivers/{driver_id}")
def api_admin_driver_details(driver_id: int, db: Session = Depends(get_db)):
    try:
        d, p = admin_service.driver_details(db, driver_id)
    except SERVICE_ERRORS as e:
        raise http_error(e)
    return {"ok": True, "driver": _driver_row(d, p)}


@router.post("/drivers/{driver_id}/approve")
def api_admin_approve(driver_id: int, background_tasks: BackgroundTasks, db: Session = Depends(get_db)):
    try:
        d = admin_service.approve_driver(db, driver_id)
    except SERVICE_ERRORS as e:
        db.rollback()
        raise http_error(e)
    background_tasks.add_task(hub.publish, "driver_status", {"driver_id": d.id, "status": d.status.value}, to=(d.id,))
    return {"ok": True, "driver_id": d.id, "status": d.status.value, "message": "Driver approved"}


@router.post("/drivers/{driver_id}/reject")
def api_admin_reject(driver_id: int, payload: dict, background_tasks: BackgroundTasks, db: Session = Depends(get_db)):
    try:
        d = admin_service.reject_driver(db, driver_id, payload.get("reason"))
    except SERVICE_ERRORS as e:
        db.rollback()
        raise http_error(e)
    background_tasks.add_task(hub.publish, "driver_status", {"driver_id": d.id, "status": d.status.value}, to=(d.id,))
    frozen = d.status.value == "frozen"
    return {
        "ok": True,
        "driver_id": d.id,
        "status": d.status.value,
        "rejection_count": d.rejection_count,
        "message": "Driver account frozen" if frozen else "Driver rejected",
    }


@router.post("/drivers/{driver_id}/freeze")
def api_admin_freeze(driver_id: int, payload: Optional[dict] = None, db: Session = Depends(get_db)):
    try:
        d = admin_service.freeze_driver(db, driver_id, (payload or {}).get("reason"))
    except SERVICE_ERRORS as e:
        db.rollback()
        raise http_error(e)
    return {"ok": True, "driver_id": d.id, "status": d.status.value, "message": "Driver account frozen"}


@router.post("/drivers/{driver_id}/unfreeze")
def api_admin_unfreeze(driver_id: int, db: Session = Depends(get_db)):
    try:
        d = admin_service.unfreeze_driver(db, driver_id)
    except SERVICE_ERRORS as e:
        db.rollback()
        raise http_error(e)
    return {"ok": True, "driver_id": d.id, "status": d.status.value, "message": "Driver sent back to review"}


@router.post("/drivers/delete-rejected")
def api_admin_delete_rejected(db: Session = Depends(get_db)):
    n = admin_service.delete_rejected_applications(db)
    return {"ok": True, "deleted": n, "message": f"Deleted {n} rejected applications"}


# ---------- users ----------

@router.post("/users/{user_id}/status")
def api_admin_user_status(user_id: int, payload: dict, db: Session = Depends(get_db)):
    try:
        p = admin_service.set_user_status(db, user_id, (payload.get("status") or "").lower())
    except SERVICE_ERRORS as e:
        db.rollback()
        raise http_error(e)
    return {"ok": True, "user": _profile_row(p), "message": f"User is now {p.status.value}"}


@router.get("/customers")
def api_admin_customers(search: Optional[str] = Query(None), db: Session = Depends(get_db)):
    return {"ok": True, "items": [_profile_row(p) for p in admin_service.list_customers(db, search)]}


# ---------- orders ----------

@router.get("/orders")
def api_admin_orders(
    status: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
):
    try:
        rows = admin_service.list_orders(db, status, limit)
    except SERVICE_ERRORS as e:
        raise http_error(e)
    return {"ok": True, "items": [order_service.order_to_public(o) for o in rows]}


# ---------- complaints ----------

@router.get("/complaints")
def api_admin_complaints(status: Optional[str] = Query(None), db: Session = Depends(get_db)):
    try:
        rows = complaint_service.list_complaints(db, status)
    except SERVICE_ERRORS as e:
        raise http_error(e)
    return {"ok": True, "items": [complaint_service.complaint_to_public(c) for c in rows]}


@router.post("/complaints/{complaint_id}/process")
def api_admin_process_complaint(
    complaint_id: int,
    payload: Optional[dict] = None,
    admin: Account = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        c = complaint_service.process_complaint(db, complaint_id, admin.id, (payload or {}).get("response"))
    except SERVICE_ERRORS as e:
        db.rollback()
        raise http_error(e)
    return {"ok": True, "complaint": complaint_service.complaint_to_public(c)}


@router.post("/complaints/{complaint_id}/resolve")
def api_admin_resolve_complaint(
    complaint_id: int,
    payload: Optional[dict] = None,
    admin: Account = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        c = complaint_service.resolve_complaint(db, complaint_id, admin.id, (payload or {}).get("response"))
    except SERVICE_ERRORS as e:
        db.rollback()
        raise http_error(e)
    return {"ok": True, "complaint": complaint_service.complaint_to_public(c), "message": "Complaint resolved"}


# ---------- dashboard ----------

@router.get("/stats")
def api_admin_stats(db: Session = Depends(get_db)):
    return {"ok": True, **admin_service.stats(db)}


@router.get("/finance")
def api_admin_finance(period: str = Query("month"), db: Session = Depends(get_db)):
    try:
        return {"ok": True, **finance_service.financial_summary(db, period)}
    except SERVICE_ERRORS as e:
        raise http_error(e)


@router.get("/settings")
def api_admin_settings(db: Session = Depends(get_db)):
    return {"ok": True, "settings": system_settings.all_settings(db)}


@router.put("/settings")
def api_admin_update_settings(payload: dict, db: Session = Depends(get_db)):
    try:
        values = system_settings.update_settings(db, payload)
    except (TypeError, *SERVICE_ERRORS) as e:
        db.rollback()
        raise http_error(e)
    return {"ok": True, "settings": values, "message": "Settings saved"}
