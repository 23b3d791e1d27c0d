# safedrop/routers/auth.py
from __future__ import annotations

from urllib.parse import urlencode

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..config import settings
from ..db import get_db
from ..deps import SERVICE_ERRORS, cache_role, get_current_account, get_current_role, http_error
from ..exceptions import UnknownUserType
from ..models.account import Account
from ..models.profile import Profile
from ..services import auth as auth_service
from ..services.functions import notify_admin, send_password_reset
from ..services.roles import AdminRole, CustomerRole, DriverRole, Role
from ..utils.dates import iso
from ..utils.security import create_jwt

router = APIRouter(prefix="/api/auth", tags=["auth"])

# client-side hint cookies; authorization always comes from the session
HINT_COOKIES = ("adminAuth", "adminEmail", "customerAuth", "driverAuth", "driverRejectionCount")


def _set_cookie(resp: JSONResponse, key: str, value: str, httponly: bool = False) -> None:
    resp.set_cookie(
        key, value,
        max_age=settings.JWT_TTL_SEC,
        secure=settings.COOKIE_SECURE,
        samesite=settings.COOKIE_SAMESITE,
        httponly=httponly,
    )


def _login_response(request: Request, account: Account, role: Role, message: str) -> JSONResponse:
    cache_role(request, account, role)
    resp = JSONResponse({
        "ok": True,
        "message": message,
        "role": role.kind,
        "redirect": role.redirect,
    })
    resp.headers["Cache-Control"] = "no-store"
    _set_cookie(resp, settings.COOKIE_NAME, create_jwt({"sub": str(account.id), "role": role.kind}), httponly=True)
    for key in HINT_COOKIES:
        resp.delete_cookie(key)
    if isinstance(role, AdminRole):
        _set_cookie(resp, "adminAuth", "true")
        _set_cookie(resp, "adminEmail", account.email)
    elif isinstance(role, CustomerRole):
        _set_cookie(resp, "customerAuth", "true")
    elif isinstance(role, DriverRole):
        _set_cookie(resp, "driverAuth", "true")
    return resp


# ---------- registration ----------

@router.get("/email-exists")
def api_email_exists(email: str = Query(...), db: Session = Depends(get_db)):
    return {"ok": True, "exists": auth_service.email_exists(db, email)}


def _signup_notice(account: Account) -> dict:
    meta = account.user_metadata or {}
    return {
        "first_name": meta.get("first_name"),
        "last_name": meta.get("last_name"),
        "email": account.email,
        "phone": meta.get("phone"),
        "user_type": meta.get("user_type"),
        "created_at": iso(account.created_at),
    }


@router.post("/register/customer", status_code=status.HTTP_201_CREATED)
def api_register_customer(payload: dict, background_tasks: BackgroundTasks, db: Session = Depends(get_db)):
    try:
        account = auth_service.register_customer(db, payload)
    except SERVICE_ERRORS as e:
        db.rollback()
        raise http_error(e)
    background_tasks.add_task(notify_admin, _signup_notice(account), "customer")
    return {"ok": True, "id": account.id, "message": "Account created, you can sign in now"}


@router.post("/register/driver", status_code=status.HTTP_201_CREATED)
def api_register_driver(payload: dict, background_tasks: BackgroundTasks, db: Session = Depends(get_db)):
    try:
        account = auth_service.register_driver(db, payload)
    except SERVICE_ERRORS as e:
        db.rollback()
        raise http_error(e)
    background_tasks.add_task(notify_admin, _signup_notice(account), "driver")
    return {
        "ok": True,
        "id": account.id,
        "status": "pending",
        "redirect": "/driver/pending-approval",
        "message": "Application received, it is now under review",
    }


# ---------- login / logout ----------

@router.post("/login")
def api_login(payload: dict, request: Request, db: Session = Depends(get_db)):
    request.session.clear()
    try:
        account, role = auth_service.authenticate(db, payload.get("email"), payload.get("password"))
    except UnknownUserType as e:
        # no usable role: the session stays signed out
        db.rollback()
        request.session.clear()
        raise http_error(e)
    except SERVICE_ERRORS as e:
        db.rollback()
        if isinstance(e, PermissionError) and str(e).startswith("Invalid"):
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e))
        raise http_error(e)
    return _login_response(request, account, role, "Signed in successfully")


@router.post("/admin-login")
def api_admin_login(payload: dict, request: Request, db: Session = Depends(get_db)):
    request.session.clear()
    try:
        account = auth_service.admin_password_login(db, payload.get("password") or "")
    except (PermissionError, ValueError) as e:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e))
    return _login_response(request, account, AdminRole(), "Welcome to the admin dashboard")


@router.post("/logout")
def api_logout(request: Request):
    request.session.clear()
    resp = JSONResponse({"ok": True, "redirect": "/login"})
    resp.delete_cookie(settings.COOKIE_NAME)
    for key in HINT_COOKIES:
        resp.delete_cookie(key)
    return resp


# ---------- password reset ----------

@router.post("/forgot-password")
def api_forgot_password(payload: dict, background_tasks: BackgroundTasks, db: Session = Depends(get_db)):
    try:
        issued = auth_service.request_password_reset(db, payload.get("email"))
    except SERVICE_ERRORS as e:
        raise http_error(e)
    if issued is not None:
        account, token = issued
        link = f"{settings.APP_URL.rstrip('/')}/reset-password?{urlencode({'token': token})}"
        background_tasks.add_task(send_password_reset, account.email, link)
    # same answer for known and unknown emails
    return {"ok": True, "message": "If this email is registered, a reset link is on its way"}


@router.post("/reset-password")
def api_reset_password(payload: dict, db: Session = Depends(get_db)):
    password = payload.get("password") or ""
    confirm = payload.get("confirm_password")
    if confirm is not None and confirm != password:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Passwords do not match")
    try:
        auth_service.reset_password(db, payload.get("token") or "", password)
    except SERVICE_ERRORS as e:
        db.rollback()
        raise http_error(e)
    return {"ok": True, "redirect": "/login", "message": "Password updated, sign in with the new password"}


@router.get("/me")
def api_me(
    account: Account = Depends(get_current_account),
    role: Role = Depends(get_current_role),
    db: Session = Depends(get_db),
):
    p = db.get(Profile, account.id)
    return {
        "ok": True,
        "user": {
            "id": account.id,
            "email": account.email,
            "name": p.display_name if p else None,
            "phone": p.phone if p else None,
            "status": p.status.value if p else None,
            "profile_image": p.profile_image if p else None,
        },
        "role": role.kind,
        "redirect": role.redirect,
    }
