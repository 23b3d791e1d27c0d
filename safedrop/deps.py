# safedrop/deps.py
from __future__ import annotations

from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from .config import settings
from .db import get_db
from .exceptions import (
    OrderUnavailable, ClaimInProgress, SubscriptionRequired, UnknownUserType, FunctionCallError,
)
from .models.account import Account
from .models.profile import Profile, ProfileStatus
from .services.roles import (
    Role, AdminRole, CustomerRole, DriverRole,
    resolve_role, role_to_session, role_from_session,
)
from .utils.security import decode_jwt


# ------------------ error mapping ------------------

def http_error(e: Exception) -> HTTPException:
    """Translate a service-layer exception into the HTTP error the client sees."""
    if isinstance(e, HTTPException):
        return e
    if isinstance(e, SubscriptionRequired):
        return HTTPException(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail={"message": e.message, "paywall": True},
        )
    if isinstance(e, (OrderUnavailable, ClaimInProgress)):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)
    if isinstance(e, UnknownUserType):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=e.message)
    if isinstance(e, FunctionCallError):
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message)
    if isinstance(e, PermissionError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    if isinstance(e, LookupError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e).strip("'\""))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


SERVICE_ERRORS = (
    PermissionError, LookupError, ValueError,
    OrderUnavailable, ClaimInProgress, SubscriptionRequired, UnknownUserType, FunctionCallError,
)


# ------------------ session ------------------

def _token_from_request(request: Request, authorization: Optional[str]) -> Optional[str]:
    if authorization and authorization.lower().startswith("bearer "):
        return authorization[7:].strip()
    return request.cookies.get(settings.COOKIE_NAME)


def get_current_account(
    request: Request,
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db),
) -> Account:
    # 1) signed session cookie
    uid = request.session.get("uid")

    # 2) JWT from the access_token cookie or Authorization header
    if uid is None:
        token = _token_from_request(request, authorization)
        claims = decode_jwt(token) if token else None
        # purpose-bound tokens (password reset) never sign anyone in
        if claims and claims.get("sub") is not None and "purpose" not in claims:
            uid = claims["sub"]
            request.session["uid"] = int(uid)

    if uid is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not signed in")

    account = db.get(Account, int(uid))
    if account is None:
        request.session.clear()
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Session is no longer valid")

    profile = db.get(Profile, account.id)
    if profile is not None and profile.status != ProfileStatus.ACTIVE:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=f"Account is {profile.status.value}")
    return account


def cache_role(request: Request, account: Account, role: Role) -> None:
    request.session["uid"] = account.id
    request.session["role"] = role_to_session(role)


def get_current_role(
    request: Request,
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db),
) -> Role:
    """Role resolved once and then served from the session."""
    cached = role_from_session(request.session.get("role"))
    if cached is not None:
        return cached
    try:
        role = resolve_role(db, account)
    except UnknownUserType as e:
        request.session.clear()
        raise http_error(e)
    cache_role(request, account, role)
    return role


def get_optional_role(request: Request) -> Optional[Role]:
    return role_from_session(request.session.get("role"))


# ------------------ role guards ------------------

def require_admin(
    account: Account = Depends(get_current_account),
    role: Role = Depends(get_current_role),
) -> Account:
    if not isinstance(role, AdminRole):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return account


def require_customer(
    account: Account = Depends(get_current_account),
    role: Role = Depends(get_current_role),
) -> Account:
    if not isinstance(role, CustomerRole):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Customer access required")
    return account


def require_driver(
    account: Account = Depends(get_current_account),
    role: Role = Depends(get_current_role),
) -> Account:
    """Any driver; approval itself is re-checked by the service at the point of use."""
    if not isinstance(role, DriverRole):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Driver access required")
    return account
