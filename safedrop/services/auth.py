from __future__ import annotations

import logging
import re
from typing import Any, Dict, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..config import settings
from ..models.account import Account
from ..models.driver import Driver, DriverStatus
from ..models.profile import Profile, ProfileStatus, UserRole, UserType
from ..utils.dates import utcnow
from ..utils.security import check_password, create_jwt, decode_jwt, hash_password
from .roles import Role, resolve_role

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_PASSWORD_LEN = 6


def _clean(payload: Dict[str, Any], key: str) -> str:
    return (payload.get(key) or "").strip()


def email_exists(db: Session, email: str) -> bool:
    return db.execute(
        select(Account.id).where(Account.email == email.strip().lower())
    ).first() is not None


def _create_account(db: Session, payload: Dict[str, Any], user_type: UserType) -> Account:
    email = _clean(payload, "email").lower()
    password = payload.get("password") or ""
    first_name = _clean(payload, "first_name")
    last_name = _clean(payload, "last_name")
    phone = _clean(payload, "phone")

    if not _EMAIL_RE.match(email):
        raise ValueError("A valid email is required")
    if len(password) < MIN_PASSWORD_LEN:
        raise ValueError(f"Password must be at least {MIN_PASSWORD_LEN} characters")
    if not first_name or not last_name or not phone:
        raise ValueError("first_name, last_name and phone are required")
    if email == settings.ADMIN_EMAIL.lower():
        raise ValueError("This email is reserved")
    if email_exists(db, email):
        raise ValueError("This email is already registered")

    account = Account(
        email=email,
        password_hash=hash_password(password),
        user_metadata={
            "user_type": user_type.value,
            "first_name": first_name,
            "last_name": last_name,
            "phone": phone,
        },
    )
    db.add(account)
    db.flush()

    db.add(Profile(
        id=account.id,
        first_name=first_name,
        last_name=last_name,
        phone=phone,
        email=email,
        address=_clean(payload, "address") or None,
        user_type=user_type,
    ))
    db.flush()
    return account


def register_customer(db: Session, payload: Dict[str, Any]) -> Account:
    account = _create_account(db, payload, UserType.CUSTOMER)
    db.commit()
    db.refresh(account)
    logger.info("customer registered: %s", account.email)
    return account


def register_driver(db: Session, payload: Dict[str, Any]) -> Account:
    """
    Driver signup: account + profile + drivers row in the pending state.
    """
    national_id = _clean(payload, "national_id")
    license_number = _clean(payload, "license_number")
    if not national_id or not license_number:
        raise ValueError("national_id and license_number are required")
    vehicle_info = payload.get("vehicle_info") or {}
    if not isinstance(vehicle_info, dict):
        raise ValueError("vehicle_info must be an object")

    account = _create_account(db, payload, UserType.DRIVER)
    db.add(Driver(
        id=account.id,
        status=DriverStatus.PENDING,
        national_id=national_id,
        license_number=license_number,
        license_image=_clean(payload, "license_image") or None,
        vehicle_info=vehicle_info,
        is_available=False,
    ))
    db.commit()
    db.refresh(account)
    logger.info("driver registered: %s", account.email)
    return account


def authenticate(db: Session, email: str, password: str) -> Tuple[Account, Role]:
    """
    Check credentials and resolve the role.
    Raises PermissionError for bad credentials or a suspended/banned profile,
    UnknownUserType when no role can be derived.
    """
    email = (email or "").strip().lower()
    account = db.execute(select(Account).where(Account.email == email)).scalar_one_or_none()
    if not account or not check_password(password or "", account.password_hash):
        raise PermissionError("Invalid email or password")

    role = resolve_role(db, account)

    profile = db.get(Profile, account.id)
    if profile is not None and profile.status != ProfileStatus.ACTIVE:
        raise PermissionError(f"Account is {profile.status.value}")

    account.last_sign_in_at = utcnow()
    db.commit()
    return account, role


def admin_password_login(db: Session, password: str) -> Account:
    """
    Static admin password from settings. Makes sure the admin account,
    profile and admin role rows exist.
    """
    if not password:
        raise ValueError("Password is required")
    if not settings.ADMIN_PASSWORD or password != settings.ADMIN_PASSWORD:
        raise PermissionError("Invalid admin password")

    email = settings.ADMIN_EMAIL.lower()
    account = db.execute(select(Account).where(Account.email == email)).scalar_one_or_none()
    if account is None:
        account = Account(
            email=email,
            password_hash=hash_password(password),
            user_metadata={"user_type": UserType.ADMIN.value, "first_name": "Admin", "last_name": "User"},
        )
        db.add(account)
        db.flush()
    elif (account.user_metadata or {}).get("user_type") != UserType.ADMIN.value:
        # never promote an account someone else registered under the admin email
        logger.warning("admin login refused: %s is not an admin account", email)
        raise PermissionError("Admin account is misconfigured, contact support")

    profile = db.get(Profile, account.id)
    if profile is not None and profile.user_type != UserType.ADMIN:
        logger.warning("admin login refused: profile %s is a %s", account.id, profile.user_type.value)
        raise PermissionError("Admin account is misconfigured, contact support")
    if profile is None:
        db.add(Profile(
            id=account.id,
            first_name="Admin",
            last_name="User",
            phone="+966000000000",
            email=email,
            user_type=UserType.ADMIN,
        ))

    has_role = db.execute(
        select(UserRole.id).where(UserRole.user_id == account.id, UserRole.role == "admin")
    ).first()
    if not has_role:
        db.add(UserRole(user_id=account.id, role="admin"))

    account.last_sign_in_at = utcnow()
    db.commit()
    db.refresh(account)
    return account


# ---------- password reset ----------

RESET_PURPOSE = "password_reset"


def _password_fingerprint(account: Account) -> str:
    # tail of the bcrypt hash; changes with every new password
    return account.password_hash[-16:]


def request_password_reset(db: Session, email: str) -> Optional[Tuple[Account, str]]:
    """
    Issue a short-lived reset token for a registered email.
    Returns None for unknown emails and the admin account so callers
    can answer the same way either way.
    """
    email = (email or "").strip().lower()
    if not _EMAIL_RE.match(email):
        raise ValueError("A valid email is required")
    if email == settings.ADMIN_EMAIL.lower():
        logger.warning("password reset refused for the admin account")
        return None
    account = db.execute(select(Account).where(Account.email == email)).scalar_one_or_none()
    if account is None:
        logger.info("password reset requested for unknown email")
        return None

    token = create_jwt(
        {"sub": str(account.id), "purpose": RESET_PURPOSE, "pwd": _password_fingerprint(account)},
        ttl=settings.RESET_TOKEN_TTL_SEC,
    )
    logger.info("password reset issued for account %s", account.id)
    return account, token


def reset_password(db: Session, token: str, password: str) -> Account:
    """Set a new password from a reset token. A token works once."""
    claims = decode_jwt(token) if token else None
    if not claims or claims.get("purpose") != RESET_PURPOSE or claims.get("sub") is None:
        raise PermissionError("Reset link is invalid or has expired")
    password = password or ""
    if len(password) < MIN_PASSWORD_LEN:
        raise ValueError(f"Password must be at least {MIN_PASSWORD_LEN} characters")

    account = db.get(Account, int(claims["sub"]))
    if account is None or claims.get("pwd") != _password_fingerprint(account):
        raise PermissionError("Reset link is invalid or has expired")

    account.password_hash = hash_password(password)
    db.commit()
    db.refresh(account)
    logger.info("password reset for account %s", account.id)
    return account
