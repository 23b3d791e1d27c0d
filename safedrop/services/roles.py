"""
Role resolution.

Every login and every protected request goes through ``resolve_role``,
which collapses the admin-role table, the account metadata and the profile
row into one tagged value:

    AdminRole | CustomerRole | DriverRole(status)

The value is cached in the signed session (``role_to_session`` /
``role_from_session``) for the lifetime of the session.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Union

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..exceptions import UnknownUserType
from ..models.account import Account
from ..models.driver import Driver, DriverStatus
from ..models.profile import Profile, UserRole, UserType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AdminRole:
    kind = "admin"

    @property
    def redirect(self) -> str:
        return "/admin/dashboard"


@dataclass(frozen=True)
class CustomerRole:
    kind = "customer"

    @property
    def redirect(self) -> str:
        return "/customer/dashboard"


@dataclass(frozen=True)
class DriverRole:
    status: DriverStatus
    kind = "driver"

    @property
    def redirect(self) -> str:
        if self.status == DriverStatus.APPROVED:
            return "/driver/dashboard"
        return "/driver/pending-approval"


Role = Union[AdminRole, CustomerRole, DriverRole]


def _parse_user_type(raw) -> Optional[UserType]:
    if isinstance(raw, UserType):
        return raw
    try:
        return UserType((raw or "").strip().lower())
    except ValueError:
        return None


def _profile_from_metadata(db: Session, account: Account, user_type: UserType) -> Profile:
    meta = account.user_metadata or {}
    p = Profile(
        id=account.id,
        first_name=meta.get("first_name") or "",
        last_name=meta.get("last_name") or "",
        phone=meta.get("phone") or "",
        email=account.email,
        user_type=user_type,
    )
    db.add(p)
    if user_type == UserType.DRIVER and db.get(Driver, account.id) is None:
        db.flush()
        db.add(Driver(
            id=account.id,
            status=DriverStatus.PENDING,
            national_id=meta.get("national_id") or "",
            license_number=meta.get("license_number") or "",
            vehicle_info=meta.get("vehicle_info") or {},
        ))
    db.commit()
    logger.info("created missing %s profile for account %s", user_type.value, account.id)
    return p


def resolve_role(db: Session, account: Account) -> Role:
    """
    1) explicit admin row in user_roles
    2) user_type from account metadata, then from the profile row
    3) profile row created from metadata when missing
    """
    is_admin = db.execute(
        select(UserRole.id).where(UserRole.user_id == account.id, UserRole.role == "admin")
    ).first()
    if is_admin:
        return AdminRole()

    profile = db.get(Profile, account.id)
    user_type = _parse_user_type((account.user_metadata or {}).get("user_type"))
    if user_type is None and profile is not None:
        user_type = _parse_user_type(profile.user_type)
    if user_type is None:
        raise UnknownUserType()

    if profile is None:
        _profile_from_metadata(db, account, user_type)

    if user_type == UserType.ADMIN:
        return AdminRole()
    if user_type == UserType.CUSTOMER:
        return CustomerRole()

    driver = db.get(Driver, account.id)
    status = driver.status if driver is not None else DriverStatus.PENDING
    return DriverRole(status=DriverStatus(status))


# ---------- session cache ----------

def role_to_session(role: Role) -> dict:
    data = {"kind": role.kind}
    if isinstance(role, DriverRole):
        data["status"] = role.status.value
    return data


def role_from_session(data) -> Optional[Role]:
    if not isinstance(data, dict):
        return None
    kind = data.get("kind")
    if kind == "admin":
        return AdminRole()
    if kind == "customer":
        return CustomerRole()
    if kind == "driver":
        try:
            return DriverRole(status=DriverStatus(data.get("status")))
        except ValueError:
            return None
    return None
