from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..config import settings
from ..models.setting import SystemSetting

# monthly: 69 SAR / 30 days, yearly: 500 SAR / 365 days (instead of 12 * 69 = 828)
DEFAULT_PLANS: dict[str, dict[str, Any]] = {
    "monthly": {"amount": 69.0, "days": 30},
    "yearly": {"amount": 500.0, "days": 365},
}

EDITABLE_KEYS = ("commission_rate", "base_fare", "per_km_rate", "subscription_plans")


def _defaults() -> dict[str, Any]:
    return {
        "commission_rate": settings.DEFAULT_COMMISSION_RATE,
        "base_fare": settings.BASE_FARE,
        "per_km_rate": settings.PER_KM_RATE,
        "subscription_plans": DEFAULT_PLANS,
    }


def get_setting(db: Session, key: str, default: Any = None) -> Any:
    row = db.get(SystemSetting, key)
    if row is not None and row.value is not None:
        return row.value
    if default is not None:
        return default
    return _defaults().get(key)


def all_settings(db: Session) -> dict[str, Any]:
    out = _defaults()
    rows = db.execute(select(SystemSetting)).scalars().all()
    for r in rows:
        if r.value is not None:
            out[r.key] = r.value
    return out


def _validate(key: str, value: Any) -> Any:
    if key == "commission_rate":
        rate = float(value)
        # admins may send a percentage (15) or a fraction (0.15)
        if rate > 1:
            rate = rate / 100.0
        if not 0 <= rate < 1:
            raise ValueError("commission_rate must be between 0 and 100%")
        return rate
    if key in ("base_fare", "per_km_rate"):
        amount = float(value)
        if amount < 0:
            raise ValueError(f"{key} must not be negative")
        return amount
    if key == "subscription_plans":
        if not isinstance(value, dict) or not value:
            raise ValueError("subscription_plans must be a non-empty object")
        for name, plan in value.items():
            if not isinstance(plan, dict) or float(plan.get("amount", 0)) <= 0 or int(plan.get("days", 0)) <= 0:
                raise ValueError(f"plan {name} needs positive amount and days")
        return value
    raise ValueError(f"Unknown setting: {key}")


def update_settings(db: Session, payload: dict[str, Any]) -> dict[str, Any]:
    changed = {k: _validate(k, v) for k, v in payload.items() if k in EDITABLE_KEYS}
    if not changed:
        raise ValueError("Nothing to update")
    for key, value in changed.items():
        row = db.get(SystemSetting, key)
        if row is None:
            db.add(SystemSetting(key=key, value=value))
        else:
            row.value = value
    db.commit()
    return all_settings(db)
