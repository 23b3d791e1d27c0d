# safedrop/routers/pages.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..deps import get_optional_role
from ..routing import guard
from ..services.roles import Role

router = APIRouter(tags=["pages"])


@router.get("/api/navigation/guard")
def api_navigation_guard(path: str = Query("/"), role: Optional[Role] = Depends(get_optional_role)):
    """Answers the client's protected-route wrapper from the cached session role."""
    return {"ok": True, "path": path, "role": role.kind if role else None, **guard(path, role)}


@router.get("/healthz")
def healthz():
    return {"ok": True}
