# safedrop/routers/complaints.py
from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.orm import Session

from ..db import get_db
from ..deps import SERVICE_ERRORS, http_error, get_current_account
from ..models.account import Account
from ..realtime import hub
from ..services import complaints as complaint_service

router = APIRouter(prefix="/api/complaints", tags=["complaints"])


@router.post("", status_code=status.HTTP_201_CREATED)
def api_create_complaint(
    payload: dict,
    background_tasks: BackgroundTasks,
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db),
):
    try:
        c = complaint_service.create_complaint(db, account.id, payload)
    except SERVICE_ERRORS as e:
        db.rollback()
        raise http_error(e)
    background_tasks.add_task(hub.publish, "complaint_created", {"complaint_id": c.id, "user_id": c.user_id}, to=())
    return {
        "ok": True,
        "complaint": complaint_service.complaint_to_public(c),
        "message": "Your complaint was sent to support",
    }


@router.get("/mine")
def api_my_complaints(account: Account = Depends(get_current_account), db: Session = Depends(get_db)):
    rows = complaint_service.list_user_complaints(db, account.id)
    return {"ok": True, "items": [complaint_service.complaint_to_public(c) for c in rows]}
