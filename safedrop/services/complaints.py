from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..models.complaint import Complaint, ComplaintResponse, ComplaintStatus
from ..models.order import Order
from ..utils.dates import iso


def create_complaint(db: Session, user_id: int, payload: Dict[str, Any]) -> Complaint:
    subject = (payload.get("subject") or "").strip()
    description = (payload.get("description") or "").strip()
    if not subject or not description:
        raise ValueError("subject and description are required")

    order_id = payload.get("order_id")
    if order_id not in (None, ""):
        o = db.get(Order, int(order_id))
        if o is None:
            raise LookupError("Order not found")
        # only orders the user took part in
        if user_id not in (o.customer_id, o.driver_id):
            raise PermissionError("You can only complain about your own orders")
        order_id = o.id
    else:
        order_id = None

    c = Complaint(user_id=user_id, order_id=order_id, subject=subject, description=description)
    db.add(c)
    db.commit()
    db.refresh(c)
    return c


def list_user_complaints(db: Session, user_id: int) -> List[Complaint]:
    return db.execute(
        select(Complaint).where(Complaint.user_id == user_id).order_by(Complaint.id.desc())
    ).scalars().all()


def list_complaints(db: Session, status: Optional[str] = None) -> List[Complaint]:
    q = select(Complaint)
    if status:
        q = q.where(Complaint.status == ComplaintStatus(status))
    return db.execute(q.order_by(Complaint.id.desc())).scalars().all()


def _set_status(db: Session, complaint_id: int, status: ComplaintStatus,
                admin_id: Optional[int], response: Optional[str]) -> Complaint:
    c = db.get(Complaint, complaint_id)
    if not c:
        raise LookupError("Complaint not found")
    if c.status == ComplaintStatus.RESOLVED:
        raise ValueError("Complaint is already resolved")
    c.status = status
    if response and response.strip():
        db.add(ComplaintResponse(complaint_id=c.id, admin_id=admin_id, response=response.strip()))
    db.commit()
    db.refresh(c)
    return c


def process_complaint(db: Session, complaint_id: int, admin_id: Optional[int] = None,
                      response: Optional[str] = None) -> Complaint:
    return _set_status(db, complaint_id, ComplaintStatus.PROCESSING, admin_id, response)


def resolve_complaint(db: Session, complaint_id: int, admin_id: Optional[int] = None,
                      response: Optional[str] = None) -> Complaint:
    return _set_status(db, complaint_id, ComplaintStatus.RESOLVED, admin_id, response)


def complaint_to_public(c: Complaint) -> Dict[str, Any]:
    return {
        "id": c.id,
        "user_id": c.user_id,
        "order_id": c.order_id,
        "subject": c.subject,
        "description": c.description,
        "status": ComplaintStatus(c.status).value,
        "responses": [
            {"id": r.id, "admin_id": r.admin_id, "response": r.response, "created_at": iso(r.created_at)}
            for r in c.responses
        ],
        "created_at": iso(c.created_at),
        "updated_at": iso(c.updated_at),
    }
