# src/admin/routes.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Any, Dict, List, Optional
from datetime import datetime
from pydantic import BaseModel
from audit.services import AuditLog
from auth.routes import check_admin_role
from auth.schemas import SessionUser
from database import get_db, utcnow
from payment.models import PaymentAttempt
from payment.schemas import PaymentResponse
from subscription.models import Subscription
from subscription.schemas import SubscriptionResponse

router = APIRouter(prefix="/admin", tags=["admin"])


class AuditEntryResponse(BaseModel):
    """Schema for audit log entry."""
    id: int
    user_id: Optional[str]
    action: str
    details: Dict[str, Any]
    source_ip: Optional[str]
    timestamp: datetime

    class Config:
        from_attributes = True


@router.get("/audit", response_model=List[AuditEntryResponse])
def get_audit_log(
    user_id: Optional[str] = None,
    action: Optional[str] = None,
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
    current_user: SessionUser = Depends(check_admin_role)
):
    """Retrieve audit entries, newest first."""
    return [AuditEntryResponse.model_validate(entry) for entry in AuditLog.list(db, user_id, action, limit)]


@router.get("/payments", response_model=List[PaymentResponse])
def get_payments(
    status: Optional[str] = None,
    user_id: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: SessionUser = Depends(check_admin_role)
):
    """Retrieve payments with optional status and user filters."""
    query = db.query(PaymentAttempt)
    if status:
        query = query.filter(PaymentAttempt.status == status)
    if user_id:
        query = query.filter(PaymentAttempt.user_id == user_id)
    payments = query.order_by(PaymentAttempt.created_at.desc(), PaymentAttempt.id.desc()).all()
    return [PaymentResponse.model_validate(payment) for payment in payments]


@router.get("/subscriptions", response_model=List[SubscriptionResponse])
def get_subscriptions(
    plan_id: Optional[str] = None,
    user_id: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: SessionUser = Depends(check_admin_role)
):
    """Retrieve subscriptions with optional plan and user filters."""
    query = db.query(Subscription)
    if plan_id:
        query = query.filter(Subscription.plan_id == plan_id)
    if user_id:
        query = query.filter(Subscription.user_id == user_id)
    now = utcnow()
    subscriptions = query.order_by(Subscription.created_at.desc(), Subscription.id.desc()).all()
    return [SubscriptionResponse.from_subscription(sub, now) for sub in subscriptions]
