# src/subscription/routes.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List
from subscription.services import SubscriptionLedger
from subscription.schemas import SubscriptionResponse, SubscriptionStatusResponse, SubscriptionSummary
from auth.routes import get_current_user
from auth.schemas import SessionUser
from database import get_db, utcnow

router = APIRouter(prefix="/subscriptions", tags=["subscriptions"])


@router.get("/status", response_model=SubscriptionStatusResponse)
def get_subscription_status(
    db: Session = Depends(get_db),
    current_user: SessionUser = Depends(get_current_user)
):
    """Current subscription, with expiry applied at read time."""
    active_sub = SubscriptionLedger.find_active(db, current_user.id)
    return SubscriptionStatusResponse(
        has_active_subscription=active_sub is not None,
        subscription=SubscriptionSummary.from_subscription(active_sub) if active_sub else None,
    )


@router.get("/", response_model=List[SubscriptionResponse])
def get_user_subscriptions(
    db: Session = Depends(get_db),
    current_user: SessionUser = Depends(get_current_user)
):
    """Retrieve user subscriptions."""
    now = utcnow()
    return [
        SubscriptionResponse.from_subscription(sub, now)
        for sub in SubscriptionLedger.list_for_user(db, current_user.id)
    ]
