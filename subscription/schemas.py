# src/subscription/schemas.py
from pydantic import BaseModel
from datetime import datetime
from typing import List, Optional

from subscription.models import Subscription
from subscription.plans import plan_catalog


class SubscriptionSummary(BaseModel):
    """Active subscription as shown to its owner."""
    plan_id: str
    plan_name: Optional[str]
    status: str
    expires_at: datetime
    features: List[str] = []

    @classmethod
    def from_subscription(cls, subscription: Subscription, now: Optional[datetime] = None) -> "SubscriptionSummary":
        plan = plan_catalog.get_plan(subscription.plan_id)
        return cls(
            plan_id=subscription.plan_id,
            plan_name=plan.name if plan else None,
            status=subscription.effective_status(now),
            expires_at=subscription.expires_at,
            features=list(plan.features) if plan else [],
        )


class SubscriptionResponse(BaseModel):
    """Schema for subscription response."""
    id: int
    user_id: str
    plan_id: str
    payment_token: str
    status: str
    cancel_reason: Optional[str]
    expires_at: datetime
    created_at: datetime

    @classmethod
    def from_subscription(cls, subscription: Subscription, now: Optional[datetime] = None) -> "SubscriptionResponse":
        return cls(
            id=subscription.id,
            user_id=subscription.user_id,
            plan_id=subscription.plan_id,
            payment_token=subscription.payment_token,
            status=subscription.effective_status(now),
            cancel_reason=subscription.cancel_reason,
            expires_at=subscription.expires_at,
            created_at=subscription.created_at,
        )


class SubscriptionStatusResponse(BaseModel):
    has_active_subscription: bool
    subscription: Optional[SubscriptionSummary] = None
