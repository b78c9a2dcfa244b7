# src/payment/schemas.py
from pydantic import BaseModel
from datetime import datetime
from typing import List, Optional

from subscription.plans import PublicPlan


class PlansResponse(BaseModel):
    plans: List[PublicPlan]


class CheckoutRequest(BaseModel):
    """Checkout input. The price always comes from the plan catalog."""
    plan_id: str


class CheckoutPlan(BaseModel):
    id: str
    name: str
    price: int
    currency: str


class CheckoutResponse(BaseModel):
    """Schema for checkout creation response."""
    checkout_token: str
    checkout_url: str
    plan: CheckoutPlan


class PaymentStatusResponse(BaseModel):
    token: str
    status: str
    amount: int
    plan_id: str


class PaymentHistoryItem(BaseModel):
    """Schema for a user's payment history entry."""
    token: str
    plan_id: str
    plan_name: Optional[str] = None
    amount: int
    currency: str
    status: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class PaymentResponse(BaseModel):
    """Schema for payment response (admin)."""
    id: int
    user_id: str
    plan_id: str
    token: str
    amount: int
    currency: str
    status: str
    customer_email: Optional[str]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
