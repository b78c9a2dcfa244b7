# src/auth/schemas.py
from pydantic import BaseModel
from typing import Optional

from subscription.schemas import SubscriptionSummary


class SessionUser(BaseModel):
    """Identity carried by a session token issued by the login service."""
    id: str
    email: Optional[str] = None
    role: str = "user"


class MeResponse(BaseModel):
    """Schema for /auth/me."""
    id: str
    email: Optional[str]
    role: str
    subscription: Optional[SubscriptionSummary] = None
