# src/subscription/models.py
from sqlalchemy import Column, Integer, String, DateTime
from database import Base, utcnow
from datetime import datetime
from typing import Optional

class Subscription(Base):
    """Represents a user subscription granted by a completed payment."""
    __tablename__ = "subscriptions"

    id: int = Column(Integer, primary_key=True, index=True)
    user_id: str = Column(String, nullable=False, index=True)
    plan_id: str = Column(String, nullable=False)
    payment_token: str = Column(String, nullable=False, unique=True, index=True)
    status: str = Column(String, nullable=False, default="active")  # active, canceled
    cancel_reason: Optional[str] = Column(String, nullable=True)  # superseded, refunded
    expires_at: datetime = Column(DateTime, nullable=False)
    created_at: datetime = Column(DateTime, nullable=False, default=utcnow)
    updated_at: datetime = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def effective_status(self, now: Optional[datetime] = None) -> str:
        """Status with lazy expiry applied; "expired" is never written."""
        now = now or utcnow()
        if self.status == "active" and self.expires_at <= now:
            return "expired"
        return self.status
