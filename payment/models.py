# src/payment/models.py
from sqlalchemy import Column, Integer, String, DateTime
from database import Base, utcnow
from datetime import datetime
from typing import Optional

class PaymentAttempt(Base):
    """Represents one checkout attempt and its confirmation status."""
    __tablename__ = "payments"

    id: int = Column(Integer, primary_key=True, index=True)
    user_id: str = Column(String, nullable=False, index=True)
    plan_id: str = Column(String, nullable=False)
    token: str = Column(String, nullable=False, unique=True, index=True)  # processor transaction id
    amount: int = Column(Integer, nullable=False)  # cents
    currency: str = Column(String, nullable=False, default="usd")
    status: str = Column(String, nullable=False, default="pending")  # pending, completed, failed, refunded
    customer_email: Optional[str] = Column(String, nullable=True)
    created_at: datetime = Column(DateTime, nullable=False, default=utcnow)
    updated_at: datetime = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
