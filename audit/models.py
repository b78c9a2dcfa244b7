# src/audit/models.py
from sqlalchemy import Column, Integer, String, DateTime, JSON
from database import Base, utcnow
from datetime import datetime
from typing import Optional

class AuditEntry(Base):
    """Append-only record of a security-relevant event."""
    __tablename__ = "audit_log"

    id: int = Column(Integer, primary_key=True, index=True)
    user_id: Optional[str] = Column(String, nullable=True, index=True)
    action: str = Column(String, nullable=False, index=True)
    details: dict = Column(JSON, nullable=False, default=dict)
    source_ip: Optional[str] = Column(String, nullable=True)
    timestamp: datetime = Column(DateTime, nullable=False, default=utcnow)
