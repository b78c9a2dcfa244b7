# src/audit/services.py
import logging
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from audit.models import AuditEntry

logger = logging.getLogger(__name__)


class AuditAction(str, Enum):
    PAYMENT_INITIATED = "payment_initiated"
    PAYMENT_PENDING = "payment_pending"
    PAYMENT_FAILED = "payment_failed"
    PAYMENT_MISMATCH = "payment_mismatch"
    SUBSCRIPTION_CREATED = "subscription_created"
    SUBSCRIPTION_CANCELED = "subscription_canceled"
    FRAUD_DETECTED = "fraud_detected"
    REFUND_ANOMALY = "refund_anomaly"
    ANOMALOUS_TRANSITION = "anomalous_transition"
    INVALID_NOTIFICATION = "invalid_notification"
    NOTIFICATION_UNKNOWN_STATUS = "notification_unknown_status"
    NOTIFICATION_PROCESSING_ERROR = "notification_processing_error"
    RESOURCE_ACCESSED = "resource_accessed"
    ARTICLES_LISTED = "articles_listed"


def _json_safe(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    return value


class AuditLog:
    @staticmethod
    def log(
            db: Session,
            user_id: Optional[str],
            action: Union[AuditAction, str],
            details: Optional[Dict[str, Any]] = None,
            source_ip: Optional[str] = None
    ) -> Optional[AuditEntry]:
        """Append an audit entry.

        Callers commit their own work first: this commits the entry on its own
        and, if the write fails, rolls back only the entry and reports the
        failure to the error log instead of raising.
        """
        entry = AuditEntry(
            user_id=user_id,
            action=action.value if isinstance(action, AuditAction) else action,
            details=_json_safe(details or {}),
            source_ip=source_ip,
        )
        try:
            db.add(entry)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.error(f"Audit write failed: action={entry.action} user={user_id}", exc_info=True)
            return None
        return entry

    @staticmethod
    def list(
            db: Session,
            user_id: Optional[str] = None,
            action: Optional[str] = None,
            limit: int = 50
    ) -> List[AuditEntry]:
        """Newest entries first, optionally filtered."""
        query = db.query(AuditEntry)
        if user_id:
            query = query.filter(AuditEntry.user_id == user_id)
        if action:
            query = query.filter(AuditEntry.action == action)
        return query.order_by(AuditEntry.timestamp.desc(), AuditEntry.id.desc()).limit(limit).all()
