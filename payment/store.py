# src/payment/store.py
import logging
from datetime import datetime
from typing import Dict, FrozenSet, List, Optional

from sqlalchemy.orm import Session

from database import utcnow
from errors import AnomalousTransition
from payment.models import PaymentAttempt

logger = logging.getLogger(__name__)

PENDING = "pending"
COMPLETED = "completed"
FAILED = "failed"
REFUNDED = "refunded"

ALLOWED_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    PENDING: frozenset({COMPLETED, FAILED}),
    COMPLETED: frozenset({REFUNDED}),
    FAILED: frozenset(),
    REFUNDED: frozenset(),
}


class PaymentRecordStore:
    @staticmethod
    def create(
            db: Session,
            user_id: str,
            plan_id: str,
            token: str,
            amount: int,
            currency: str = "usd",
            customer_email: Optional[str] = None,
            status: str = PENDING,
            commit: bool = True
    ) -> PaymentAttempt:
        payment = PaymentAttempt(
            user_id=user_id,
            plan_id=plan_id,
            token=token,
            amount=amount,
            currency=currency,
            status=status,
            customer_email=customer_email,
        )
        db.add(payment)
        if commit:
            db.commit()
            db.refresh(payment)
        else:
            db.flush()
        return payment

    @staticmethod
    def find_by_token(db: Session, token: str, for_update: bool = False) -> Optional[PaymentAttempt]:
        query = db.query(PaymentAttempt).filter(PaymentAttempt.token == token)
        if for_update:
            query = query.with_for_update().populate_existing()
        return query.first()

    @staticmethod
    def update_status(db: Session, token: str, new_status: str, commit: bool = True) -> PaymentAttempt:
        """Move a payment along the state machine.

        Re-applying the current status is a no-op. Any transition outside
        ALLOWED_TRANSITIONS is rejected with AnomalousTransition and nothing
        is written.
        """
        if new_status not in ALLOWED_TRANSITIONS:
            raise ValueError(f"Unknown payment status: {new_status}")

        payment = PaymentRecordStore.find_by_token(db, token, for_update=True)
        if payment is None:
            logger.warning(f"Status update {new_status} for unknown payment {token}")
            raise AnomalousTransition(token, None, new_status)

        if payment.status == new_status:
            logger.info(f"Payment {token} already {new_status}, nothing to do")
            return payment

        if new_status not in ALLOWED_TRANSITIONS[payment.status]:
            logger.warning(f"Rejected payment transition {token}: {payment.status} -> {new_status}")
            raise AnomalousTransition(token, payment.status, new_status)

        payment.status = new_status
        payment.updated_at = utcnow()
        if commit:
            db.commit()
        else:
            db.flush()
        logger.info(f"Payment {token} moved to {new_status}")
        return payment

    @staticmethod
    def list_for_user(db: Session, user_id: str) -> List[PaymentAttempt]:
        return (
            db.query(PaymentAttempt)
            .filter(PaymentAttempt.user_id == user_id)
            .order_by(PaymentAttempt.created_at.desc(), PaymentAttempt.id.desc())
            .all()
        )

    @staticmethod
    def list_stale_pending(db: Session, older_than: datetime) -> List[PaymentAttempt]:
        return (
            db.query(PaymentAttempt)
            .filter(PaymentAttempt.status == PENDING, PaymentAttempt.created_at < older_than)
            .all()
        )
