# src/payment/fraud.py
import logging
from typing import Optional

from sqlalchemy.orm import Session

from audit.services import AuditAction, AuditLog
from errors import FraudDetected
from subscription.plans import PlanCatalog, plan_catalog

logger = logging.getLogger(__name__)

# Processors convert decimal amounts to cents on their side; allow one cent of rounding.
PRICE_TOLERANCE = 1


class FraudGuard:
    def __init__(self, catalog: PlanCatalog = plan_catalog):
        self.catalog = catalog

    def validate(self, plan_id: Optional[str], claimed_amount: Optional[int]) -> bool:
        """True only if the plan exists and the amount is within one cent of its price."""
        plan = self.catalog.get_plan(plan_id)
        if plan is None or claimed_amount is None:
            return False
        return abs(claimed_amount - plan.price) <= PRICE_TOLERANCE

    def ensure_valid(
            self,
            db: Session,
            user_id: Optional[str],
            plan_id: Optional[str],
            claimed_amount: Optional[int],
            payment_token: str,
            source_ip: Optional[str] = None,
            notified_amount: Optional[str] = None
    ) -> None:
        """Raise FraudDetected, after recording it, when validate() fails."""
        if self.validate(plan_id, claimed_amount):
            return
        plan = self.catalog.get_plan(plan_id)
        expected = plan.price if plan else None
        logger.error(
            f"FRAUD DETECTED: amount {claimed_amount} for payment {payment_token} "
            f"doesn't match plan {plan_id} ({expected})"
        )
        details = {
            "payment_token": payment_token,
            "plan_id": plan_id,
            "expected_amount": expected,
            "claimed_amount": claimed_amount,
        }
        if notified_amount is not None:
            details["notified_amount"] = notified_amount
        AuditLog.log(db, user_id, AuditAction.FRAUD_DETECTED, details, source_ip)
        raise FraudDetected(plan_id, expected, claimed_amount)


fraud_guard = FraudGuard()
