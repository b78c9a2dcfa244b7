# src/payment/services.py
from sqlalchemy.orm import Session
from typing import List, Optional
from uuid import uuid4
import logging

from audit.services import AuditAction, AuditLog
from auth.schemas import SessionUser
from errors import AuthorizationFailure, ValidationFailure
from payment.processor import PaymentProcessorClient, payment_processor
from payment.schemas import CheckoutPlan, CheckoutResponse, PaymentHistoryItem, PaymentStatusResponse
from payment.store import PaymentRecordStore
from subscription.plans import PlanCatalog, plan_catalog

logger = logging.getLogger(__name__)


class PaymentService:
    def __init__(self, processor: PaymentProcessorClient = payment_processor, catalog: PlanCatalog = plan_catalog):
        self.processor = processor
        self.catalog = catalog

    def create_checkout(
            self,
            user: SessionUser,
            plan_id: str,
            db: Session,
            source_ip: Optional[str] = None
    ) -> CheckoutResponse:
        """Open a checkout session for a catalog plan and record the pending attempt."""
        plan = self.catalog.get_plan(plan_id)
        if plan is None:
            raise ValidationFailure("Invalid plan")

        token = f"pay_{uuid4().hex}"
        # Network call first, outside any transaction; nothing is stored if it fails
        checkout_url = self.processor.create_checkout(token, plan, user.id, user.email)

        PaymentRecordStore.create(
            db, user.id, plan.id, token, plan.price, currency=plan.currency, customer_email=user.email
        )
        AuditLog.log(db, user.id, AuditAction.PAYMENT_INITIATED, {
            "payment_token": token,
            "plan_id": plan.id,
            "amount": plan.price,
        }, source_ip)
        logger.info(f"Checkout {token} created for user {user.id}, plan {plan.id}")

        return CheckoutResponse(
            checkout_token=token,
            checkout_url=checkout_url,
            plan=CheckoutPlan(id=plan.id, name=plan.name, price=plan.price, currency=plan.currency),
        )

    @staticmethod
    def get_status(user: SessionUser, token: str, db: Session) -> PaymentStatusResponse:
        """Status of a payment, visible to its owner only."""
        payment = PaymentRecordStore.find_by_token(db, token)
        if payment is None or payment.user_id != user.id:
            logger.warning(f"User {user.id} denied status of payment {token}")
            raise AuthorizationFailure()
        return PaymentStatusResponse(
            token=payment.token,
            status=payment.status,
            amount=payment.amount,
            plan_id=payment.plan_id,
        )

    def get_user_payments(self, user_id: str, db: Session) -> List[PaymentHistoryItem]:
        items = []
        for payment in PaymentRecordStore.list_for_user(db, user_id):
            item = PaymentHistoryItem.model_validate(payment)
            plan = self.catalog.get_plan(payment.plan_id)
            items.append(item.model_copy(update={"plan_name": plan.name if plan else None}))
        return items


payment_service = PaymentService()
