# src/webhooks/services.py
import logging
from datetime import timedelta
from typing import Callable, Dict, Optional

from fastapi import BackgroundTasks
from sqlalchemy.orm import Session

from audit.services import AuditAction, AuditLog
from config import settings
from database import utcnow
from errors import AnomalousTransition, FraudDetected, ValidationFailure
from payment.fraud import FraudGuard, fraud_guard
from payment.notifications import ReceiptMailer
from payment.store import PaymentRecordStore
from subscription.plans import PlanCatalog, plan_catalog
from subscription.services import SubscriptionLedger
from webhooks.events import NotificationStatus, PaymentNotification
from webhooks.verifier import VerifiedEvent

logger = logging.getLogger(__name__)

Handler = Callable[[PaymentNotification, Session, Optional[str], Optional[BackgroundTasks]], None]


class NotificationService:
    """Routes a verified notification to the handler for its status."""

    def __init__(self, guard: FraudGuard = fraud_guard, catalog: PlanCatalog = plan_catalog):
        self.guard = guard
        self.catalog = catalog
        self._handlers: Dict[NotificationStatus, Handler] = {
            NotificationStatus.SUCCEEDED: self.handle_succeeded,
            NotificationStatus.FAILED: self.handle_failed,
            NotificationStatus.PENDING: self.handle_pending,
            NotificationStatus.REFUNDED: self.handle_refunded,
            NotificationStatus.UNKNOWN: self.handle_unknown,
        }
        missing = set(NotificationStatus) - set(self._handlers)
        if missing:
            raise RuntimeError(f"No notification handler for: {sorted(s.value for s in missing)}")

    def dispatch(
            self,
            event: VerifiedEvent,
            db: Session,
            source_ip: Optional[str] = None,
            background_tasks: Optional[BackgroundTasks] = None
    ) -> Optional[NotificationStatus]:
        """Handle one notification. Returns the status it was classified as, None if rejected."""
        try:
            notification = PaymentNotification.parse(event.fields)
            kind = notification.kind
            logger.info(f"Notification {notification.token}: status={notification.status} -> {kind.value}")
            self._handlers[kind](notification, db, source_ip, background_tasks)
            return kind
        except ValidationFailure as exc:
            db.rollback()
            logger.warning(f"Invalid notification {event.digest}: {exc.detail}")
            user_id = event.fields.get("custom_param1") or event.fields.get("user_id")
            AuditLog.log(db, str(user_id) if user_id is not None else None,
                         AuditAction.INVALID_NOTIFICATION, {
                             "reason": exc.detail,
                             "payload_digest": event.digest,
                         }, source_ip)
            return None

    def handle_succeeded(self, notification: PaymentNotification, db: Session, source_ip=None, background_tasks=None):
        if not notification.user_id or not notification.plan_id or notification.amount is None:
            raise ValidationFailure("Success notification without user_id, plan_id or amount")
        claimed_amount = notification.amount_in_cents()
        token = notification.token

        payment = PaymentRecordStore.find_by_token(db, token)
        if payment is not None and (payment.user_id != notification.user_id or payment.plan_id != notification.plan_id):
            logger.error(f"Notification {token} does not match its checkout: user/plan differ")
            AuditLog.log(db, payment.user_id, AuditAction.PAYMENT_MISMATCH, {
                "payment_token": token,
                "expected_user_id": payment.user_id,
                "expected_plan_id": payment.plan_id,
                "notified_user_id": notification.user_id,
                "notified_plan_id": notification.plan_id,
            }, source_ip)
            return
        customer_email = payment.customer_email if payment is not None else None

        try:
            self.guard.ensure_valid(
                db, notification.user_id, notification.plan_id, claimed_amount, token, source_ip,
                notified_amount=str(notification.amount) if claimed_amount is None else None
            )
        except FraudDetected:
            return

        plan = self.catalog.get_plan(notification.plan_id)
        expires_at = utcnow() + timedelta(days=plan.duration_days)
        try:
            result = SubscriptionLedger.grant(
                db, notification.user_id, plan.id, token, expires_at,
                amount=claimed_amount, currency=plan.currency, source_ip=source_ip
            )
        except AnomalousTransition as exc:
            self._record_anomaly(db, notification.user_id, exc, source_ip)
            return

        if result.created and settings.RECEIPTS_ENABLED and customer_email and background_tasks is not None:
            background_tasks.add_task(
                ReceiptMailer.send_receipt,
                customer_email, plan.name, claimed_amount, plan.currency, result.subscription.expires_at, token
            )

    def handle_failed(self, notification: PaymentNotification, db: Session, source_ip=None, background_tasks=None):
        token = notification.token
        try:
            payment = SubscriptionLedger.mark_failed(db, token)
        except AnomalousTransition as exc:
            self._record_anomaly(db, notification.user_id, exc, source_ip)
            return
        if payment is None:
            return

        logger.warning(f"Payment failed: {token} ({notification.error_message or 'no reason given'})")
        AuditLog.log(db, payment.user_id, AuditAction.PAYMENT_FAILED, {
            "payment_token": token,
            "plan_id": payment.plan_id,
            "reason": notification.error_message,
        }, source_ip)

    def handle_pending(self, notification: PaymentNotification, db: Session, source_ip=None, background_tasks=None):
        logger.info(f"Payment pending: {notification.token}")
        AuditLog.log(db, notification.user_id, AuditAction.PAYMENT_PENDING, {
            "payment_token": notification.token,
            "plan_id": notification.plan_id,
        }, source_ip)

    def handle_refunded(self, notification: PaymentNotification, db: Session, source_ip=None, background_tasks=None):
        SubscriptionLedger.cancel(db, notification.token, source_ip)

    def handle_unknown(self, notification: PaymentNotification, db: Session, source_ip=None, background_tasks=None):
        logger.warning(f"Unknown notification status '{notification.status}' for {notification.token}")
        AuditLog.log(db, notification.user_id, AuditAction.NOTIFICATION_UNKNOWN_STATUS, {
            "payment_token": notification.token,
            "status": notification.status,
        }, source_ip)

    @staticmethod
    def _record_anomaly(db: Session, user_id: Optional[str], exc: AnomalousTransition, source_ip: Optional[str]):
        logger.warning(f"Anomalous transition: {exc}")
        AuditLog.log(db, user_id, AuditAction.ANOMALOUS_TRANSITION, {
            "payment_token": exc.token,
            "current_status": exc.current,
            "requested_status": exc.requested,
        }, source_ip)


notification_service = NotificationService()
