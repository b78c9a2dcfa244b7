# src/subscription/services.py
import logging
from datetime import datetime
from typing import List, NamedTuple, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from audit.services import AuditAction, AuditLog
from database import utcnow
from errors import AnomalousTransition
from payment.models import PaymentAttempt
from payment.store import COMPLETED, FAILED, REFUNDED, PaymentRecordStore
from subscription.locks import ledger_locks
from subscription.models import Subscription

logger = logging.getLogger(__name__)


class GrantResult(NamedTuple):
    subscription: Optional[Subscription]
    created: bool


def _token_key(token: str) -> str:
    return f"token:{token}"


def _user_key(user_id: str) -> str:
    return f"user:{user_id}"


class SubscriptionLedger:
    @staticmethod
    def find_by_payment_token(db: Session, payment_token: str, for_update: bool = False) -> Optional[Subscription]:
        query = db.query(Subscription).filter(Subscription.payment_token == payment_token)
        if for_update:
            query = query.with_for_update().populate_existing()
        return query.first()

    @staticmethod
    def grant(
            db: Session,
            user_id: str,
            plan_id: str,
            token: str,
            expires_at: datetime,
            amount: Optional[int] = None,
            currency: str = "usd",
            source_ip: Optional[str] = None
    ) -> GrantResult:
        """Turn a confirmed payment into a subscription, once per token.

        A token whose payment is already completed returns the subscription it
        produced and writes nothing. Otherwise the payment is completed, the
        user's previous active subscription is superseded and the new one is
        inserted in a single commit, under the token and user locks.
        """
        missing_attempt = False
        superseded_ids: List[int] = []
        with ledger_locks.hold(_token_key(token), _user_key(user_id)):
            try:
                payment = PaymentRecordStore.find_by_token(db, token, for_update=True)
                if payment is not None and payment.status == COMPLETED:
                    existing = SubscriptionLedger.find_by_payment_token(db, token)
                    db.rollback()
                    logger.info(f"Payment {token} already granted, returning subscription {existing.id if existing else None}")
                    return GrantResult(existing, False)

                if payment is None:
                    if amount is None:
                        raise AnomalousTransition(token, None, COMPLETED)
                    missing_attempt = True
                    PaymentRecordStore.create(
                        db, user_id, plan_id, token, amount, currency=currency, status=COMPLETED, commit=False
                    )
                else:
                    PaymentRecordStore.update_status(db, token, COMPLETED, commit=False)

                now = utcnow()
                previous = db.query(Subscription).filter(
                    Subscription.user_id == user_id,
                    Subscription.status == "active"
                ).all()
                for old in previous:
                    old.status = "canceled"
                    old.cancel_reason = "superseded"
                    old.updated_at = now
                    superseded_ids.append(old.id)

                subscription = Subscription(
                    user_id=user_id,
                    plan_id=plan_id,
                    payment_token=token,
                    status="active",
                    expires_at=expires_at,
                    created_at=now,
                )
                db.add(subscription)
                db.commit()
            except IntegrityError:
                # Another instance inserted the same token first
                db.rollback()
                existing = SubscriptionLedger.find_by_payment_token(db, token)
                if existing is None:
                    raise
                logger.info(f"Concurrent grant for {token} lost the race, returning subscription {existing.id}")
                return GrantResult(existing, False)
            except Exception:
                db.rollback()
                raise
            db.refresh(subscription)

        AuditLog.log(db, user_id, AuditAction.SUBSCRIPTION_CREATED, {
            "payment_token": token,
            "plan_id": plan_id,
            "amount": amount,
            "expires_at": expires_at,
            "subscription_id": subscription.id,
            "superseded": superseded_ids,
            "payment_attempt_missing": missing_attempt,
        }, source_ip)
        logger.info(f"Subscription created: user {user_id} -> plan {plan_id} (expires {expires_at})")
        return GrantResult(subscription, True)

    @staticmethod
    def find_active(db: Session, user_id: str, now: Optional[datetime] = None) -> Optional[Subscription]:
        """Current subscription, or None once it is canceled or past expires_at."""
        now = now or utcnow()
        return db.query(Subscription).filter(
            Subscription.user_id == user_id,
            Subscription.status == "active",
            Subscription.expires_at > now
        ).order_by(Subscription.created_at.desc(), Subscription.id.desc()).first()

    @staticmethod
    def cancel(db: Session, payment_token: str, source_ip: Optional[str] = None) -> Optional[Subscription]:
        """Cancel the subscription a refunded payment produced.

        Refunds for unknown, pending or failed payments change nothing and are
        recorded as anomalies. Repeated refunds are ignored.
        """
        payment = PaymentRecordStore.find_by_token(db, payment_token)
        if payment is None:
            logger.warning(f"Refund for unknown payment {payment_token}")
            AuditLog.log(db, None, AuditAction.REFUND_ANOMALY, {
                "payment_token": payment_token,
                "payment_status": None,
            }, source_ip)
            return None

        user_id = payment.user_id
        anomaly_status = None
        subscription = None
        with ledger_locks.hold(_token_key(payment_token), _user_key(user_id)):
            try:
                payment = PaymentRecordStore.find_by_token(db, payment_token, for_update=True)
                subscription = SubscriptionLedger.find_by_payment_token(db, payment_token, for_update=True)
                if payment.status == REFUNDED:
                    db.rollback()
                    logger.info(f"Payment {payment_token} already refunded, nothing to do")
                    return subscription
                if payment.status != COMPLETED:
                    anomaly_status = payment.status
                else:
                    if subscription is not None and subscription.status == "active":
                        subscription.status = "canceled"
                        subscription.cancel_reason = "refunded"
                        subscription.updated_at = utcnow()
                    PaymentRecordStore.update_status(db, payment_token, REFUNDED, commit=False)
                    db.commit()
            except Exception:
                db.rollback()
                raise

        if anomaly_status is not None:
            logger.warning(f"Refund for payment {payment_token} in status {anomaly_status} ignored")
            AuditLog.log(db, user_id, AuditAction.REFUND_ANOMALY, {
                "payment_token": payment_token,
                "payment_status": anomaly_status,
            }, source_ip)
            return None

        AuditLog.log(db, user_id, AuditAction.SUBSCRIPTION_CANCELED, {
            "payment_token": payment_token,
            "plan_id": payment.plan_id,
            "subscription_id": subscription.id if subscription else None,
        }, source_ip)
        logger.info(f"Subscription canceled for user {user_id} after refund of {payment_token}")
        return subscription

    @staticmethod
    def mark_failed(db: Session, token: str) -> Optional[PaymentAttempt]:
        """Fail a pending payment under the token lock, so it cannot interleave with a grant.

        Returns None when the payment was already failed. Anything other than
        pending raises AnomalousTransition.
        """
        with ledger_locks.hold(_token_key(token)):
            try:
                payment = PaymentRecordStore.find_by_token(db, token, for_update=True)
                if payment is not None and payment.status == FAILED:
                    db.rollback()
                    logger.info(f"Payment {token} already marked failed")
                    return None
                return PaymentRecordStore.update_status(db, token, FAILED)
            except Exception:
                db.rollback()
                raise

    @staticmethod
    def list_for_user(db: Session, user_id: str) -> List[Subscription]:
        return db.query(Subscription).filter(
            Subscription.user_id == user_id
        ).order_by(Subscription.created_at.desc(), Subscription.id.desc()).all()
