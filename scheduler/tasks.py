# src/scheduler/tasks.py
import logging
from typing import Optional
from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from datetime import timedelta
from config import settings
from database import SessionLocal, utcnow
from payment.store import PaymentRecordStore

logger = logging.getLogger(__name__)


def report_stale_pending_payments(db: Optional[Session] = None) -> int:
    """Log pending payments with no notification after PENDING_PAYMENT_ALERT_HOURS.

    Only reports: a payment leaves pending solely through a verified notification.
    """
    logger.info("Starting report_stale_pending_payments task")
    own_session = db is None
    db = db or SessionLocal()
    stale = []
    try:
        cutoff = utcnow() - timedelta(hours=settings.PENDING_PAYMENT_ALERT_HOURS)
        stale = PaymentRecordStore.list_stale_pending(db, cutoff)
        for payment in stale:
            logger.warning(
                f"Payment {payment.token} for user {payment.user_id} pending since {payment.created_at}"
            )
        db.rollback()
    except SQLAlchemyError as e:
        logger.error(f"Error in report_stale_pending_payments: {str(e)}")
    finally:
        if own_session:
            db.close()
    logger.info(f"Finished report_stale_pending_payments task: {len(stale)} stale")
    return len(stale)


def start_scheduler() -> BackgroundScheduler:
    """Start the background scheduler."""
    scheduler = BackgroundScheduler()
    scheduler.add_job(report_stale_pending_payments, 'interval', minutes=30)
    scheduler.start()
    return scheduler
