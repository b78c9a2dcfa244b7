# src/webhooks/routes.py
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from audit.services import AuditAction, AuditLog
from config import settings
from database import get_db
from errors import AuthenticationFailure
from webhooks.services import notification_service
from webhooks.verifier import NotificationVerifier, VerifiedEvent

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


def _record_processing_error(db: Session, event: VerifiedEvent, source_ip: str):
    db.rollback()
    AuditLog.log(db, None, AuditAction.NOTIFICATION_PROCESSING_ERROR, {
        "payload_digest": event.digest,
        "payment_token": event.fields.get("token") or event.fields.get("payment_token"),
    }, source_ip)


@router.post("/payments")
async def receive_payment_notification(
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db)
):
    """Payment processor notification endpoint.

    Answers 401 only when the signature does not verify. Every verified
    notification is acknowledged with 200 so the processor stops retrying,
    including ones we reject as fraudulent or anomalous.
    """
    raw_payload = await request.body()
    signature = request.headers.get(settings.PAYMENT_SIGNATURE_HEADER)
    source_ip = request.client.host if request.client else None

    try:
        event = NotificationVerifier.verify(raw_payload, signature, settings.PAYMENT_WEBHOOK_SECRET)
    except AuthenticationFailure as exc:
        logger.warning(f"Rejected payment notification from {source_ip}: {exc.detail}")
        raise

    try:
        await run_in_threadpool(notification_service.dispatch, event, db, source_ip, background_tasks)
    except Exception:
        logger.error(f"Processing failed for notification {event.digest}", exc_info=True)
        await run_in_threadpool(_record_processing_error, db, event, source_ip)

    return {"received": True}
