# src/payment/notifications.py
import logging
import smtplib
from datetime import datetime
from email.mime.text import MIMEText

from config import settings

logger = logging.getLogger(__name__)


class ReceiptMailer:
    """Payment receipts. Runs as a background task, after the processor got its 200."""

    @staticmethod
    def send_receipt(to_email: str, plan_name: str, amount: int, currency: str, expires_at: datetime, payment_token: str):
        body = (
            f"Thank you for subscribing to {plan_name}.\n\n"
            f"Amount: {amount / 100:.2f} {currency.upper()}\n"
            f"Reference: {payment_token}\n"
            f"Access until: {expires_at:%Y-%m-%d %H:%M} UTC\n"
        )
        try:
            msg = MIMEText(body)
            msg['Subject'] = f"Your {plan_name} subscription"
            msg['From'] = settings.FROM_EMAIL
            msg['To'] = to_email

            with smtplib.SMTP(settings.SMTP_SERVER, settings.SMTP_PORT, timeout=settings.SMTP_TIMEOUT) as server:
                server.starttls()
                if settings.SMTP_USERNAME:
                    server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
                server.sendmail(settings.FROM_EMAIL, to_email, msg.as_string())
            logger.info(f"Receipt for {payment_token} sent to {to_email}")
        except (smtplib.SMTPException, OSError):
            logger.error(f"SMTP error sending receipt for {payment_token} to {to_email}", exc_info=True)
