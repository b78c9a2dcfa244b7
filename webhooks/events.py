# src/webhooks/events.py
from decimal import Decimal, DecimalException, ROUND_HALF_UP
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from errors import ValidationFailure


class NotificationStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    PENDING = "pending"
    REFUNDED = "refunded"
    UNKNOWN = "unknown"

    @classmethod
    def from_raw(cls, raw: Optional[str]) -> "NotificationStatus":
        return _STATUS_ALIASES.get((raw or "").strip().lower(), cls.UNKNOWN)


_STATUS_ALIASES = {
    "success": NotificationStatus.SUCCEEDED,
    "approved": NotificationStatus.SUCCEEDED,
    "completed": NotificationStatus.SUCCEEDED,
    "failed": NotificationStatus.FAILED,
    "declined": NotificationStatus.FAILED,
    "pending": NotificationStatus.PENDING,
    "refund": NotificationStatus.REFUNDED,
    "refunded": NotificationStatus.REFUNDED,
}


class PaymentNotification(BaseModel):
    """Fields of a verified processor notification.

    custom_param1/custom_param2 are the processor's pass-through fields that
    carry our user and plan ids back to us.
    """
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    status: str
    action: Optional[str] = None
    token: str = Field(min_length=1, validation_alias=AliasChoices("token", "payment_token"))
    user_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("user_id", "custom_param1"))
    plan_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("plan_id", "custom_param2"))
    amount: Optional[Decimal] = None  # major units, e.g. "98.00"
    error_message: Optional[str] = None

    @classmethod
    def parse(cls, fields: Dict[str, Any]) -> "PaymentNotification":
        try:
            return cls.model_validate(fields)
        except ValidationError as exc:
            bad = ", ".join(str(err["loc"][0]) for err in exc.errors() if err.get("loc"))
            raise ValidationFailure(f"Malformed notification fields: {bad or 'unknown'}")

    @property
    def kind(self) -> NotificationStatus:
        return NotificationStatus.from_raw(self.status)

    def amount_in_cents(self) -> Optional[int]:
        """Claimed amount in cents. None when it is too large to round to whole cents."""
        if self.amount is None:
            raise ValidationFailure("Notification has no amount")
        try:
            return int((self.amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
        except DecimalException:
            return None
