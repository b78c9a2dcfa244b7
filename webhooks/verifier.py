# src/webhooks/verifier.py
import hashlib
import hmac
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import parse_qsl

from errors import AuthenticationFailure

logger = logging.getLogger(__name__)

SIGNATURE_PREFIX = "sha256="


@dataclass(frozen=True)
class VerifiedEvent:
    """Fields of a notification whose signature checked out."""
    fields: Dict[str, Any]
    digest: str  # sha256 of the raw payload, safe to log


def _decode_fields(raw_payload: bytes) -> Dict[str, Any]:
    if raw_payload.lstrip().startswith(b"{"):
        data = json.loads(raw_payload)
        if not isinstance(data, dict):
            raise ValueError("notification body is not an object")
        return data
    pairs = parse_qsl(raw_payload.decode("utf-8"), keep_blank_values=True, strict_parsing=True)
    if not pairs:
        raise ValueError("empty notification body")
    return dict(pairs)


class NotificationVerifier:
    """HMAC-SHA256 check over the exact bytes the processor sent.

    Nothing here touches the database: a rejected notification never gets
    further than this class.
    """

    @staticmethod
    def sign(raw_payload: bytes, shared_secret: str) -> str:
        return hmac.new(shared_secret.encode("utf-8"), raw_payload, hashlib.sha256).hexdigest()

    @staticmethod
    def verify(raw_payload: bytes, signature_header: Optional[str], shared_secret: str) -> VerifiedEvent:
        if not shared_secret:
            logger.error("Payment webhook secret is not configured, rejecting notification")
            raise AuthenticationFailure("Invalid signature")
        if not signature_header:
            raise AuthenticationFailure("Missing signature")

        provided = signature_header.strip()
        if provided.lower().startswith(SIGNATURE_PREFIX):
            provided = provided[len(SIGNATURE_PREFIX):]
        try:
            provided_bytes = provided.lower().encode("ascii")
        except UnicodeEncodeError:
            raise AuthenticationFailure("Invalid signature")

        expected = NotificationVerifier.sign(raw_payload, shared_secret).encode("ascii")
        if not hmac.compare_digest(expected, provided_bytes):
            raise AuthenticationFailure("Invalid signature")

        try:
            fields = _decode_fields(raw_payload)
        except (ValueError, UnicodeDecodeError):
            raise AuthenticationFailure("Malformed notification")
        return VerifiedEvent(fields=fields, digest=hashlib.sha256(raw_payload).hexdigest())
