# src/errors.py
"""Error taxonomy shared by the API and the payment core.

Caller-facing failures are ``HTTPException`` subclasses so FastAPI renders them
as ``{"detail": ...}`` like any other HTTP error. Their messages are generic: a
403 never says which check failed.

``FraudDetected`` and ``AnomalousTransition`` are internal. They are raised and
handled inside the notification path and never reach a client.
"""
import logging
from typing import Optional

from fastapi import HTTPException, status
from fastapi.exception_handlers import http_exception_handler
from starlette.requests import Request

logger = logging.getLogger(__name__)


class AppError(HTTPException):
    kind = "app_error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Internal error"

    def __init__(self, detail: Optional[str] = None, headers: Optional[dict] = None):
        super().__init__(status_code=self.status_code, detail=detail or self.default_detail, headers=headers)


class AuthenticationFailure(AppError):
    kind = "authentication_failure"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Not authenticated"

    def __init__(self, detail: Optional[str] = None):
        super().__init__(detail, headers={"WWW-Authenticate": "Bearer"})


class AuthorizationFailure(AppError):
    kind = "authorization_failure"
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Access denied"


class ValidationFailure(AppError):
    kind = "validation_failure"
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid request"


class NotFound(AppError):
    kind = "not_found"
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"


class ProcessorUnavailable(AppError):
    kind = "processor_unavailable"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Payment service temporarily unavailable, try again later"


class FraudDetected(Exception):
    """Claimed amount does not match the plan price."""

    def __init__(self, plan_id: str, expected_amount: Optional[int], claimed_amount: Optional[int]):
        super().__init__(f"amount {claimed_amount} does not match plan {plan_id} ({expected_amount})")
        self.plan_id = plan_id
        self.expected_amount = expected_amount
        self.claimed_amount = claimed_amount


class AnomalousTransition(Exception):
    """A payment status change that the state machine does not allow."""

    def __init__(self, token: str, current: Optional[str], requested: str):
        super().__init__(f"payment {token}: {current or 'unknown'} -> {requested} rejected")
        self.token = token
        self.current = current
        self.requested = requested


async def app_error_handler(request: Request, exc: AppError):
    log_level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
    logger.log(log_level, f"{exc.kind} on {request.method} {request.url.path}: status={exc.status_code}")
    return await http_exception_handler(request, exc)
