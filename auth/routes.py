# src/auth/routes.py
import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from auth.services import SessionResolver
from auth.schemas import SessionUser, MeResponse
from database import get_db
from errors import AuthenticationFailure, AuthorizationFailure
from subscription.schemas import SubscriptionSummary
from subscription.services import SubscriptionLedger

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def get_current_user(request: Request) -> SessionUser:
    """Retrieve the current authenticated user."""
    session = SessionResolver.current_session(request)
    if session is None:
        logger.warning(f"Access gate stage=session rejected {request.method} {request.url.path}")
        raise AuthenticationFailure()
    return session


def check_admin_role(current_user: SessionUser = Depends(get_current_user)) -> SessionUser:
    """Ensure the user has admin role."""
    if current_user.role != "admin":
        logger.warning(f"Non-admin user {current_user.id} denied admin access")
        raise AuthorizationFailure()
    return current_user


@router.get("/me", response_model=MeResponse)
def read_users_me(current_user: SessionUser = Depends(get_current_user), db: Session = Depends(get_db)):
    """Get current user details with the active subscription."""
    active_sub = SubscriptionLedger.find_active(db, current_user.id)
    return MeResponse(
        id=current_user.id,
        email=current_user.email,
        role=current_user.role,
        subscription=SubscriptionSummary.from_subscription(active_sub) if active_sub else None,
    )
