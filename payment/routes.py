# src/payment/routes.py
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from typing import List
from payment.services import PaymentService, payment_service
from payment.schemas import (
    CheckoutRequest, CheckoutResponse, PaymentHistoryItem, PaymentStatusResponse, PlansResponse
)
from auth.routes import get_current_user
from auth.schemas import SessionUser
from database import get_db
from subscription.plans import plan_catalog

router = APIRouter(prefix="/payments", tags=["payments"])


@router.get("/plans", response_model=PlansResponse)
def get_plans():
    """Public plan catalog."""
    return PlansResponse(plans=plan_catalog.list_public())


@router.post("/checkout", response_model=CheckoutResponse)
def create_checkout(
    checkout: CheckoutRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user: SessionUser = Depends(get_current_user)
):
    """Start a checkout for a plan. The amount is taken from the catalog."""
    source_ip = request.client.host if request.client else None
    return payment_service.create_checkout(current_user, checkout.plan_id, db, source_ip)


@router.get("/status/{token}", response_model=PaymentStatusResponse)
def get_payment_status(
    token: str,
    db: Session = Depends(get_db),
    current_user: SessionUser = Depends(get_current_user)
):
    return PaymentService.get_status(current_user, token, db)


@router.get("/", response_model=List[PaymentHistoryItem])
def get_user_payments(
    db: Session = Depends(get_db),
    current_user: SessionUser = Depends(get_current_user)
):
    return payment_service.get_user_payments(current_user.id, db)
