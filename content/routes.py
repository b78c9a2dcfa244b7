# src/content/routes.py
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from content.gate import access_gate
from content.schemas import AccessResponse, ArticlesResponse, PublicArticlesResponse
from content.services import ContentService
from audit.services import AuditAction, AuditLog
from auth.routes import get_current_user
from auth.schemas import SessionUser
from database import get_db
from subscription.schemas import SubscriptionSummary
from subscription.services import SubscriptionLedger

router = APIRouter(prefix="/content", tags=["content"])


@router.get("/public", response_model=PublicArticlesResponse)
def get_public_articles():
    """Article previews, no subscription required."""
    return PublicArticlesResponse(articles=ContentService.list_public(access_gate.registry))


@router.get("/articles", response_model=ArticlesResponse)
def get_articles(request: Request, db: Session = Depends(get_db)):
    """Articles available to the subscribed caller."""
    user = access_gate.require_session(request)
    subscription = access_gate.require_active_subscription(user, db)
    articles = ContentService.list_accessible(access_gate.registry)
    AuditLog.log(db, user.id, AuditAction.ARTICLES_LISTED, {
        "count": len(articles),
    }, request.client.host if request.client else None)
    return ArticlesResponse(subscription=SubscriptionSummary.from_subscription(subscription), articles=articles)


@router.get("/articles/{resource_id}")
async def download_article(resource_id: str, request: Request, db: Session = Depends(get_db)):
    """Stream a protected file to a subscriber."""
    return await access_gate.open(request, resource_id, db)


@router.get("/verify", response_model=AccessResponse)
def verify_access(db: Session = Depends(get_db), current_user: SessionUser = Depends(get_current_user)):
    """Whether the caller currently has access to protected articles."""
    subscription = SubscriptionLedger.find_active(db, current_user.id)
    return AccessResponse(
        has_access=subscription is not None,
        subscription=SubscriptionSummary.from_subscription(subscription) if subscription else None,
    )
