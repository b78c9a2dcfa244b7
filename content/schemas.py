# src/content/schemas.py
from pydantic import BaseModel
from typing import List, Optional

from subscription.schemas import SubscriptionSummary


class PublicArticle(BaseModel):
    """Schema for a public article preview."""
    id: str
    title: str
    media_type: str
    preview: str
    requires_subscription: bool = True


class PublicArticlesResponse(BaseModel):
    articles: List[PublicArticle]


class ArticleInfo(BaseModel):
    """Schema for an article available to subscribers."""
    id: str
    title: str
    media_type: str
    size: Optional[int]  # bytes; None if the file is missing
    url: str


class ArticlesResponse(BaseModel):
    subscription: SubscriptionSummary
    articles: List[ArticleInfo]


class AccessResponse(BaseModel):
    has_access: bool
    subscription: Optional[SubscriptionSummary] = None
