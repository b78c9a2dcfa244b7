# src/subscription/plans.py
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict

from config import settings


class Plan(BaseModel):
    """A subscription plan. Prices are integer cents."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str = ""
    price: int
    currency: str = "usd"
    duration_days: int
    article_limit: int = -1  # -1 means unlimited
    features: List[str] = []


class PublicPlan(BaseModel):
    """Plan fields that may be shown to anyone."""
    id: str
    name: str
    description: str
    price: int
    currency: str
    features: List[str]
    duration_days: int


class PlanCatalog:
    """Read-only view over the configured plans."""

    def __init__(self, plans: Dict[str, dict]):
        self._plans = {plan_id: Plan(id=plan_id, **data) for plan_id, data in plans.items()}

    def get_plan(self, plan_id: Optional[str]) -> Optional[Plan]:
        if not plan_id:
            return None
        return self._plans.get(plan_id)

    def list_public(self) -> List[PublicPlan]:
        return [PublicPlan(**plan.model_dump(include=set(PublicPlan.model_fields))) for plan in self._plans.values()]


plan_catalog = PlanCatalog(settings.SUBSCRIPTION_PLANS)
