from datetime import datetime
from typing import Optional
import enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from plangate.models.plan import PlanCapabilities, PlanLimits, limit_from_nullable


class SubscriptionStatus(str, enum.Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    PENDING = "pending"


class BillingPlan(BaseModel):
    """Plan as embedded in billing API payloads (camelCase, null max* = unlimited)"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    id: Optional[str] = None
    name: str
    description: Optional[str] = None
    price: float = 0
    currency: str = "IDR"
    interval: str = "monthly"
    features: list[str] = Field(default_factory=list)
    max_transactions: Optional[int] = None
    max_goals: Optional[int] = None
    max_categories: Optional[int] = None
    has_ai: bool = Field(default=False, alias="hasAI")
    has_ocr: bool = Field(default=False, alias="hasOCR")
    has_reports: bool = True
    has_export: bool = False
    has_priority_support: bool = False
    is_active: bool = True

    def limits(self) -> PlanLimits:
        return PlanLimits(
            transactions=limit_from_nullable(self.max_transactions),
            goals=limit_from_nullable(self.max_goals),
            categories=limit_from_nullable(self.max_categories),
        )

    def capabilities(self) -> PlanCapabilities:
        return PlanCapabilities(
            has_ai=self.has_ai,
            has_ocr=self.has_ocr,
            has_reports=self.has_reports,
            has_export=self.has_export,
            has_priority_support=self.has_priority_support,
        )


class Subscription(BaseModel):
    """
    Read-only view of the user's subscription record owned by billing.
    The engine never mutates it.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore", frozen=True)

    id: Optional[str] = None
    user_id: Optional[str] = None
    plan_id: Optional[str] = None
    plan: Optional[BillingPlan] = None
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    auto_renew: bool = False
    next_billing_date: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    @property
    def plan_name(self) -> Optional[str]:
        if self.plan is not None:
            return self.plan.name
        return self.plan_id

    @property
    def plan_refs(self) -> tuple[str, ...]:
        """Plan references in lookup order: display name, plan id, subscription plan id"""
        refs = (
            self.plan.name if self.plan is not None else None,
            self.plan.id if self.plan is not None else None,
            self.plan_id,
        )
        return tuple(ref for ref in refs if ref)

    @property
    def is_active(self) -> bool:
        return self.status == SubscriptionStatus.ACTIVE
