from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class DecisionReason(str, Enum):
    GRANTED = "GRANTED"
    PLAN_TOO_LOW = "PLAN_TOO_LOW"
    SUBSCRIPTION_INACTIVE = "SUBSCRIPTION_INACTIVE"
    # Snapshot still loading, fail-open policy
    INDETERMINATE = "INDETERMINATE"
    # Snapshot still loading, strict policy
    PENDING = "PENDING"
    CAPACITY_EXCEEDED = "CAPACITY_EXCEEDED"


class LoadingPolicy(str, Enum):
    """How evaluations behave while the subscription snapshot is loading"""
    FAIL_OPEN = "fail_open"
    PENDING = "pending"


class EntitlementDecision(BaseModel):
    """Outcome of a single evaluation; recomputed on every call, never stored"""
    model_config = ConfigDict(frozen=True)

    allowed: bool
    reason: DecisionReason
    required_plan_name: Optional[str] = None
    limit: Optional[int] = None
    current_count: Optional[int] = None


class LimitsView(BaseModel):
    """Display view of a plan's ceilings and capabilities (None = unlimited)"""
    plan_name: str
    tier_level: int
    max_transactions: Optional[int] = None
    max_goals: Optional[int] = None
    max_categories: Optional[int] = None
    has_ai: bool = False
    has_ocr: bool = False
    has_reports: bool = True
    has_export: bool = False
    has_priority_support: bool = False
    features: list[str] = []
