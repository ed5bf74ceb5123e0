from plangate.models.usage import ResourceKey, UsageCounter
from plangate.models.plan import (Finite, Limit, Plan, PlanCapabilities, PlanLimits,
                                  PlanTier, UNLIMITED, Unlimited)
from plangate.models.subscription import BillingPlan, Subscription, SubscriptionStatus
from plangate.models.feature import FeatureRequirement
from plangate.models.entitlement import DecisionReason, EntitlementDecision, LimitsView, LoadingPolicy

__all__ = [
    "ResourceKey", "UsageCounter",
    "Finite", "Limit", "Plan", "PlanCapabilities", "PlanLimits", "PlanTier", "UNLIMITED", "Unlimited",
    "BillingPlan", "Subscription", "SubscriptionStatus",
    "FeatureRequirement",
    "DecisionReason", "EntitlementDecision", "LimitsView", "LoadingPolicy",
]
