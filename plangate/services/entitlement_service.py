import logging
from typing import Optional

from plangate.core.config import settings
from plangate.models.entitlement import (DecisionReason, EntitlementDecision, LimitsView,
                                         LoadingPolicy)
from plangate.models.plan import Finite, Plan, limit_to_nullable
from plangate.models.subscription import SubscriptionStatus
from plangate.models.usage import ResourceKey
from plangate.services.feature_registry import FeatureRegistry
from plangate.services.plan_catalog import PlanCatalog, plan_features_of
from plangate.services.subscription_snapshot import SubscriptionSnapshot
from plangate.services.usage_service import UsageCounters

logger = logging.getLogger(__name__)


class EntitlementEvaluator:
    """
    Decides plan gating and quota gating for the current user.

    Pure over its inputs: the catalog, the registry, the snapshot and the usage
    counters are owned elsewhere and only read here. No state is kept between
    evaluations, so the same inputs always give the same decision.

    Plan gating and quota gating are independent axes; ``can_use`` combines
    them for surfaces that need both.
    """

    def __init__(
        self,
        catalog: PlanCatalog,
        registry: FeatureRegistry,
        snapshot: SubscriptionSnapshot,
        usage: Optional[UsageCounters] = None,
        loading_policy: LoadingPolicy = LoadingPolicy.FAIL_OPEN,
    ):
        self.catalog = catalog
        self.registry = registry
        self.snapshot = snapshot
        self.usage = usage
        self.loading_policy = LoadingPolicy(loading_policy)

    def _while_loading(self) -> EntitlementDecision:
        if self.loading_policy == LoadingPolicy.PENDING:
            return EntitlementDecision(allowed=False, reason=DecisionReason.PENDING)
        return EntitlementDecision(allowed=True, reason=DecisionReason.INDETERMINATE)

    def _subscription_state(self) -> tuple[tuple[str, ...], SubscriptionStatus]:
        # No record (or a failed fetch) means implicit free plan, active
        subscription = self.snapshot.current()
        if subscription is None:
            return (self.catalog.free_plan.name,), SubscriptionStatus.ACTIVE
        return subscription.plan_refs, subscription.status

    def current_plan(self) -> Plan:
        """Plan whose limits apply now: the subscribed plan while active, else free"""
        subscription = self.snapshot.current()
        if subscription is None or subscription.status != SubscriptionStatus.ACTIVE:
            return self.catalog.free_plan
        return self.catalog.resolve(*subscription.plan_refs, billing_plan=subscription.plan)

    def evaluate_feature(self, feature_key: str) -> EntitlementDecision:
        if self.snapshot.is_loading:
            return self._while_loading()

        plan_refs, status = self._subscription_state()
        tier_level = self.catalog.tier_level_of(*plan_refs)
        required_level = self.registry.required_tier_of(feature_key)

        if required_level == 0:
            # Free baseline is always available
            decision = EntitlementDecision(allowed=True, reason=DecisionReason.GRANTED)
        elif status != SubscriptionStatus.ACTIVE:
            decision = EntitlementDecision(
                allowed=False,
                reason=DecisionReason.SUBSCRIPTION_INACTIVE,
                required_plan_name=self.catalog.lowest_plan_at(required_level).name,
            )
        elif tier_level < required_level:
            decision = EntitlementDecision(
                allowed=False,
                reason=DecisionReason.PLAN_TOO_LOW,
                required_plan_name=self.catalog.lowest_plan_at(required_level).name,
            )
        else:
            decision = EntitlementDecision(allowed=True, reason=DecisionReason.GRANTED)

        logger.debug(
            f"evaluate_feature: {feature_key} - plan: {'/'.join(plan_refs) or None}, "
            f"status: {status.value}, required: {required_level}, reason: {decision.reason.value}"
        )
        return decision

    def has_feature_access(self, feature_key: str) -> bool:
        return self.evaluate_feature(feature_key).allowed

    def _current_count(self, resource_key: str, current_count: Optional[int]) -> int:
        if current_count is None:
            current_count = self.usage.count_of(resource_key) if self.usage is not None else 0
        return max(0, int(current_count))

    def _upgrade_for(self, resource_key: str, count: int, from_level: int) -> Optional[str]:
        """Cheapest higher plan with room for one more resource"""
        for plan in self.catalog.plans():
            if plan.tier_level <= from_level:
                continue
            limit = plan.limits.for_resource(resource_key)
            if limit is None or limit.allows(count):
                return plan.name
        return None

    def evaluate_capacity(self, resource_key: str, current_count: Optional[int] = None) -> EntitlementDecision:
        if self.snapshot.is_loading:
            return self._while_loading()

        plan = self.current_plan()
        limit = plan.limits.for_resource(resource_key)
        if limit is None or not isinstance(limit, Finite):
            # Unlimited, or not a limited resource
            return EntitlementDecision(allowed=True, reason=DecisionReason.GRANTED)

        count = self._current_count(resource_key, current_count)
        if limit.allows(count):
            decision = EntitlementDecision(
                allowed=True,
                reason=DecisionReason.GRANTED,
                limit=limit.count,
                current_count=count,
            )
        else:
            decision = EntitlementDecision(
                allowed=False,
                reason=DecisionReason.CAPACITY_EXCEEDED,
                required_plan_name=self._upgrade_for(resource_key, count, plan.tier_level),
                limit=limit.count,
                current_count=count,
            )

        logger.debug(
            f"evaluate_capacity: {resource_key} - plan: {plan.name}, "
            f"count: {count}/{limit.count}, allowed: {decision.allowed}"
        )
        return decision

    def has_capacity(self, resource_key: str, current_count: Optional[int] = None) -> bool:
        return self.evaluate_capacity(resource_key, current_count).allowed

    def can_use(
        self,
        feature_key: str,
        resource_key: Optional[str] = None,
        current_count: Optional[int] = None,
    ) -> EntitlementDecision:
        """Plan gating first, then quota gating where a resource applies"""
        decision = self.evaluate_feature(feature_key)
        if not decision.allowed or resource_key is None:
            return decision
        return self.evaluate_capacity(resource_key, current_count)

    def plan_features(self) -> LimitsView:
        return plan_features_of(self.current_plan())

    def usage_status(self) -> dict:
        """Used / limit / remaining per limited resource for the current plan"""
        plan = self.current_plan()
        result = {
            'plan_name': plan.name,
            'tier_level': plan.tier_level,
            'quotas': {},
        }

        for resource_key in [key.value for key in ResourceKey]:
            limit = limit_to_nullable(plan.limits.for_resource(resource_key))
            used = self._current_count(resource_key, None)
            result['quotas'][resource_key] = {
                'used': used,
                'limit': limit,
                'remaining': max(0, limit - used) if limit is not None else None,
                'unlimited': limit is None,
            }
        return result


def build_registry(overrides: Optional[dict] = None) -> FeatureRegistry:
    """Default registry with configured tier overrides applied"""
    return FeatureRegistry().with_overrides(
        settings.feature_tier_overrides if overrides is None else overrides
    )


def build_evaluator(
    snapshot: SubscriptionSnapshot,
    usage: Optional[UsageCounters] = None,
    catalog: Optional[PlanCatalog] = None,
    registry: Optional[FeatureRegistry] = None,
) -> EntitlementEvaluator:
    return EntitlementEvaluator(
        catalog=catalog or PlanCatalog(),
        registry=registry or build_registry(),
        snapshot=snapshot,
        usage=usage,
        loading_policy=LoadingPolicy(settings.loading_policy),
    )
