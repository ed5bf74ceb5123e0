import logging
from typing import Iterable, Optional

from pydantic import ValidationError

from plangate.models.entitlement import LimitsView
from plangate.models.plan import (Finite, Plan, PlanCapabilities, PlanLimits, PlanTier,
                                  UNLIMITED, limit_to_nullable)
from plangate.models.subscription import BillingPlan

logger = logging.getLogger(__name__)


DEFAULT_PLANS = (
    Plan(
        id='free',
        name='Free',
        tier=PlanTier.FREE,
        description='Paket gratis dengan fitur dasar',
        price=0,
        limits=PlanLimits(
            transactions=Finite(30),
            goals=Finite(2),
            categories=Finite(5),
        ),
        capabilities=PlanCapabilities(has_reports=True),
        features=(
            'basic_transactions',
            'basic_categories',
            'basic_goals',
            'basic_reports',
            'basic_insights',
            'monthly_insights',
        ),
    ),
    Plan(
        id='premium',
        name='Premium',
        tier=PlanTier.PREMIUM,
        description='Paket lengkap untuk pengguna individu',
        price=49000,
        limits=PlanLimits(transactions=UNLIMITED, goals=UNLIMITED, categories=UNLIMITED),
        capabilities=PlanCapabilities(
            has_ai=True, has_ocr=True, has_reports=True, has_export=True, has_priority_support=True
        ),
        features=(
            'unlimited_transactions',
            'unlimited_goals',
            'unlimited_categories',
            'ai_insights',
            'ocr_scan',
            'advanced_reports',
            'data_export',
            'priority_support',
            'backup_otomatis',
            'multi_device_sync',
            'dark_mode',
        ),
    ),
    Plan(
        id='enterprise',
        name='Enterprise',
        tier=PlanTier.ENTERPRISE,
        description='Solusi lengkap untuk perusahaan dan tim besar',
        price=299000,
        limits=PlanLimits(transactions=UNLIMITED, goals=UNLIMITED, categories=UNLIMITED),
        capabilities=PlanCapabilities(
            has_ai=True, has_ocr=True, has_reports=True, has_export=True, has_priority_support=True
        ),
        features=(
            'unlimited_transactions',
            'unlimited_goals',
            'unlimited_categories',
            'ai_insights',
            'ai_recommendations',
            'ocr_scan',
            'advanced_reports',
            'data_export',
            'priority_support',
            'multi_user',
            'team_collaboration',
            'advanced_analytics',
            'custom_integrations',
            'dedicated_support',
            'sla_guarantee',
            'custom_development',
            'training_consultation',
        ),
    ),
)


class PlanCatalog:
    """
    Table of plans keyed by tier.

    Exactly one plan per tier level, tier levels dense from 0. The invariant is
    checked when the catalog is built so lookups never fail afterwards.
    """

    def __init__(self, plans: Iterable[Plan] = DEFAULT_PLANS):
        self._by_tier: dict[PlanTier, Plan] = {}
        for plan in plans:
            if plan.tier in self._by_tier:
                raise ValueError(f"Duplicate plan for tier level {plan.tier_level}: {plan.name}")
            self._by_tier[plan.tier] = plan

        levels = sorted(int(tier) for tier in self._by_tier)
        if levels != list(range(len(levels))) or not levels:
            raise ValueError(f"Plan tier levels must be dense from 0, got {levels}")

        self._by_name = {plan.name.lower(): plan for plan in self._by_tier.values()}
        self._by_name.update({plan.id.lower(): plan for plan in self._by_tier.values()})

    @classmethod
    def from_billing_plans(cls, payload: Iterable[dict], defaults: Iterable[Plan] = DEFAULT_PLANS) -> "PlanCatalog":
        """Build a catalog from the billing API plan list, keeping defaults for missing tiers"""
        logger.info("from_billing_plans: Entry")

        plans = {plan.tier: plan for plan in defaults}
        for raw in payload:
            try:
                billing_plan = BillingPlan.model_validate(raw)
            except ValidationError as e:
                logger.warning(f"from_billing_plans: Skipping malformed plan - {e}")
                continue

            tier = PlanTier.from_name(billing_plan.name) or PlanTier.from_name(billing_plan.id)
            if tier is None:
                logger.warning(f"from_billing_plans: Skipping plan with unknown tier - {billing_plan.name}")
                continue
            if not billing_plan.is_active:
                logger.info(f"from_billing_plans: Skipping inactive plan - {billing_plan.name}")
                continue

            plans[tier] = plan_from_billing(billing_plan, tier)

        catalog = cls(plans.values())
        logger.info(f"from_billing_plans: Success - {len(plans)} plans")
        return catalog

    def plans(self) -> list[Plan]:
        return [self._by_tier[tier] for tier in sorted(self._by_tier)]

    @property
    def free_plan(self) -> Plan:
        return self._by_tier[PlanTier.FREE]

    def plan_for_tier(self, tier_level: int) -> Optional[Plan]:
        try:
            return self._by_tier.get(PlanTier(tier_level))
        except ValueError:
            return None

    def plan_named(self, plan_name: Optional[str]) -> Optional[Plan]:
        if not plan_name:
            return None
        return self._by_name.get(plan_name.strip().lower())

    def _known_tier(self, plan_name: Optional[str]) -> Optional[PlanTier]:
        plan = self.plan_named(plan_name)
        if plan is not None:
            return plan.tier
        return PlanTier.from_name(plan_name)

    def tier_level_of(self, *plan_refs: Optional[str]) -> int:
        """
        Tier level of the first plan reference the catalog knows, e.g.
        ``tier_level_of(plan.name, plan.id, plan_id)``. Unknown names are tier 0.
        """
        for plan_ref in plan_refs:
            tier = self._known_tier(plan_ref)
            if tier is not None:
                return int(tier)
        return int(PlanTier.FREE)

    def resolve(self, *plan_refs: Optional[str], billing_plan: Optional[BillingPlan] = None) -> Plan:
        """
        Plan for a subscription. Limits embedded in the billing payload win
        over the catalog entry; unknown names resolve to the free plan.
        """
        tier = PlanTier(self.tier_level_of(*plan_refs))
        if billing_plan is not None:
            return plan_from_billing(billing_plan, tier)
        return self.plan_for_tier(tier) or self.free_plan

    def limits_of(self, plan_name: Optional[str]) -> PlanLimits:
        return self.resolve(plan_name).limits

    def lowest_plan_at(self, tier_level: int) -> Plan:
        """Cheapest plan whose tier is at least ``tier_level``"""
        for plan in self.plans():
            if plan.tier_level >= tier_level:
                return plan
        return self.plans()[-1]


def plan_from_billing(billing_plan: BillingPlan, tier: PlanTier) -> Plan:
    return Plan(
        id=billing_plan.id or tier.name.lower(),
        name=billing_plan.name,
        tier=tier,
        limits=billing_plan.limits(),
        capabilities=billing_plan.capabilities(),
        features=tuple(billing_plan.features),
        description=billing_plan.description or "",
        price=billing_plan.price,
        currency=billing_plan.currency,
        interval=billing_plan.interval,
    )


def plan_features_of(plan: Plan) -> LimitsView:
    """Display view of a plan's ceilings and capabilities"""
    return LimitsView(
        plan_name=plan.name,
        tier_level=plan.tier_level,
        max_transactions=limit_to_nullable(plan.limits.transactions),
        max_goals=limit_to_nullable(plan.limits.goals),
        max_categories=limit_to_nullable(plan.limits.categories),
        has_ai=plan.capabilities.has_ai,
        has_ocr=plan.capabilities.has_ocr,
        has_reports=plan.capabilities.has_reports,
        has_export=plan.capabilities.has_export,
        has_priority_support=plan.capabilities.has_priority_support,
        features=list(plan.features),
    )
