import logging
from typing import Mapping, Optional

from plangate.models.feature import FeatureRequirement
from plangate.models.plan import PlanTier

logger = logging.getLogger(__name__)


DEFAULT_FEATURE_TIERS: dict[str, PlanTier] = {
    # Free baseline
    'basic_transactions': PlanTier.FREE,
    'basic_categories': PlanTier.FREE,
    'basic_goals': PlanTier.FREE,
    'basic_reports': PlanTier.FREE,
    'basic_insights': PlanTier.FREE,
    'monthly_insights': PlanTier.FREE,
    # Premium
    'ai_chat': PlanTier.PREMIUM,
    'ai_insights': PlanTier.PREMIUM,
    'ai_categorization': PlanTier.PREMIUM,
    'ai_model_selection': PlanTier.PREMIUM,
    'ocr_scan': PlanTier.PREMIUM,
    'advanced_reports': PlanTier.PREMIUM,
    'data_export': PlanTier.PREMIUM,
    'backup_restore': PlanTier.PREMIUM,
    'budget_alerts': PlanTier.PREMIUM,
    'goal_reminders': PlanTier.PREMIUM,
    'multiple_currencies': PlanTier.PREMIUM,
    'timezone_selection': PlanTier.PREMIUM,
    'two_factor_auth': PlanTier.PREMIUM,
    'scheduler_monthly': PlanTier.PREMIUM,
    # Enterprise
    'ai_recommendations': PlanTier.ENTERPRISE,
    'advanced_scheduler': PlanTier.ENTERPRISE,
    'scheduler_daily': PlanTier.ENTERPRISE,
    'scheduler_weekly': PlanTier.ENTERPRISE,
    'scheduler_yearly': PlanTier.ENTERPRISE,
    'multi_user': PlanTier.ENTERPRISE,
    'team_collaboration': PlanTier.ENTERPRISE,
    'advanced_analytics': PlanTier.ENTERPRISE,
    'custom_integrations': PlanTier.ENTERPRISE,
}


class FeatureRegistry:
    """Feature key -> minimum plan tier. Feature keys are an open set."""

    def __init__(self, requirements: Optional[Mapping[str, PlanTier]] = None):
        source = DEFAULT_FEATURE_TIERS if requirements is None else requirements
        self._requirements = {key: PlanTier(tier) for key, tier in source.items()}

    def with_overrides(self, overrides: Mapping[str, str]) -> "FeatureRegistry":
        """
        Return a new registry with tiers overridden by plan name,
        e.g. ``{"ai_chat": "enterprise"}``. Unknown plan names are a
        configuration error.
        """
        merged = dict(self._requirements)
        for feature_key, plan_name in overrides.items():
            tier = PlanTier.from_name(plan_name)
            if tier is None:
                raise ValueError(f"Unknown plan tier '{plan_name}' for feature '{feature_key}'")
            merged[feature_key] = tier
        if overrides:
            logger.info(f"with_overrides: Applied {len(overrides)} feature tier overrides")
        return FeatureRegistry(merged)

    def is_registered(self, feature_key: str) -> bool:
        return feature_key in self._requirements

    def required_tier_of(self, feature_key: str) -> int:
        """Minimum tier level for a feature; unregistered keys never block"""
        return int(self._requirements.get(feature_key, PlanTier.FREE))

    def requirement(self, feature_key: str) -> FeatureRequirement:
        return FeatureRequirement(
            feature_key=feature_key,
            min_tier=self._requirements.get(feature_key, PlanTier.FREE),
        )

    def requirements(self) -> list[FeatureRequirement]:
        return [self.requirement(key) for key in sorted(self._requirements)]

    def features_for_tier(self, tier_level: int) -> list[str]:
        """Feature keys whose minimum tier is exactly ``tier_level``"""
        return sorted(key for key, tier in self._requirements.items() if int(tier) == tier_level)
