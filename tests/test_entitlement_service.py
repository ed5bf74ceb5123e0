"""
Tests for the entitlement evaluator
"""

import pytest

from plangate.core.config import settings
from plangate.models.entitlement import DecisionReason, LoadingPolicy
from plangate.models.subscription import Subscription, SubscriptionStatus
from plangate.services.entitlement_service import EntitlementEvaluator, build_evaluator
from plangate.services.feature_registry import DEFAULT_FEATURE_TIERS
from plangate.services.subscription_snapshot import SubscriptionSnapshot
from plangate.services.usage_service import UsageCounters

PLAN_NAMES = ["free", "premium", "enterprise"]
INACTIVE_STATUSES = [SubscriptionStatus.PENDING, SubscriptionStatus.CANCELLED, SubscriptionStatus.EXPIRED]


@pytest.fixture
def make_evaluator(catalog, registry):
    """Factory for evaluators over fixture snapshots"""
    def _make(snapshot, usage=None, policy=LoadingPolicy.FAIL_OPEN):
        return EntitlementEvaluator(
            catalog=catalog,
            registry=registry,
            snapshot=snapshot,
            usage=usage,
            loading_policy=policy,
        )
    return _make


def on_plan(plan_name, status=SubscriptionStatus.ACTIVE):
    return SubscriptionSnapshot.resolved(Subscription(plan_id=plan_name, status=status))


class TestScenarios:
    """Reference scenarios"""

    def test_free_plan_blocked_on_enterprise_feature(self, make_evaluator):
        evaluator = make_evaluator(on_plan("free"))

        decision = evaluator.evaluate_feature("scheduler_daily")

        assert decision.allowed is False
        assert decision.reason == DecisionReason.PLAN_TOO_LOW
        assert decision.required_plan_name == "Enterprise"
        assert evaluator.has_feature_access("scheduler_daily") is False

    def test_cancelled_premium_is_inactive(self, make_evaluator):
        evaluator = make_evaluator(on_plan("premium", SubscriptionStatus.CANCELLED))

        decision = evaluator.evaluate_feature("data_export")

        assert decision.allowed is False
        assert decision.reason == DecisionReason.SUBSCRIPTION_INACTIVE
        assert decision.required_plan_name == "Premium"

    def test_free_category_ceiling(self, make_evaluator):
        evaluator = make_evaluator(on_plan("free"))

        assert evaluator.has_capacity("categories", 5) is False
        assert evaluator.has_capacity("categories", 4) is True

    def test_loading_fails_open(self, make_evaluator):
        evaluator = make_evaluator(SubscriptionSnapshot())

        decision = evaluator.evaluate_feature("ai_chat")

        assert decision.allowed is True
        assert decision.reason == DecisionReason.INDETERMINATE

    def test_error_behaves_as_free_active(self, make_evaluator):
        evaluator = make_evaluator(SubscriptionSnapshot.failed("401 Unauthorized"))

        assert evaluator.has_feature_access("basic_reports") is True
        assert evaluator.evaluate_feature("ai_chat").reason == DecisionReason.PLAN_TOO_LOW
        assert evaluator.has_capacity("goals", 1) is True
        assert evaluator.has_capacity("goals", 2) is False
        assert evaluator.current_plan().name == "Free"


class TestFeatureAccessProperties:

    @pytest.mark.parametrize("plan_name", PLAN_NAMES)
    @pytest.mark.parametrize("feature_key", sorted(DEFAULT_FEATURE_TIERS))
    def test_active_access_iff_tier_sufficient(self, make_evaluator, catalog, registry, plan_name, feature_key):
        evaluator = make_evaluator(on_plan(plan_name))
        expected = catalog.tier_level_of(plan_name) >= registry.required_tier_of(feature_key)
        assert evaluator.has_feature_access(feature_key) is expected

    @pytest.mark.parametrize("feature_key", sorted(DEFAULT_FEATURE_TIERS))
    def test_upgrading_never_revokes_access(self, make_evaluator, feature_key):
        results = [make_evaluator(on_plan(name)).has_feature_access(feature_key) for name in PLAN_NAMES]
        # Once granted at some tier, granted at every higher tier
        assert results == sorted(results)

    @pytest.mark.parametrize("status", INACTIVE_STATUSES)
    @pytest.mark.parametrize("feature_key", sorted(DEFAULT_FEATURE_TIERS))
    def test_inactive_keeps_only_free_baseline(self, make_evaluator, registry, status, feature_key):
        evaluator = make_evaluator(on_plan("enterprise", status))
        decision = evaluator.evaluate_feature(feature_key)

        if registry.required_tier_of(feature_key) == 0:
            assert decision.allowed is True
            assert decision.reason == DecisionReason.GRANTED
        else:
            assert decision.allowed is False
            assert decision.reason == DecisionReason.SUBSCRIPTION_INACTIVE

    def test_no_subscription_is_free_active(self, make_evaluator):
        evaluator = make_evaluator(SubscriptionSnapshot.resolved(None))
        assert evaluator.has_feature_access("basic_goals") is True
        assert evaluator.evaluate_feature("ocr_scan").reason == DecisionReason.PLAN_TOO_LOW

    def test_unknown_feature_never_blocks(self, make_evaluator):
        evaluator = make_evaluator(on_plan("free"))
        decision = evaluator.evaluate_feature("crypto_wallet")
        assert decision.allowed is True
        assert decision.reason == DecisionReason.GRANTED

    def test_unknown_plan_name_is_tier_zero(self, make_evaluator):
        evaluator = make_evaluator(on_plan("platinum"))
        assert evaluator.has_feature_access("basic_reports") is True
        assert evaluator.has_feature_access("ai_insights") is False

    def test_plan_name_from_billing_payload(self, make_evaluator, make_subscription_payload):
        subscription = Subscription.model_validate(make_subscription_payload())
        evaluator = make_evaluator(SubscriptionSnapshot.resolved(subscription))
        assert evaluator.has_feature_access("ai_categorization") is True
        assert evaluator.evaluate_feature("multi_user").reason == DecisionReason.PLAN_TOO_LOW

    def test_repeated_evaluation_is_identical(self, make_evaluator):
        evaluator = make_evaluator(on_plan("premium"), usage=UsageCounters.from_lists(goals=[{"id": "g1"}]))
        first = [evaluator.evaluate_feature(key) for key in sorted(DEFAULT_FEATURE_TIERS)]
        second = [evaluator.evaluate_feature(key) for key in sorted(DEFAULT_FEATURE_TIERS)]
        assert first == second
        assert evaluator.evaluate_capacity("goals") == evaluator.evaluate_capacity("goals")


class TestPlanReferences:
    """Tier resolved from plan name, then plan id, then subscription plan id"""

    def test_display_name_falls_back_to_plan_id(self, make_evaluator, make_subscription_payload, premium_plan_payload):
        plan = {**premium_plan_payload, "id": "premium", "name": "Premium Bulanan"}
        subscription = Subscription.model_validate(make_subscription_payload(plan=plan, planId="premium"))
        evaluator = make_evaluator(SubscriptionSnapshot.resolved(subscription))

        decision = evaluator.evaluate_feature("data_export")

        assert decision.allowed is True
        assert decision.reason == DecisionReason.GRANTED
        assert evaluator.current_plan().tier_level == 1

    def test_falls_back_to_subscription_plan_id(self, make_evaluator, make_subscription_payload, premium_plan_payload):
        plan = {**premium_plan_payload, "id": None, "name": "Paket Bisnis"}
        subscription = Subscription.model_validate(make_subscription_payload(plan=plan, planId="enterprise"))
        evaluator = make_evaluator(SubscriptionSnapshot.resolved(subscription))

        assert evaluator.has_feature_access("scheduler_daily") is True
        assert evaluator.current_plan().tier_level == 2

    def test_feature_and_capacity_see_same_plan(self, make_evaluator, make_subscription_payload, premium_plan_payload):
        plan = {**premium_plan_payload, "id": "premium", "name": "Premium Bulanan", "maxGoals": 4}
        subscription = Subscription.model_validate(make_subscription_payload(plan=plan))
        evaluator = make_evaluator(SubscriptionSnapshot.resolved(subscription))

        assert evaluator.has_feature_access("ai_chat") is True
        decision = evaluator.evaluate_capacity("goals", 4)
        assert decision.allowed is False
        assert decision.required_plan_name == "Enterprise"

    def test_all_references_unknown_is_tier_zero(self, make_evaluator, make_subscription_payload, premium_plan_payload):
        plan = {**premium_plan_payload, "id": "gold_monthly", "name": "Gold"}
        subscription = Subscription.model_validate(make_subscription_payload(plan=plan, planId="gold"))
        evaluator = make_evaluator(SubscriptionSnapshot.resolved(subscription))

        assert evaluator.evaluate_feature("data_export").reason == DecisionReason.PLAN_TOO_LOW
        assert evaluator.has_feature_access("basic_reports") is True

    def test_plan_refs_order(self):
        subscription = Subscription.model_validate({
            "planId": "premium",
            "plan": {"id": "premium_m", "name": "Premium Bulanan"},
        })
        assert subscription.plan_refs == ("Premium Bulanan", "premium_m", "premium")
        assert Subscription().plan_refs == ()


class TestLoadingPolicy:

    def test_pending_policy_blocks_while_loading(self, make_evaluator):
        evaluator = make_evaluator(SubscriptionSnapshot(), policy=LoadingPolicy.PENDING)

        decision = evaluator.evaluate_feature("ai_chat")

        assert decision.allowed is False
        assert decision.reason == DecisionReason.PENDING

    def test_pending_policy_applies_to_free_features(self, make_evaluator):
        evaluator = make_evaluator(SubscriptionSnapshot(), policy="pending")
        assert evaluator.evaluate_feature("basic_reports").reason == DecisionReason.PENDING

    @pytest.mark.parametrize("policy,allowed,reason", [
        (LoadingPolicy.FAIL_OPEN, True, DecisionReason.INDETERMINATE),
        (LoadingPolicy.PENDING, False, DecisionReason.PENDING),
    ])
    def test_capacity_while_loading(self, make_evaluator, policy, allowed, reason):
        evaluator = make_evaluator(SubscriptionSnapshot(), policy=policy)
        decision = evaluator.evaluate_capacity("categories", 999)
        assert decision.allowed is allowed
        assert decision.reason == reason

    @pytest.mark.parametrize("policy", list(LoadingPolicy))
    def test_policy_irrelevant_once_ready(self, make_evaluator, policy):
        evaluator = make_evaluator(on_plan("free"), policy=policy)
        assert evaluator.evaluate_feature("ai_chat").reason == DecisionReason.PLAN_TOO_LOW

    def test_build_evaluator_reads_policy_from_settings(self, monkeypatch):
        monkeypatch.setattr(settings, "loading_policy", "pending")
        evaluator = build_evaluator(SubscriptionSnapshot())
        assert evaluator.loading_policy == LoadingPolicy.PENDING
        assert evaluator.has_feature_access("ai_chat") is False

    def test_build_evaluator_applies_feature_overrides(self, monkeypatch):
        monkeypatch.setattr(settings, "feature_tier_overrides", {"basic_reports": "premium"})
        evaluator = build_evaluator(on_plan("free"))
        assert evaluator.has_feature_access("basic_reports") is False


class TestCapacity:

    @pytest.mark.parametrize("count", [0, 1, 29])
    def test_under_finite_limit(self, make_evaluator, count):
        assert make_evaluator(on_plan("free")).has_capacity("transactions", count) is True

    @pytest.mark.parametrize("count", [30, 31, 500])
    def test_at_or_over_finite_limit(self, make_evaluator, count):
        decision = make_evaluator(on_plan("free")).evaluate_capacity("transactions", count)
        assert decision.allowed is False
        assert decision.reason == DecisionReason.CAPACITY_EXCEEDED
        assert decision.limit == 30
        assert decision.current_count == count
        assert decision.required_plan_name == "Premium"

    @pytest.mark.parametrize("plan_name", ["premium", "enterprise"])
    @pytest.mark.parametrize("count", [0, 5, 10 ** 6])
    def test_unlimited_always_has_capacity(self, make_evaluator, plan_name, count):
        evaluator = make_evaluator(on_plan(plan_name))
        for resource_key in ("transactions", "goals", "categories"):
            decision = evaluator.evaluate_capacity(resource_key, count)
            assert decision.allowed is True
            assert decision.limit is None

    def test_count_from_usage_counters(self, make_evaluator):
        usage = UsageCounters.from_lists(goals=[{"id": "g1"}, {"id": "g2"}])
        evaluator = make_evaluator(on_plan("free"), usage=usage)

        decision = evaluator.evaluate_capacity("goals")

        assert decision.allowed is False
        assert decision.current_count == 2

    def test_explicit_count_overrides_usage(self, make_evaluator):
        usage = UsageCounters.from_lists(goals=[{"id": "g1"}, {"id": "g2"}])
        evaluator = make_evaluator(on_plan("free"), usage=usage)
        assert evaluator.has_capacity("goals", 1) is True

    def test_no_usage_counts_zero(self, make_evaluator):
        assert make_evaluator(on_plan("free")).has_capacity("goals") is True

    def test_negative_count_is_clamped(self, make_evaluator):
        decision = make_evaluator(on_plan("free")).evaluate_capacity("categories", -3)
        assert decision.allowed is True
        assert decision.current_count == 0

    def test_unknown_resource_is_unlimited(self, make_evaluator):
        assert make_evaluator(on_plan("free")).has_capacity("invoices", 10 ** 6) is True

    def test_inactive_subscription_uses_free_limits(self, make_evaluator):
        evaluator = make_evaluator(on_plan("premium", SubscriptionStatus.CANCELLED))
        assert evaluator.has_capacity("categories", 5) is False

    def test_billing_payload_limits_win(self, make_evaluator, make_subscription_payload, premium_plan_payload):
        plan = {**premium_plan_payload, "maxGoals": 10}
        subscription = Subscription.model_validate(make_subscription_payload(plan=plan))
        evaluator = make_evaluator(SubscriptionSnapshot.resolved(subscription))

        assert evaluator.has_capacity("goals", 9) is True
        decision = evaluator.evaluate_capacity("goals", 10)
        assert decision.allowed is False
        assert decision.required_plan_name == "Enterprise"


class TestCompositeGating:

    def test_free_user_under_quota_still_plan_blocked(self, make_evaluator):
        evaluator = make_evaluator(on_plan("free"))
        decision = evaluator.can_use("ai_categorization", "categories", 0)
        assert decision.allowed is False
        assert decision.reason == DecisionReason.PLAN_TOO_LOW

    def test_premium_user_capacity_blocked_on_other_resource(
        self, make_evaluator, make_subscription_payload, premium_plan_payload
    ):
        plan = {**premium_plan_payload, "maxCategories": 3}
        subscription = Subscription.model_validate(make_subscription_payload(plan=plan))
        evaluator = make_evaluator(SubscriptionSnapshot.resolved(subscription))

        assert evaluator.can_use("ai_categorization", "goals", 100).allowed is True
        decision = evaluator.can_use("ai_categorization", "categories", 3)
        assert decision.allowed is False
        assert decision.reason == DecisionReason.CAPACITY_EXCEEDED

    def test_feature_only(self, make_evaluator):
        decision = make_evaluator(on_plan("premium")).can_use("data_export")
        assert decision.allowed is True
        assert decision.reason == DecisionReason.GRANTED


class TestPlanFeatures:

    def test_active_premium_view(self, make_evaluator):
        view = make_evaluator(on_plan("premium")).plan_features()
        assert view.plan_name == "Premium"
        assert view.max_transactions is None
        assert view.has_ai is True

    def test_inactive_subscription_shows_free_view(self, make_evaluator):
        view = make_evaluator(on_plan("enterprise", SubscriptionStatus.EXPIRED)).plan_features()
        assert view.plan_name == "Free"
        assert view.max_categories == 5
        assert view.has_ai is False

    def test_usage_status(self, make_evaluator):
        usage = UsageCounters.from_lists(categories=[{"id": "c1"}, {"id": "c2"}])
        status = make_evaluator(on_plan("free"), usage=usage).usage_status()

        assert status['plan_name'] == "Free"
        assert status['quotas']['categories'] == {
            'used': 2, 'limit': 5, 'remaining': 3, 'unlimited': False,
        }
        assert status['quotas']['transactions']['used'] == 0

    def test_usage_status_unlimited(self, make_evaluator):
        status = make_evaluator(on_plan("premium")).usage_status()
        assert status['quotas']['goals'] == {
            'used': 0, 'limit': None, 'remaining': None, 'unlimited': True,
        }
