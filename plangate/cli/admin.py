import click
import logging

from plangate.models.entitlement import LoadingPolicy
from plangate.models.plan import PlanTier, limit_to_nullable
from plangate.models.subscription import Subscription, SubscriptionStatus
from plangate.services.entitlement_service import EntitlementEvaluator, build_registry
from plangate.services.plan_catalog import PlanCatalog
from plangate.services.subscription_snapshot import SubscriptionSnapshot

logger = logging.getLogger(__name__)

STATUS_CHOICES = [s.value for s in SubscriptionStatus]


def _evaluator(plan: str, status: str, loading: bool = False, policy: str = "fail_open") -> EntitlementEvaluator:
    if loading:
        snapshot = SubscriptionSnapshot()
    else:
        snapshot = SubscriptionSnapshot.resolved(
            Subscription(plan_id=plan, status=SubscriptionStatus(status))
        )
    return EntitlementEvaluator(
        catalog=PlanCatalog(),
        registry=build_registry(),
        snapshot=snapshot,
        loading_policy=LoadingPolicy(policy),
    )


def _fmt_limit(limit) -> str:
    value = limit_to_nullable(limit)
    return "∞" if value is None else str(value)


@click.group()
def cli():
    """PlanGate CLI commands"""
    pass


@cli.command()
def plans():
    """List the plan catalog"""
    catalog = PlanCatalog()
    for plan in catalog.plans():
        click.echo(
            f"[{plan.tier_level}] {plan.name:<10} "
            f"transactions={_fmt_limit(plan.limits.transactions)} "
            f"goals={_fmt_limit(plan.limits.goals)} "
            f"categories={_fmt_limit(plan.limits.categories)}"
        )


@cli.command()
@click.option('--tier', required=False, help='Only features first available on this plan')
def features(tier):
    """List feature keys and their minimum plan"""
    try:
        registry = build_registry()
    except ValueError as e:
        logger.error(f"CLI error: {e}")
        click.echo(f"❌ Error: {e}", err=True)
        raise SystemExit(1)

    if tier:
        plan_tier = PlanTier.from_name(tier)
        if plan_tier is None:
            click.echo(f"❌ Unknown plan tier: {tier}", err=True)
            raise SystemExit(1)
        requirements = [registry.requirement(key) for key in registry.features_for_tier(int(plan_tier))]
    else:
        requirements = registry.requirements()

    if not requirements:
        click.echo("No features found")
        return
    for requirement in requirements:
        click.echo(f"  - {requirement.feature_key} ({requirement.min_tier.name.lower()})")


@cli.command('check-feature')
@click.argument('feature_key')
@click.option('--plan', default='free', show_default=True, help='Plan name')
@click.option('--status', default='active', show_default=True, type=click.Choice(STATUS_CHOICES))
@click.option('--loading', is_flag=True, help='Evaluate as if the subscription is still loading')
@click.option('--policy', default='fail_open', show_default=True,
              type=click.Choice([p.value for p in LoadingPolicy]), help='Loading policy')
def check_feature(feature_key, plan, status, loading, policy):
    """Evaluate feature access for a plan and status"""
    evaluator = _evaluator(plan, status, loading, policy)
    if not evaluator.registry.is_registered(feature_key):
        click.echo(f"⚠️  Unknown feature key: {feature_key} (never blocking)", err=True)

    decision = evaluator.evaluate_feature(feature_key)
    mark = "✓" if decision.allowed else "✗"
    line = f"{mark} {feature_key}: {decision.reason.value}"
    if decision.required_plan_name:
        line += f" (requires {decision.required_plan_name})"
    click.echo(line)


@cli.command('check-capacity')
@click.argument('resource_key')
@click.option('--plan', default='free', show_default=True, help='Plan name')
@click.option('--status', default='active', show_default=True, type=click.Choice(STATUS_CHOICES))
@click.option('--count', 'current_count', default=0, show_default=True, type=click.IntRange(min=0),
              help='Resources already created')
def check_capacity(resource_key, plan, status, current_count):
    """Evaluate quota capacity for a plan and current count"""
    evaluator = _evaluator(plan, status)
    decision = evaluator.evaluate_capacity(resource_key, current_count)
    mark = "✓" if decision.allowed else "✗"
    if decision.limit is None:
        click.echo(f"{mark} {resource_key}: {decision.reason.value} (unlimited)")
        return

    line = f"{mark} {resource_key}: {decision.reason.value} ({decision.current_count}/{decision.limit})"
    if decision.required_plan_name:
        line += f" upgrade to {decision.required_plan_name}"
    click.echo(line)


if __name__ == '__main__':
    cli()
