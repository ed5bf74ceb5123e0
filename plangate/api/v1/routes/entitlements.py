import logging
from typing import Optional

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query, status

from plangate.api.v1.deps import get_catalog, get_finance_client
from plangate.services.entitlement_service import EntitlementEvaluator, build_evaluator
from plangate.services.finance_api_client import FinanceApiClient
from plangate.services.plan_catalog import PlanCatalog
from plangate.services.subscription_snapshot import SubscriptionSnapshot
from plangate.services.usage_service import load_usage_counters

router = APIRouter()
logger = logging.getLogger(__name__)


async def get_evaluator(
    client: FinanceApiClient = Depends(get_finance_client),
    catalog: PlanCatalog = Depends(get_catalog),
) -> EntitlementEvaluator:
    """Dependency building an evaluator over a freshly resolved snapshot"""
    snapshot = SubscriptionSnapshot(client.get_current_subscription)
    await snapshot.refresh()
    return build_evaluator(snapshot, catalog=catalog)


@router.get("/features/{feature_key}")
async def check_feature(
    feature_key: str,
    evaluator: EntitlementEvaluator = Depends(get_evaluator),
):
    """
    Plan gating decision for a feature key.
    Unknown feature keys are never blocking.
    """
    logger.info(f"check_feature: Entry - feature: {feature_key}")

    if not evaluator.registry.is_registered(feature_key):
        logger.warning(f"check_feature: UNKNOWN_FEATURE_KEY - {feature_key}")

    decision = evaluator.evaluate_feature(feature_key)
    logger.info(f"check_feature: Success - feature: {feature_key}, reason: {decision.reason.value}")
    return {
        "feature_key": feature_key,
        "snapshot_state": evaluator.snapshot.state.value,
        **decision.model_dump(mode="json"),
    }


@router.get("/capacity/{resource_key}")
async def check_capacity(
    resource_key: str,
    current_count: Optional[int] = Query(default=None, ge=0),
    evaluator: EntitlementEvaluator = Depends(get_evaluator),
    client: FinanceApiClient = Depends(get_finance_client),
):
    """
    Quota gating decision for a limited resource.
    When current_count is omitted the count is derived from the live resource list.
    """
    logger.info(f"check_capacity: Entry - resource: {resource_key}, count: {current_count}")

    try:
        if current_count is None:
            evaluator.usage = await load_usage_counters(client, [resource_key])
        decision = evaluator.evaluate_capacity(resource_key, current_count)
        logger.info(f"check_capacity: Success - resource: {resource_key}, allowed: {decision.allowed}")
        return {
            "resource_key": resource_key,
            "snapshot_state": evaluator.snapshot.state.value,
            **decision.model_dump(mode="json"),
        }
    except (httpx.HTTPError, ValueError) as e:
        logger.error(f"check_capacity: Failure - {e}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Could not load {resource_key} usage: {e}"
        )


@router.get("/plan-features")
async def get_plan_features(
    evaluator: EntitlementEvaluator = Depends(get_evaluator),
):
    """Limits and capabilities of the plan currently in effect."""
    logger.info("get_plan_features: Entry")

    view = evaluator.plan_features()
    logger.info(f"get_plan_features: Success - plan: {view.plan_name}")
    return {
        "snapshot_state": evaluator.snapshot.state.value,
        **view.model_dump(mode="json"),
    }


@router.get("/usage")
async def get_usage_status(
    evaluator: EntitlementEvaluator = Depends(get_evaluator),
    client: FinanceApiClient = Depends(get_finance_client),
):
    """Used / limit / remaining for every limited resource."""
    logger.info("get_usage_status: Entry")

    try:
        evaluator.usage = await load_usage_counters(client)
        usage_status = evaluator.usage_status()
        logger.info(f"get_usage_status: Success - plan: {usage_status['plan_name']}")
        return usage_status
    except (httpx.HTTPError, ValueError) as e:
        logger.error(f"get_usage_status: Failure - {e}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Could not load usage: {e}"
        )


@router.post("/invalidate")
async def invalidate_subscription(
    client: FinanceApiClient = Depends(get_finance_client),
):
    """
    Drop the cached subscription and re-fetch it.
    Call after a successful payment or a cancellation.
    """
    logger.info("invalidate_subscription: Entry")

    client.invalidate_subscription()
    snapshot = SubscriptionSnapshot(client.get_current_subscription)
    subscription = await snapshot.invalidate()

    logger.info(f"invalidate_subscription: Success - state: {snapshot.state.value}")
    return {
        "snapshot_state": snapshot.state.value,
        "plan_name": subscription.plan_name if subscription else None,
        "status": subscription.status.value if subscription else None,
    }
