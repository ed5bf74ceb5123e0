import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from plangate.api.v1.deps import get_catalog
from plangate.models.plan import PlanTier
from plangate.services.entitlement_service import build_registry
from plangate.services.plan_catalog import PlanCatalog, plan_features_of

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("")
async def get_plans(catalog: PlanCatalog = Depends(get_catalog)):
    """
    Get all plans with their limits and capabilities, cheapest first.
    """
    logger.info("get_plans: Entry")

    plans = []
    for plan in catalog.plans():
        plans.append({
            'id': plan.id,
            'name': plan.name,
            'description': plan.description,
            'price': plan.price,
            'currency': plan.currency,
            'interval': plan.interval,
            **plan_features_of(plan).model_dump(mode="json"),
        })

    logger.info(f"get_plans: Success - {len(plans)} plans")
    return {"plans": plans}


@router.get("/features")
async def get_feature_requirements(
    tier: Optional[str] = Query(default=None, description="Only features first available on this plan"),
    catalog: PlanCatalog = Depends(get_catalog),
):
    """Feature registry: minimum plan for each feature key."""
    logger.info(f"get_feature_requirements: Entry - tier: {tier}")

    registry = build_registry()
    if tier is not None:
        plan_tier = PlanTier.from_name(tier)
        if plan_tier is None:
            logger.error(f"get_feature_requirements: Failure - unknown tier {tier}")
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Unknown plan tier: {tier}"
            )
        keys = registry.features_for_tier(int(plan_tier))
        requirements = [registry.requirement(key) for key in keys]
    else:
        requirements = registry.requirements()

    features = [
        {
            'feature_key': requirement.feature_key,
            'min_tier_level': requirement.min_tier_level,
            'required_plan_name': catalog.lowest_plan_at(requirement.min_tier_level).name,
        }
        for requirement in requirements
    ]
    logger.info(f"get_feature_requirements: Success - {len(features)} features")
    return {"features": features}
