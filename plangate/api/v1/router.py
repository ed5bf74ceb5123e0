from fastapi import APIRouter
from plangate.api.v1.routes import entitlements, plans

api_router = APIRouter()

api_router.include_router(plans.router, prefix="/plans", tags=["plans"])
api_router.include_router(entitlements.router, prefix="/entitlements", tags=["entitlements"])
