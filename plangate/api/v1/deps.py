import logging
from typing import Optional

import httpx
from fastapi import Depends

from plangate.core.middleware import get_current_session
from plangate.services.finance_api_client import FinanceApiClient
from plangate.services.plan_catalog import PlanCatalog

logger = logging.getLogger(__name__)


# Catalog fetched from billing, loaded once per process
_catalog_instance: Optional[PlanCatalog] = None


def get_finance_client(session: dict = Depends(get_current_session)) -> FinanceApiClient:
    """Dependency to get a finance API client bound to the caller's session"""
    return FinanceApiClient(session['token'])


async def get_catalog(client: FinanceApiClient = Depends(get_finance_client)) -> PlanCatalog:
    """
    Dependency to get the plan catalog.
    Falls back to the built-in catalog (not cached) when billing is unreachable.
    """
    global _catalog_instance
    if _catalog_instance is not None:
        return _catalog_instance

    try:
        _catalog_instance = PlanCatalog.from_billing_plans(await client.get_plans())
        return _catalog_instance
    except (httpx.HTTPError, ValueError) as e:
        logger.warning(f"get_catalog: Using built-in plans - {e}")
        return PlanCatalog()


def reset_catalog():
    """Forget the loaded catalog so the next request reloads it"""
    global _catalog_instance
    _catalog_instance = None
