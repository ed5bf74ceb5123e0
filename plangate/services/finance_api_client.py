import logging
from typing import Any, Optional

import httpx

from plangate.core.cache import (delete_cached_subscription, get_cached_subscription,
                                 is_cache_miss, set_cached_subscription)
from plangate.core.config import settings
from plangate.models.usage import ResourceKey

logger = logging.getLogger(__name__)


RESOURCE_PATHS = {
    ResourceKey.TRANSACTIONS: "/transactions",
    ResourceKey.GOALS: "/goals",
    ResourceKey.CATEGORIES: "/categories",
}


def _unwrap(payload: Any) -> Any:
    """Strip ``{"data": ...}`` / ``{"items": ...}`` envelopes"""
    if isinstance(payload, dict):
        for key in ("data", "items"):
            if key in payload:
                return _unwrap(payload[key])
    return payload


class FinanceApiClient:
    """
    Read-only client for the finance API (billing + resource lists).
    Forwards the session bearer token; never retries.
    """

    def __init__(
        self,
        session_token: str,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        use_cache: bool = True,
    ):
        self.session_token = session_token
        self.base_url = (base_url or settings.finance_api_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.finance_api_timeout_seconds
        self.use_cache = use_cache
        self.logger = logging.getLogger(__name__)

    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.session_token}"}

    async def _get(self, path: str) -> Any:
        async with httpx.AsyncClient(follow_redirects=False) as client:
            response = await client.get(
                f"{self.base_url}{path}",
                headers=self._headers(),
                timeout=self.timeout,
            )

            # Redirects usually mean an auth proxy in front of the API
            if response.status_code in (301, 302, 303, 307, 308):
                raise httpx.HTTPStatusError(
                    f"Unexpected redirect from {path}",
                    request=response.request,
                    response=response,
                )
            response.raise_for_status()
            if not response.content:
                return None
            return response.json()

    async def get_current_subscription(self) -> Optional[dict]:
        """Fetch the current subscription payload (None when the user has none)"""
        self.logger.info("get_current_subscription: Entry")

        if self.use_cache:
            cached = get_cached_subscription(self.session_token)
            if not is_cache_miss(cached):
                self.logger.info("get_current_subscription: Success - cache hit")
                return cached

        try:
            payload = _unwrap(await self._get("/payment/subscription"))
            if payload is not None and not isinstance(payload, dict):
                raise ValueError(f"Unexpected subscription payload type: {type(payload).__name__}")
            if self.use_cache:
                set_cached_subscription(self.session_token, payload)
            self.logger.info(f"get_current_subscription: Success - has subscription: {payload is not None}")
            return payload
        except (httpx.HTTPError, ValueError) as e:
            self.logger.error(f"get_current_subscription: Failure - {e}")
            raise

    async def get_plans(self) -> list[dict]:
        self.logger.info("get_plans: Entry")

        try:
            payload = _unwrap(await self._get("/payment/plans")) or []
            if not isinstance(payload, list):
                raise ValueError(f"Unexpected plans payload type: {type(payload).__name__}")
            self.logger.info(f"get_plans: Success - {len(payload)} plans")
            return payload
        except (httpx.HTTPError, ValueError) as e:
            self.logger.error(f"get_plans: Failure - {e}")
            raise

    async def list_resources(self, resource_key: str) -> list[dict]:
        """Fetch the live list backing a limited resource"""
        self.logger.info(f"list_resources: Entry - {resource_key}")

        try:
            path = RESOURCE_PATHS[ResourceKey(resource_key)]
        except ValueError:
            self.logger.warning(f"list_resources: Unknown resource - {resource_key}")
            return []

        try:
            payload = _unwrap(await self._get(path)) or []
            if not isinstance(payload, list):
                raise ValueError(f"Unexpected {resource_key} payload type: {type(payload).__name__}")
            self.logger.info(f"list_resources: Success - {resource_key}: {len(payload)}")
            return payload
        except (httpx.HTTPError, ValueError) as e:
            self.logger.error(f"list_resources: Failure - {e}")
            raise

    def invalidate_subscription(self):
        """Drop the cached subscription so the next fetch hits billing"""
        self.logger.info("invalidate_subscription: Entry")
        delete_cached_subscription(self.session_token)
