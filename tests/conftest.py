"""
Pytest configuration for testing
"""

import os
from unittest.mock import MagicMock

import pytest

# Set up environment variables for testing before any imports
os.environ["FINANCE_API_BASE_URL"] = "http://finance.test/api"
os.environ["FINANCE_API_TIMEOUT_SECONDS"] = "2"
os.environ["REDIS_URL"] = "redis://localhost:6379/1"
os.environ["REDIS_PASSWORD"] = ""
os.environ["LOADING_POLICY"] = "fail_open"
os.environ["FEATURE_TIER_OVERRIDES"] = "{}"


@pytest.fixture(autouse=True)
def mock_cache(monkeypatch):
    """Replace the global Redis cache so unit tests never touch a server"""
    import plangate.core.cache as cache_module

    cache = MagicMock()
    cache.get.return_value = None
    cache.set.return_value = None
    cache.delete.return_value = None
    monkeypatch.setattr(cache_module, "_cache_instance", cache)
    yield cache


@pytest.fixture
def catalog():
    from plangate.services.plan_catalog import PlanCatalog
    return PlanCatalog()


@pytest.fixture
def registry():
    from plangate.services.feature_registry import FeatureRegistry
    return FeatureRegistry()


@pytest.fixture
def premium_plan_payload():
    """Plan as embedded in a billing subscription payload"""
    return {
        "id": "premium",
        "name": "Premium",
        "price": 49000,
        "interval": "monthly",
        "features": ["ai_insights", "data_export"],
        "hasAI": True,
        "hasOCR": True,
        "hasReports": True,
        "hasExport": True,
        "hasPrioritySupport": True,
        "maxTransactions": None,
        "maxGoals": None,
        "maxCategories": None,
    }


@pytest.fixture
def make_subscription_payload(premium_plan_payload):
    """Factory for billing subscription payloads"""
    def _make(plan=None, status="active", **overrides):
        payload = {
            "id": "sub_123",
            "userId": "user_123",
            "planId": "premium",
            "plan": premium_plan_payload if plan is None else plan,
            "status": status,
            "startDate": "2026-10-01T00:00:00Z",
            "endDate": "2026-11-01T00:00:00Z",
            "autoRenew": True,
        }
        payload.update(overrides)
        return payload
    return _make


@pytest.fixture(scope="function")
def redis_client():
    """Create Redis client for testing"""
    import redis

    redis_url = os.environ.get("REDIS_URL", "redis://localhost:6379/1")

    try:
        client = redis.from_url(
            redis_url,
            decode_responses=False,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        client.ping()
    except redis.RedisError:
        # None if Redis is not available
        client = None

    yield client

    if client is not None:
        client.flushdb()
        client.close()
