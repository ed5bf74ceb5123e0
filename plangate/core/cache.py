import hashlib
import logging
from typing import Optional, Dict, Any
from plangate.core.config import settings
from plangate.core.redis_cache import RedisCache

logger = logging.getLogger(__name__)


# Global cache instance
_cache_instance: Optional[RedisCache] = None

_MISSING = object()


def get_cache() -> RedisCache:
    """Get global Redis cache instance"""
    global _cache_instance
    if _cache_instance is None:
        _cache_instance = RedisCache()
    return _cache_instance


def _generate_cache_key(session_token: str) -> str:
    """Generate subscription cache key from the session bearer token."""
    # Never store the raw token in a key
    token_hash = hashlib.sha256(session_token.encode()).hexdigest()[:32]
    return f"subscription_snapshot:{token_hash}"


def get_cached_subscription(session_token: str) -> Any:
    """
    Get cached subscription payload for a session.

    Returns the module sentinel ``_MISSING`` on a cache miss so a cached
    "no subscription" (None) can be told apart from an absent entry.
    """
    cache = get_cache()
    entry = cache.get(_generate_cache_key(session_token))
    if not isinstance(entry, dict) or 'subscription' not in entry:
        return _MISSING
    return entry['subscription']


def set_cached_subscription(
    session_token: str,
    payload: Optional[Dict],
    ttl_minutes: int = None
):
    """Cache a subscription payload (None included) for a session."""
    cache = get_cache()
    cache.set(
        _generate_cache_key(session_token),
        {'subscription': payload},
        ttl_minutes or settings.subscription_cache_ttl_minutes,
    )


def delete_cached_subscription(session_token: str):
    """Drop the cached subscription payload for a session."""
    cache = get_cache()
    cache.delete(_generate_cache_key(session_token))


def is_cache_miss(value: Any) -> bool:
    return value is _MISSING
